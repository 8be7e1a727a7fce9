"""
Mask Off Logging

Per-module log levels plus structured record sinks for round replays.

Structured Record Logging:
    Round events (spawns, taps, terminal outcomes, summaries) can be routed
    to a sink as structured records. FileSink writes JSONL to disk so a
    round can be inspected or replayed offline.

Usage:
    from maskoff.logging import get_logger

    log = get_logger('round')
    log.debug("Spawned %s in slot %d", type_id, slot)
    log.info("Round started")

    from maskoff.logging import emit_record
    emit_record('round', {'event': 'tap', 't': 1234.0, 'outcome': 'correct'})

Configuration:
    Environment variables:
        MASKOFF_LOG_LEVEL=DEBUG             # Global default level
        MASKOFF_LOG_ROUND=DEBUG             # Module-specific level
        MASKOFF_LOG_DIR=/tmp/maskoff        # Where FileSink writes

        # Structured records for a module (FileSink), optional directory
        MASKOFF_LOGGING_ROUND_ENABLED=true
        MASKOFF_LOGGING_ROUND_DIR=/tmp/rounds

    Or programmatically:
        from maskoff.logging import configure_logging
        configure_logging(level='DEBUG', modules={'spawner': 'INFO'}, records={'round': True})
"""

import json
import os
import sys
import time
import traceback
from abc import ABC, abstractmethod
from enum import IntEnum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional


class LogLevel(IntEnum):
    """Log levels matching Python's logging module."""
    TRACE = 5      # Even more verbose than DEBUG
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50
    OFF = 100      # Disable logging


# =============================================================================
# Sink-Based Structured Logging
# =============================================================================

class LogSink(ABC):
    """
    Abstract base class for log record sinks.

    Sinks receive structured log records and write them to their destination.
    """

    @abstractmethod
    def emit(self, module: str, record: Dict[str, Any]) -> None:
        """
        Emit a structured log record.

        Args:
            module: Module name (e.g., 'round', 'spawner')
            record: Structured data to log (must be JSON-serializable)
        """

    @abstractmethod
    def flush(self) -> None:
        """Flush any buffered records."""

    @abstractmethod
    def close(self) -> None:
        """Close the sink and release resources."""

    def __enter__(self) -> 'LogSink':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class FileSink(LogSink):
    """
    Writes structured log records to JSONL files.

    Each module gets its own file in the log directory, one JSON object
    per line.

    Args:
        log_dir: Directory for log files (default: from get_log_dir())
        session_name: Session identifier for file naming (default: timestamp)
    """

    def __init__(
        self,
        log_dir: Optional[str] = None,
        session_name: Optional[str] = None,
    ):
        self._log_dir = Path(log_dir) if log_dir else None
        self._session_name = session_name or time.strftime("%Y%m%d_%H%M%S")
        self._files: Dict[str, Any] = {}  # module -> file handle

    def _ensure_dir(self) -> Path:
        """Lazily initialize log directory."""
        if self._log_dir is None:
            self._log_dir = Path(get_log_dir())
        self._log_dir.mkdir(parents=True, exist_ok=True)
        return self._log_dir

    def _get_file(self, module: str):
        """Get or create file handle for module."""
        if module not in self._files:
            path = self._ensure_dir() / f"{self._session_name}_{module}.jsonl"
            self._files[module] = open(path, 'a')

            header = {
                "type": "header",
                "module": module,
                "session_name": self._session_name,
                "start_time": time.time(),
                "start_time_iso": time.strftime("%Y-%m-%dT%H:%M:%S"),
            }
            self._files[module].write(json.dumps(header) + "\n")

        return self._files[module]

    def emit(self, module: str, record: Dict[str, Any]) -> None:
        """Write record to module's JSONL file."""
        f = self._get_file(module)
        if 'wall_time' not in record:
            record = {'wall_time': time.time(), **record}
        f.write(json.dumps(record) + "\n")

    def flush(self) -> None:
        """Flush all open files."""
        for f in self._files.values():
            f.flush()

    def close(self) -> None:
        """Close all open files."""
        for module, f in self._files.items():
            footer = {
                "type": "footer",
                "module": module,
                "end_time": time.time(),
                "end_time_iso": time.strftime("%Y-%m-%dT%H:%M:%S"),
            }
            f.write(json.dumps(footer) + "\n")
            f.close()
        self._files.clear()

    @property
    def log_paths(self) -> Dict[str, Path]:
        """Get paths to all log files."""
        log_dir = self._ensure_dir()
        return {
            module: log_dir / f"{self._session_name}_{module}.jsonl"
            for module in self._files
        }


class MemorySink(LogSink):
    """Keeps records in memory. Used by the simulator and tests."""

    def __init__(self):
        self.records: Dict[str, list] = {}

    def emit(self, module: str, record: Dict[str, Any]) -> None:
        self.records.setdefault(module, []).append(dict(record))

    def flush(self) -> None:
        pass

    def close(self) -> None:
        self.records.clear()


class NullSink(LogSink):
    """No-op sink when logging is disabled."""

    def emit(self, module: str, record: Dict[str, Any]) -> None:
        pass

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass


# Sink registry - active sinks by module
_sinks: Dict[str, LogSink] = {}


def register_sink(module: str, sink: LogSink) -> None:
    """
    Register a sink for a specific module.

    Args:
        module: Module name (e.g., 'round')
        sink: Sink instance to receive records
    """
    _sinks[module] = sink


def unregister_sink(module: str) -> Optional[LogSink]:
    """Remove and return the sink registered for a module."""
    return _sinks.pop(module, None)


def get_sink(module: str) -> Optional[LogSink]:
    return _sinks.get(module)


def emit_record(module: str, record: Dict[str, Any]) -> bool:
    """
    Emit a structured log record to the module's sink.

    Args:
        module: Module name (e.g., 'round')
        record: Structured data to log (must be JSON-serializable)

    Returns:
        True if record was emitted, False if no sink is registered
    """
    sink = get_sink(module)
    if sink is None:
        return False
    sink.emit(module, record)
    return True


def close_all_sinks() -> None:
    """Close and unregister all sinks."""
    for sink in _sinks.values():
        sink.close()
    _sinks.clear()


def create_sink_for_module(
    module: str,
    session_name: Optional[str] = None,
) -> LogSink:
    """
    Create the sink configured for a module.

    Returns a FileSink when records are enabled for the module (see
    get_record_config), otherwise a NullSink.
    """
    config = get_record_config(module)
    if not config.get('enabled', False):
        return NullSink()
    return FileSink(log_dir=config.get('dir'), session_name=session_name)


# =============================================================================
# Global configuration
# =============================================================================

_config: Dict[str, Any] = {
    'default_level': LogLevel.INFO,
    'module_levels': {},
    'log_dir': None,         # Override log directory (None = user data dir)
    'records': {},           # module -> {'enabled': bool, 'dir': str}
}

RECORD_SETTINGS = ('enabled', 'dir')


def get_log_dir() -> str:
    """Get the directory FileSink writes to.

    Priority:
    1. Configured log_dir in _config
    2. MASKOFF_LOG_DIR environment variable
    3. $XDG_DATA_HOME/maskoff/logs (~/.local/share/maskoff/logs)
    """
    if _config.get('log_dir'):
        return str(Path(_config['log_dir']).expanduser())

    env_dir = os.environ.get('MASKOFF_LOG_DIR')
    if env_dir:
        return str(Path(env_dir).expanduser())

    xdg_data = os.environ.get('XDG_DATA_HOME', str(Path.home() / '.local' / 'share'))
    return str(Path(xdg_data) / 'maskoff' / 'logs')


def get_record_config(module: str) -> Dict[str, Any]:
    """Structured-record settings for a module.

    MASKOFF_LOGGING_ROUND_ENABLED=true maps to {'enabled': True}.
    """
    return _config['records'].get(module.lower(), {})


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ('true', '1', 'yes', 'on')


def _format_message(module: str, level: str, msg: str) -> str:
    """Format a log message."""
    return f"[{module}] {level}: {msg}"


def _level_from_string(level_str: str) -> LogLevel:
    """Convert string to LogLevel. Unknown names fall back to INFO."""
    name = level_str.strip().upper()
    if name == 'WARN':
        name = 'WARNING'
    return LogLevel.__members__.get(name, LogLevel.INFO)


def configure_logging(
    level: Optional[str] = None,
    modules: Optional[Dict[str, str]] = None,
    log_dir: Optional[str] = None,
    records: Optional[Dict[str, bool]] = None,
) -> None:
    """
    Configure the logging system.

    Args:
        level: Default log level for all modules (unchanged if None)
        modules: Dict of module_name -> level for per-module configuration
        log_dir: Directory used by FileSink
        records: Dict of module_name -> whether structured records go to a file
    """
    if level is not None:
        _config['default_level'] = _level_from_string(level)

    if modules:
        for mod, mod_level in modules.items():
            _config['module_levels'][mod] = _level_from_string(mod_level)

    if log_dir is not None:
        _config['log_dir'] = log_dir

    if records:
        for mod, enabled in records.items():
            _config['records'].setdefault(mod.lower(), {})['enabled'] = bool(enabled)


def _load_env_config() -> None:
    """Load configuration from environment variables.

    Supports two prefixes:
    - MASKOFF_LOG_*: Log levels (MASKOFF_LOG_SPAWNER=DEBUG)
    - MASKOFF_LOGGING_<MODULE>_ENABLED / _DIR: structured records per module
    """
    if 'MASKOFF_LOG_LEVEL' in os.environ:
        _config['default_level'] = _level_from_string(os.environ['MASKOFF_LOG_LEVEL'])

    reserved = ('MASKOFF_LOG_LEVEL', 'MASKOFF_LOG_DIR')
    for key, value in os.environ.items():
        if key.startswith('MASKOFF_LOG_') and key not in reserved:
            module_name = key[len('MASKOFF_LOG_'):].lower()
            _config['module_levels'][module_name] = _level_from_string(value)

        elif key.startswith('MASKOFF_LOGGING_'):
            module, _, setting = key[len('MASKOFF_LOGGING_'):].lower().rpartition('_')
            if not module or setting not in RECORD_SETTINGS:
                continue
            record_config = _config['records'].setdefault(module, {})
            record_config[setting] = _parse_bool(value) if setting == 'enabled' else value


# Load env config on import
_load_env_config()


_LABELS = {
    LogLevel.TRACE: 'TRACE',
    LogLevel.DEBUG: 'DEBUG',
    LogLevel.INFO: 'INFO',
    LogLevel.WARNING: 'WARN',
    LogLevel.ERROR: 'ERROR',
    LogLevel.CRITICAL: 'CRIT',
}


class MaskOffLogger:
    """
    Logger for a specific module.

    Writes formatted lines to stderr when the module's level allows it.
    """

    def __init__(self, module: str):
        self.module = module
        self._module_key = module.lower().replace('.', '_')

    @property
    def level(self) -> LogLevel:
        """Effective level: the module override, else the default."""
        return _config['module_levels'].get(self._module_key, _config['default_level'])

    def is_enabled_for(self, level: LogLevel) -> bool:
        return level >= self.level

    def log(self, level: LogLevel, msg: str, *args) -> None:
        """Log msg % args at level."""
        if not self.is_enabled_for(level):
            return
        if args:
            try:
                msg = msg % args
            except (TypeError, ValueError):
                msg = f"{msg} {args}"
        print(_format_message(self.module, _LABELS[level], msg), file=sys.stderr)

    def trace(self, msg: str, *args) -> None:
        self.log(LogLevel.TRACE, msg, *args)

    def debug(self, msg: str, *args) -> None:
        self.log(LogLevel.DEBUG, msg, *args)

    def info(self, msg: str, *args) -> None:
        self.log(LogLevel.INFO, msg, *args)

    def warning(self, msg: str, *args) -> None:
        self.log(LogLevel.WARNING, msg, *args)

    def error(self, msg: str, *args) -> None:
        self.log(LogLevel.ERROR, msg, *args)

    def critical(self, msg: str, *args) -> None:
        self.log(LogLevel.CRITICAL, msg, *args)

    def exception(self, msg: str, *args) -> None:
        """Log at ERROR followed by the traceback of the exception being handled."""
        if not self.is_enabled_for(LogLevel.ERROR):
            return
        self.log(LogLevel.ERROR, msg, *args)
        tb = traceback.format_exc().strip()
        if tb and tb != 'NoneType: None':
            for line in tb.splitlines():
                print(_format_message(self.module, 'TRACE', line), file=sys.stderr)


@lru_cache(maxsize=64)
def get_logger(module: str) -> MaskOffLogger:
    """
    Get a logger for the specified module.

    Loggers are cached, so calling get_logger('foo') multiple times
    returns the same logger instance.

    Args:
        module: Module name (e.g., 'round', 'spawner', 'highscores')

    Returns:
        MaskOffLogger instance for the module
    """
    return MaskOffLogger(module)


def disable_logging() -> None:
    """Disable all logging."""
    _config['default_level'] = LogLevel.OFF

"""
High-score persistence.

Two collaborators sit behind HighScoreService:

- LocalHighScoreStore: the personal best, a single non-negative integer in a
  small JSON file under a fixed key.
- RemoteHighScoreClient: the global record behind two HTTP endpoints. The
  endpoints are fronted by a server that holds the storage credential, so
  the client never sends one.

Remote calls are asyncio coroutines. The round controller never awaits
them: it asks the service to run them as background tasks and carries on.
Every failure falls back to the cached or default value.

Usage:
    service = HighScoreService(
        store=LocalHighScoreStore(Path('highscore.json')),
        client=RemoteHighScoreClient('https://maskoff.example'),
    )
    record = await service.get_global(force_refresh=True)
    service.record_round(summary, player_name='Rafi')   # non-blocking
    await service.wait_pending()
"""

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Set

import aiohttp
from pydantic import ValidationError

from maskoff.logging import get_logger
from maskoff.models import RemoteHighScoreRecord, RoundSummary
from maskoff.settings import Settings

log = get_logger('highscores')

PERSONAL_HIGHSCORE_KEY = 'maskoff_highscore'


class LocalHighScoreStore:
    """Personal best stored as {"maskoff_highscore": <int>} in a JSON file.

    Read and write failures are logged and swallowed; gameplay never
    depends on the store being available.
    """

    def __init__(self, path: Path, key: str = PERSONAL_HIGHSCORE_KEY):
        self.path = Path(path)
        self.key = key

    def read(self) -> int:
        """Stored personal best, or 0 when missing, unreadable or invalid."""
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            return 0
        except (OSError, ValueError) as e:
            log.warning("Could not read high score from %s: %s", self.path, e)
            return 0

        value = data.get(self.key, 0) if isinstance(data, dict) else 0
        try:
            score = int(value)
        except (TypeError, ValueError):
            log.warning("Ignoring invalid stored high score %r", value)
            return 0
        return max(0, score)

    def write(self, score: int) -> bool:
        """Persist a score. Returns False if the write failed."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + '.tmp')
            with open(tmp, 'w', encoding='utf-8') as f:
                json.dump({self.key: max(0, int(score))}, f)
            tmp.replace(self.path)
        except OSError as e:
            log.warning("Could not save high score to %s: %s", self.path, e)
            return False
        return True


class RemoteHighScoreClient:
    """Async client for the global high-score endpoints.

    GET  {base_url}/api/get-highscore     -> {"score": int, "achievedBy": str}
    POST {base_url}/api/update-highscore  <- {"score": int, "achievedBy": str}
    """

    GET_PATH = '/api/get-highscore'
    UPDATE_PATH = '/api/update-highscore'

    def __init__(self, base_url: str, timeout: float = 5.0):
        self.base_url = base_url.rstrip('/')
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def fetch(self) -> Optional[RemoteHighScoreRecord]:
        """Fetch the global record.

        Returns:
            The record, or None on any transport, HTTP or payload failure
        """
        url = self.base_url + self.GET_PATH
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(url) as response:
                    if response.status != 200:
                        log.warning("High score fetch failed: HTTP %d", response.status)
                        return None
                    payload = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            log.warning("High score fetch failed: %s", e)
            return None

        return self._parse_record(payload)

    @staticmethod
    def _parse_record(payload) -> Optional[RemoteHighScoreRecord]:
        if not isinstance(payload, dict):
            log.warning("Unexpected high score payload: %r", payload)
            return None
        # Older stores keep the score under 'globalHighScore'
        if 'score' not in payload and 'globalHighScore' in payload:
            payload = {**payload, 'score': payload['globalHighScore']}
        try:
            return RemoteHighScoreRecord.model_validate(payload)
        except ValidationError as e:
            log.warning("Invalid high score payload: %s", e)
            return None

    async def update(self, record: RemoteHighScoreRecord) -> bool:
        """Submit a new global record. Returns True on HTTP 200."""
        url = self.base_url + self.UPDATE_PATH
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(url, json=record.to_wire()) as response:
                    if response.status == 200:
                        return True
                    body = await response.text()
                    log.warning("High score update rejected: HTTP %d %s", response.status, body)
                    return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.warning("High score update failed: %s", e)
            return False


class HighScoreService:
    """Personal and global high scores with a read-through cache.

    Attributes:
        personal_best: Last known personal best
        global_record: Cached global record (0 / 'Anonymous' until fetched)
    """

    def __init__(
        self,
        store: Optional[LocalHighScoreStore] = None,
        client: Optional[RemoteHighScoreClient] = None,
    ):
        self.store = store
        self.client = client
        self.personal_best = 0
        self.global_record = RemoteHighScoreRecord()
        self._global_fetched = False
        # bumped on every confirmed submit; a fetch older than it may be stale
        self._confirmed_writes = 0
        self._tasks: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: Settings, offline: bool = False) -> 'HighScoreService':
        """Build the service from runtime settings.

        Args:
            settings: Runtime settings (file location, remote URL, timeout)
            offline: Skip the remote service even if a URL is configured
        """
        client = None
        if settings.highscore_url and not offline:
            client = RemoteHighScoreClient(settings.highscore_url, timeout=settings.highscore_timeout)
        return cls(store=LocalHighScoreStore(settings.highscore_file), client=client)

    @property
    def has_remote(self) -> bool:
        return self.client is not None

    @property
    def global_high_score(self) -> int:
        return self.global_record.score

    @property
    def pending(self) -> int:
        """Background tasks still running."""
        return sum(1 for t in self._tasks if not t.done())

    def load_personal(self) -> int:
        """Re-read the personal best from the store."""
        if self.store is not None:
            self.personal_best = self.store.read()
        return self.personal_best

    async def get_global(self, force_refresh: bool = False) -> RemoteHighScoreRecord:
        """Global record, served from cache unless empty or force_refresh."""
        if self.client is None:
            return self.global_record
        if self._global_fetched and not force_refresh:
            return self.global_record

        writes_before = self._confirmed_writes
        record = await self.client.fetch()
        if record is not None and self._is_stale(record, writes_before):
            log.debug("Ignoring global high score %d fetched before a newer submit", record.score)
        elif record is not None:
            self.global_record = record
            self._global_fetched = True
            log.debug("Global high score %d by %s", record.score, record.achieved_by)
        return self.global_record

    async def submit_global(self, record: RemoteHighScoreRecord) -> bool:
        """Push a new global record; the cache is updated only on success."""
        if self.client is None:
            return False
        ok = await self.client.update(record)
        if ok:
            self.global_record = record
            self._global_fetched = True
            self._confirmed_writes += 1
            log.info("Global high score updated to %d by %s", record.score, record.achieved_by)
        return ok

    def _is_stale(self, record: RemoteHighScoreRecord, writes_before: int) -> bool:
        """A fetch that raced a confirmed submit must not lower the cached record."""
        return self._confirmed_writes != writes_before and record.score < self.global_record.score

    def is_new_personal_record(self, score: int) -> bool:
        return score > self.personal_best

    def is_new_global_record(self, score: int) -> bool:
        return self.has_remote and score > self.global_record.score

    def refresh_in_background(self, force: bool = True) -> Optional[asyncio.Task]:
        """Start a global refresh without waiting for it."""
        if self.client is None:
            return None
        return self._spawn(self.get_global(force_refresh=force))

    def record_round(
        self,
        summary: RoundSummary,
        player_name: str = 'Anonymous',
        on_confirmed: Optional[Callable[[bool], None]] = None,
    ) -> Optional[asyncio.Task]:
        """Persist the outcome of a finished round.

        The personal best is written synchronously when beaten. A beaten
        global record is submitted as a background task; on_confirmed is
        called with its success flag once it completes.

        Returns:
            The background task, or None if nothing was submitted
        """
        if summary.score > self.personal_best:
            self.personal_best = summary.score
            if self.store is not None:
                self.store.write(summary.score)

        if not self.is_new_global_record(summary.score):
            return None

        record = RemoteHighScoreRecord(
            score=summary.score,
            achieved_by=player_name,
            achieved_at=datetime.now(timezone.utc),
        )
        task = self._spawn(self.submit_global(record))
        if task is not None and on_confirmed is not None:
            task.add_done_callback(lambda t: on_confirmed(_task_result(t)))
        return task

    def _spawn(self, coro) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.debug("No running event loop; skipping remote high score call")
            coro.close()
            return None
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_pending(self) -> None:
        """Await every background task still running."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


def _task_result(task: asyncio.Task) -> bool:
    if task.cancelled() or task.exception() is not None:
        return False
    return bool(task.result())

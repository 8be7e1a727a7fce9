"""
Mask Off round simulation engine.

Headless, deterministic engine for the Mask Off whack-a-mole game:
characters pop up masked, sometimes slip and reveal themselves, and the
player scores only by tapping revealed characters.

Usage:
    from maskoff.config_loader import load_default_config
    from maskoff.round import RoundController

    controller = RoundController(load_default_config())
    controller.start('normal')
    while controller.is_running:
        controller.advance(16)
        ...

See maskoff.logging for log levels and structured round records.
"""

__version__ = '1.0.0'

__all__ = ['__version__']

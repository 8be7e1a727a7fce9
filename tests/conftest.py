"""
Shared fixtures for the Mask Off test suite.

Rounds are deterministic: the scheduler is driven by hand and randomness
comes from ScriptedRandom, whose draws the tests set explicitly.
"""

import copy
import random

import pytest

from maskoff.config_loader import ConfigLoader, default_config_dict, load_default_config
from maskoff.logging import MemorySink, register_sink, unregister_sink
from maskoff.round import RoundController
from maskoff.scheduler import EventScheduler


class ScriptedRandom(random.Random):
    """Random source with test-controlled draws.

    random() returns queued values first, then `value`. uniform() returns
    the lower bound and choice() the first element, so timings and picks
    are predictable.
    """

    def __init__(self, value: float = 0.0):
        super().__init__(0)
        self.value = value
        self.queue = []

    def random(self):
        if self.queue:
            return self.queue.pop(0)
        return self.value

    def uniform(self, a, b):
        return a

    def choice(self, seq):
        return seq[0]


def _deep_merge(base, overrides):
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


@pytest.fixture
def config():
    """Packaged default configuration."""
    return load_default_config()


@pytest.fixture
def config_factory():
    """Build a configuration from the default with nested overrides."""
    def factory(**overrides):
        data = _deep_merge(copy.deepcopy(default_config_dict()), overrides)
        return ConfigLoader().load_dict(data, source='<test>')
    return factory


@pytest.fixture
def scheduler():
    return EventScheduler()


@pytest.fixture
def rng():
    """Draws 0.5: on normal a preacher reveals after its mask (0.5 < 0.6)
    and does not start revealed (0.5 >= 0.4)."""
    return ScriptedRandom(0.5)


@pytest.fixture
def make_rng():
    """ScriptedRandom factory: make_rng(value)."""
    return ScriptedRandom


@pytest.fixture
def controller(config, rng):
    """Controller on the default configuration with scripted randomness."""
    return RoundController(config, rng=rng)


@pytest.fixture
def start_quiet():
    """Start a round with automatic spawning switched off.

    Characters are then placed with controller.spawn().
    """
    def start(ctrl, difficulty='normal'):
        ctrl.start(difficulty)
        ctrl.spawner.stop()
        return ctrl
    return start


@pytest.fixture
def memory_sink():
    """Capture structured 'round' records."""
    sink = MemorySink()
    register_sink('round', sink)
    yield sink
    unregister_sink('round')

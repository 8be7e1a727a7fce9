"""Tests for the maskoff-sim command line simulator."""

import copy
import json

import pytest

from maskoff import logging as mlog
from maskoff.cli import AutoPlayer, build_parser, main
from maskoff.models import CharacterState
from maskoff.round import RoundController


@pytest.fixture
def sim_env(monkeypatch, tmp_path):
    """Offline settings with the personal best in a temp file."""
    monkeypatch.setenv('MASKOFF_HIGHSCORE_FILE', str(tmp_path / 'highscore.json'))
    monkeypatch.setenv('MASKOFF_HIGHSCORE_URL', '')
    monkeypatch.setenv('MASKOFF_CONFIG_PATH', '')
    monkeypatch.setenv('MASKOFF_DIFFICULTY', '')
    return tmp_path


class TestParser:

    def test_defaults(self):
        """Test the default simulation parameters."""
        args = build_parser().parse_args([])
        assert args.rounds == 1
        assert args.accuracy == 0.8
        assert args.reaction_ms == 250.0
        assert args.spam_rate == 0.0
        assert not args.offline

    def test_options(self):
        """Test every option parses."""
        args = build_parser().parse_args([
            '--difficulty', 'hard', '--seed', '4', '--rounds', '3', '--accuracy', '0.5',
            '--reaction-ms', '120', '--spam-rate', '2', '--player-name', 'Gal', '--offline',
        ])
        assert args.difficulty == 'hard'
        assert args.seed == 4
        assert args.reaction_ms == 120.0
        assert args.spam_rate == 2.0
        assert args.player_name == 'Gal'
        assert args.offline


class TestMain:

    def test_list(self, sim_env, capsys):
        """Test --list shows difficulties and characters."""
        assert main(['--list']) == 0
        out = capsys.readouterr().out
        assert 'normal (default)' in out
        assert 'puppet' in out

    def test_simulate_rounds(self, sim_env, capsys):
        """Test a seeded offline simulation completes and reports each round."""
        assert main(['--difficulty', 'normal', '--seed', '3', '--rounds', '2', '--offline']) == 0

        out = capsys.readouterr().out
        assert 'Round 1' in out
        assert 'Round 2' in out
        assert 'Rating:' in out
        assert 'Personal best:' in out

    def test_unknown_difficulty(self, sim_env):
        """Test a bad difficulty exits with an error code."""
        assert main(['--difficulty', 'nightmare', '--offline']) == 1

    def test_invalid_rounds(self, sim_env):
        """Test --rounds must be positive."""
        assert main(['--rounds', '0']) == 1

    def test_invalid_accuracy(self, sim_env):
        """Test --accuracy must be a probability."""
        assert main(['--accuracy', '1.5']) == 1


class TestAutoPlayer:

    def test_taps_revealed_after_reaction(self, config, make_rng, start_quiet):
        """Test the bot taps a revealed character once its reaction time passed."""
        rng = make_rng(0.0)
        controller = start_quiet(RoundController(config, rng=rng))
        character = controller.spawn('preacher', 0)
        player = AutoPlayer(controller, rng, accuracy=1.0, reaction_ms=100)

        player.step(16)
        assert character.state == CharacterState.REVEALED

        controller.advance(100)
        player.step(16)
        assert character.state == CharacterState.RESOLVED
        assert controller.round_state.correct_hits == 1

    def test_lets_some_go(self, config, make_rng, start_quiet):
        """Test a zero-accuracy bot never taps."""
        rng = make_rng(0.0)
        controller = start_quiet(RoundController(config, rng=rng))
        controller.spawn('preacher', 0)
        player = AutoPlayer(controller, rng, accuracy=0.0, reaction_ms=0)

        player.step(16)

        assert controller.round_state.attempts == 0

    def test_spam_hits_masked(self, config, make_rng, start_quiet):
        """Test spamming taps masked characters as wrong hits."""
        rng = make_rng(0.99)
        controller = start_quiet(RoundController(config, rng=rng))
        controller.spawn('preacher', 0)
        player = AutoPlayer(controller, make_rng(0.0), accuracy=0.0, spam_rate=100.0)

        player.step(16)

        assert controller.round_state.wrong_hits == 1


class TestRecords:

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        saved = copy.deepcopy(mlog._config)
        mlog._config['records'].clear()
        yield
        mlog._config.clear()
        mlog._config.update(saved)

    def test_record_dir(self, sim_env):
        """Test --record-dir writes round and feedback records as JSONL."""
        record_dir = sim_env / 'records'

        assert main(['--seed', '5', '--offline', '--record-dir', str(record_dir)]) == 0

        round_files = list(record_dir.glob('*_round.jsonl'))
        feedback_files = list(record_dir.glob('*_feedback.jsonl'))
        assert len(round_files) == 1
        assert len(feedback_files) == 1
        events = [json.loads(line).get('event') for line in round_files[0].read_text().splitlines()]
        assert 'round_start' in events
        assert 'round_end' in events
        cues = [json.loads(line) for line in feedback_files[0].read_text().splitlines()]
        assert any(c.get('channel') == 'music' and c.get('cue') == 'start' for c in cues)

    def test_muted_run_records_no_cues(self, sim_env):
        """Test --no-sound --no-music leaves the feedback log empty."""
        record_dir = sim_env / 'records'

        assert main([
            '--seed', '5', '--offline', '--no-sound', '--no-music', '--record-dir', str(record_dir),
        ]) == 0

        assert list(record_dir.glob('*_round.jsonl'))
        assert not list(record_dir.glob('*_feedback.jsonl'))

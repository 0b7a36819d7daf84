import os
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

from wordgroups.game_logic import GameLogic
from wordgroups.game_stats import GameStats
from wordgroups.puzzle_service import PuzzleService, build_puzzle
from wordgroups.session_manager import SessionManager
from wordgroups.session_store import LocalRecordStore
from wordgroups.setup_data import SAMPLE_PUZZLES


class FakeClock:
    """Deterministic clock; each call returns the current time, advance() moves it."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 3, 20, 10, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def puzzle_content():
    """Fish / ___BERRY / Trees / ___BOARD puzzle."""
    return SAMPLE_PUZZLES[0]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    return LocalRecordStore(str(tmp_path / 'game_data'))


@pytest.fixture
def manager(store):
    return SessionManager(store)


@pytest.fixture
def approved_puzzle(manager, puzzle_content):
    puzzle = build_puzzle(puzzle_content, approved=True, shuffle=False)
    manager.save_puzzle(puzzle)
    return puzzle


@pytest.fixture
def game_monitor():
    return Mock()


@pytest.fixture
def game(manager, clock, game_monitor):
    return GameLogic(manager, GameStats(manager, max_retries=10), clock=clock, monitor=game_monitor)


@pytest.fixture
def puzzle_service(manager, clock):
    return PuzzleService(manager, clock=clock)


@pytest.fixture
def aws_credentials():
    """Mocked AWS Credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"

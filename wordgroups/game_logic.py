import logging
import threading
import weakref
from datetime import datetime
from typing import Callable, Dict, Optional, Sequence, Tuple

from .errors import (
    AlreadyCompletedError, InvalidGuessSizeError, NotApprovedError, NotFoundError, UnknownWordError,
)
from .evaluator import Classification, classify
from .game_stats import GameStats
from .models import GuessOutcome, Session, SessionState
from .monitoring import GameMonitor, monitor as default_monitor
from .puzzle import GROUP_COUNT, GROUP_SIZE, Puzzle, normalize_words, utcnow
from .session_manager import SessionManager

logger = logging.getLogger(__name__)


class GameLogic:
    """Session state machine: in_progress -> won | lost.

    Guesses for one session are applied one at a time under a per-session
    lock; the store's version check catches writers in other processes.
    """

    def __init__(self, manager: Optional[SessionManager] = None, stats: Optional[GameStats] = None,
                 clock: Optional[Callable[[], datetime]] = None, monitor: Optional[GameMonitor] = None):
        self.manager = manager or SessionManager()
        self.stats = stats or GameStats(self.manager)
        self.clock = clock or utcnow
        self.monitor = monitor or default_monitor
        # an entry lives only while some caller holds a reference to its lock
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _session_lock(self, session_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = self._locks[session_id] = threading.Lock()
            return lock

    def _load_puzzle(self, puzzle_id: str) -> Puzzle:
        puzzle = self.manager.load_puzzle(puzzle_id)
        if puzzle is None:
            raise NotFoundError('Puzzle not found')
        return puzzle

    def _start(self, puzzle_id: str, username: Optional[str]) -> Tuple[Session, Puzzle]:
        puzzle = self._load_puzzle(puzzle_id)
        if not puzzle.approved:
            raise NotApprovedError('This puzzle has not been approved yet')
        session = Session(
            puzzle_id=puzzle.id,
            username=(username or '').strip() or None,
            started_at=self.clock(),
        )
        self.manager.save_session(session)
        logger.info(f"Game session started: session={session.id} puzzle={puzzle.id} user={session.username or '-'}")
        return session, puzzle

    def start_session(self, puzzle_id: str, username: Optional[str] = None) -> Session:
        return self._start(puzzle_id, username)[0]

    def start_game(self, puzzle_id: str, username: Optional[str] = None) -> Dict:
        """Start a session and return it with the puzzle being played."""
        session, puzzle = self._start(puzzle_id, username)
        return {'session_id': session.id, 'session': session, 'puzzle': puzzle}

    def get_session(self, session_id: str) -> Session:
        session = self.manager.load_session(session_id)
        if session is None:
            raise NotFoundError('Game session not found')
        return session

    def submit_guess(self, session_id: str, selected_words: Sequence[str]) -> GuessOutcome:
        with self._session_lock(session_id):
            session = self.get_session(session_id)
            if session.is_complete:
                raise AlreadyCompletedError('Game session already completed')
            if len(selected_words) != GROUP_SIZE:
                raise InvalidGuessSizeError(f'Must select exactly {GROUP_SIZE} words')
            selected = normalize_words(selected_words)
            if len(selected) != GROUP_SIZE:
                raise InvalidGuessSizeError(f'Must select {GROUP_SIZE} different words')
            puzzle = self._load_puzzle(session.puzzle_id)
            unknown = sorted(selected - puzzle.word_set)
            if unknown:
                raise UnknownWordError(f"Not in this puzzle: {', '.join(unknown)}")

            result = classify(selected, puzzle.categories, session.found_groups)
            updated = self._apply(session, result)
            # Persist before reporting; a failed write leaves the stored session untouched
            self.manager.save_session(updated)

            if result.matched:
                logger.info(f"Correct group found: session={session_id} group='{result.matched.name}'")
            else:
                logger.info(f"Incorrect guess: session={session_id} mistakes_remaining={updated.mistakes_remaining}"
                            f"{' (one away)' if result.is_one_away else ''}")
            if updated.is_complete:
                self._on_terminal(updated)

            return GuessOutcome(
                success=result.matched is not None,
                matched_category=result.matched,
                is_one_away=result.is_one_away,
                is_complete=updated.is_complete,
                is_won=updated.is_won,
                mistakes_remaining=updated.mistakes_remaining,
            )

    def _apply(self, session: Session, result: Classification) -> Session:
        updated = session.model_copy(deep=True)
        updated.attempts += 1
        if result.matched:
            updated.found_groups.append(result.matched)
            if len(updated.found_groups) == GROUP_COUNT:
                self._finish(updated, SessionState.WON)
        else:
            updated.mistakes_remaining -= 1
            if updated.mistakes_remaining == 0:
                self._finish(updated, SessionState.LOST)
        return updated

    def _finish(self, session: Session, state: SessionState) -> None:
        now = self.clock()
        session.state = state
        session.completed_at = now
        session.time_taken_seconds = max(0, int((now - session.started_at).total_seconds()))

    def _on_terminal(self, session: Session) -> None:
        logger.info(f"Game over: session={session.id} state={session.state.value} "
                    f"time={session.time_taken_seconds}s attempts={session.attempts}")
        self.stats.record_session(session)
        self.monitor.track_game_completed(session.puzzle_id, session.is_won, session.time_taken_seconds or 0)

import logging
from typing import List, Optional, Sequence

from .errors import ConflictError
from .models import AdminLog, DailyPuzzle, PlayerStats, Session
from .puzzle import Puzzle
from .session_store import (
    ADMIN_LOGS, DAILY_PUZZLES, PLAYER_STATS, PUZZLES, SESSIONS,
    RecordStore, WriteOp, get_record_store,
)

logger = logging.getLogger(__name__)


def player_key(username: str) -> str:
    return (username or '').strip().lower()


class SessionManager:
    """Typed access to puzzles, sessions and stats on top of a record store."""

    def __init__(self, store: Optional[RecordStore] = None):
        self.store = store or get_record_store()

    # --- write operations, for callers that need several records in one transaction ---
    @staticmethod
    def _op(kind: str, key: str, model) -> WriteOp:
        expected = model.version if model.version > 0 else None
        return WriteOp(kind, key, model.model_dump(mode='json'), expected)

    def puzzle_op(self, puzzle: Puzzle) -> WriteOp:
        return self._op(PUZZLES, puzzle.id, puzzle)

    def session_op(self, session: Session) -> WriteOp:
        return self._op(SESSIONS, session.id, session)

    def player_op(self, stats: PlayerStats) -> WriteOp:
        return self._op(PLAYER_STATS, player_key(stats.username), stats)

    def commit(self, ops: Sequence[WriteOp], models: Sequence) -> None:
        """Write all ops atomically, then sync each model's version with what was stored."""
        written = self.store.transact(ops)
        for model, record in zip(models, written):
            model.version = record['version']

    def _save(self, op: WriteOp, model):
        self.commit([op], [model])
        return model

    # --- puzzles ---
    def load_puzzle(self, puzzle_id: str) -> Optional[Puzzle]:
        record = self.store.get(PUZZLES, puzzle_id)
        return Puzzle.model_validate(record) if record else None

    def save_puzzle(self, puzzle: Puzzle) -> Puzzle:
        return self._save(self.puzzle_op(puzzle), puzzle)

    def delete_puzzle(self, puzzle_id: str) -> None:
        self.store.delete(PUZZLES, puzzle_id)

    def list_puzzles(self) -> List[Puzzle]:
        puzzles = [Puzzle.model_validate(r) for r in self.store.scan(PUZZLES)]
        return sorted(puzzles, key=lambda p: p.created_at, reverse=True)

    # --- sessions ---
    def load_session(self, session_id: str) -> Optional[Session]:
        record = self.store.get(SESSIONS, session_id)
        return Session.model_validate(record) if record else None

    def save_session(self, session: Session) -> Session:
        return self._save(self.session_op(session), session)

    def list_sessions(self) -> List[Session]:
        return [Session.model_validate(r) for r in self.store.scan(SESSIONS)]

    # --- player stats ---
    def load_player_stats(self, username: str) -> Optional[PlayerStats]:
        record = self.store.get(PLAYER_STATS, player_key(username))
        return PlayerStats.model_validate(record) if record else None

    def save_player_stats(self, stats: PlayerStats) -> PlayerStats:
        return self._save(self.player_op(stats), stats)

    def list_player_stats(self) -> List[PlayerStats]:
        return [PlayerStats.model_validate(r) for r in self.store.scan(PLAYER_STATS)]

    # --- daily puzzle ---
    def load_daily(self, date: str) -> Optional[DailyPuzzle]:
        record = self.store.get(DAILY_PUZZLES, date)
        return DailyPuzzle.model_validate(record) if record else None

    def set_daily(self, date: str, puzzle_id: str) -> DailyPuzzle:
        # Upsert; a concurrent writer for the same date simply makes us retry once
        for attempt in range(2):
            daily = self.load_daily(date) or DailyPuzzle(date=date, puzzle_id=puzzle_id)
            daily.puzzle_id = puzzle_id
            try:
                return self._save(WriteOp(DAILY_PUZZLES, date, daily.model_dump(mode='json'),
                                          daily.version or None), daily)
            except ConflictError:
                if attempt:
                    raise
                logger.info(f"Daily puzzle for {date} changed concurrently; retrying")

    # --- admin log ---
    def add_admin_log(self, action: str, puzzle_id: Optional[str] = None, details: Optional[dict] = None) -> AdminLog:
        entry = AdminLog(action=action, puzzle_id=puzzle_id, details=details or {})
        return self._save(WriteOp(ADMIN_LOGS, entry.id, entry.model_dump(mode='json')), entry)

    def list_admin_logs(self, limit: int = 50) -> List[AdminLog]:
        logs = [AdminLog.model_validate(r) for r in self.store.scan(ADMIN_LOGS)]
        logs.sort(key=lambda log: log.created_at, reverse=True)
        return logs[:max(0, limit)]

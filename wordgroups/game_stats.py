import logging
from typing import Dict, List, Optional

from . import config
from .errors import ConflictError, InvalidInputError, NotFoundError
from .models import PlayerStats, Session
from .puzzle import Puzzle, utcnow
from .session_manager import SessionManager, player_key

logger = logging.getLogger(__name__)

SYNC_COUNTERS = ('total_games', 'total_wins', 'perfect_games', 'current_streak', 'best_streak')


def running_mean(old_mean: float, old_count: int, value: float) -> float:
    """Incremental mean: fold one more value into a mean over old_count values."""
    return (old_mean * old_count + value) / (old_count + 1)


def apply_puzzle_result(puzzle: Puzzle, session: Session) -> None:
    count = puzzle.play_count
    puzzle.avg_completion_seconds = running_mean(puzzle.avg_completion_seconds, count, session.time_taken_seconds or 0)
    puzzle.avg_mistakes = running_mean(puzzle.avg_mistakes, count, session.mistakes_made)
    puzzle.play_count = count + 1


def apply_player_result(stats: PlayerStats, session: Session) -> None:
    count = stats.total_games
    stats.avg_time_seconds = running_mean(stats.avg_time_seconds, count, session.time_taken_seconds or 0)
    stats.avg_mistakes = running_mean(stats.avg_mistakes, count, session.mistakes_made)
    stats.total_games = count + 1
    if session.is_won:
        stats.total_wins += 1
        if session.mistakes_made == 0:
            stats.perfect_games += 1
        stats.current_streak += 1
    else:
        stats.current_streak = 0
    stats.best_streak = max(stats.best_streak, stats.current_streak)
    stats.updated_at = utcnow()


class GameStats:
    """Puzzle-level and player-level aggregates, updated once per finished session."""

    def __init__(self, manager: SessionManager, max_retries: Optional[int] = None):
        self.manager = manager
        self.max_retries = max_retries or config.stats_max_retries()

    def record_session(self, session: Session) -> bool:
        """Fold a finished session into the aggregates.

        Returns True when the aggregates were updated. Never raises: the
        player's outcome is already final, so bookkeeping failures are only
        logged.
        """
        try:
            return self._record(session)
        except Exception:
            logger.exception(f"Failed to update stats for session {session.id}")
            return False

    def _record(self, session: Session) -> bool:
        for attempt in range(1, self.max_retries + 1):
            current = self.manager.load_session(session.id)
            if current is None:
                raise NotFoundError(f"Session {session.id} not found")
            if current.stats_recorded:
                logger.info(f"Stats already recorded for session {session.id}; skipping")
                return False
            if not current.is_complete:
                logger.warning(f"Session {session.id} is still in progress; not recording stats")
                return False
            puzzle = self.manager.load_puzzle(current.puzzle_id)
            if puzzle is None:
                raise NotFoundError(f"Puzzle {current.puzzle_id} not found")

            apply_puzzle_result(puzzle, current)
            ops = [self.manager.puzzle_op(puzzle)]
            models = [puzzle]
            if current.username:
                stats = self.manager.load_player_stats(current.username) or PlayerStats(username=current.username)
                apply_player_result(stats, current)
                ops.append(self.manager.player_op(stats))
                models.append(stats)
            current.stats_recorded = True
            ops.append(self.manager.session_op(current))
            models.append(current)

            try:
                self.manager.commit(ops, models)
            except ConflictError:
                logger.info(f"Stats write for session {session.id} conflicted (attempt {attempt}); retrying")
                continue
            session.stats_recorded = True
            session.version = current.version
            logger.info(f"Stats updated for session {session.id} (puzzle {puzzle.id}, plays={puzzle.play_count})")
            return True
        raise ConflictError(f"Gave up updating stats for session {session.id} after {self.max_retries} attempts")

    def get_player_stats(self, username: str) -> PlayerStats:
        stats = self.manager.load_player_stats(username) if player_key(username) else None
        if stats is None:
            raise NotFoundError('User stats not found')
        return stats

    def get_leaderboard(self, limit: int = 10) -> List[PlayerStats]:
        players = self.manager.list_player_stats()
        players.sort(key=lambda s: (s.total_wins, s.best_streak, -s.avg_mistakes), reverse=True)
        return players[:max(0, min(limit, 100))]

    def sync_local_stats(self, data: Dict) -> PlayerStats:
        """Merge counters kept client-side into the stored record (element-wise max)."""
        username = (data.get('username') or '').strip()
        if not username:
            raise InvalidInputError('username is required')
        for attempt in range(1, self.max_retries + 1):
            stats = self.manager.load_player_stats(username) or PlayerStats(username=username)
            for field in SYNC_COUNTERS:
                setattr(stats, field, max(getattr(stats, field), int(data.get(field) or 0)))
            stats.best_streak = max(stats.best_streak, stats.current_streak)
            if data.get('avg_time_seconds') is not None:
                stats.avg_time_seconds = float(data['avg_time_seconds'])
            if data.get('avg_mistakes') is not None:
                stats.avg_mistakes = float(data['avg_mistakes'])
            stats.updated_at = utcnow()
            try:
                self.manager.save_player_stats(stats)
            except ConflictError:
                logger.info(f"Stats sync for {username} conflicted (attempt {attempt}); retrying")
                continue
            logger.info(f"Local stats synced for {username}")
            return stats
        raise ConflictError(f"Could not sync stats for {username}")

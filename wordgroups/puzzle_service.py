import logging
import random
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional

from .errors import (
    ConflictError, GenerationError, InvalidInputError, InvalidPuzzleError, NotApprovedError, NotFoundError,
)
from .generation_quota import DailyGenerationQuota
from .puzzle import Category, Puzzle, normalize_word, utcnow
from .puzzle_llm import generate_puzzle_content
from .puzzle_validation import assert_valid_puzzle
from .session_manager import SessionManager

logger = logging.getLogger(__name__)

DEFAULT_RATIONALE = 'AI-generated puzzle with diverse categories.'


def _raw_category(cat) -> Dict:
    if not isinstance(cat, dict):
        return cat
    words = cat.get('words')
    return {
        'name': str(cat.get('name') or '').strip(),
        'words': [normalize_word(w) for w in words] if isinstance(words, list) else words,
        'tier': cat.get('tier') or cat.get('color') or cat.get('difficulty'),
        'rationale': str(cat.get('reasoning') or cat.get('rationale') or '').strip(),
    }


def build_puzzle(content: Dict, difficulty: Optional[str] = None, approved: bool = False,
                 shuffle: bool = True) -> Puzzle:
    """Turn authoring output into a Puzzle, rejecting anything structurally invalid.

    Categories may label their tier as a tier, a color or a legacy difficulty
    word. When no word order is given the 16 words are shuffled so the grid
    does not give the groups away.
    """
    if not isinstance(content, dict) or not isinstance(content.get('categories'), list):
        raise InvalidPuzzleError(['Must have exactly 4 categories'])
    raw_categories = [_raw_category(c) for c in content['categories']]
    words = content.get('words')
    if words is None:
        words = [w for c in raw_categories if isinstance(c, dict) and isinstance(c.get('words'), list)
                 for w in c['words']]
        if shuffle:
            random.shuffle(words)
    data = {
        'words': [normalize_word(w) for w in words] if isinstance(words, list) else words,
        'categories': raw_categories,
    }
    assert_valid_puzzle(data)

    categories = sorted((Category(**c) for c in raw_categories), key=lambda c: c.tier.rank)
    return Puzzle(
        words=data['words'],
        categories=categories,
        approved=approved,
        difficulty=str(difficulty or content.get('difficulty') or 'medium'),
        rationale=str(content.get('overall_reasoning') or content.get('rationale') or DEFAULT_RATIONALE),
    )


class PuzzleService:
    """Puzzle authoring and the admin approval workflow."""

    def __init__(self, manager: Optional[SessionManager] = None,
                 quota: Optional[DailyGenerationQuota] = None,
                 generator: Optional[Callable[[Optional[str]], Awaitable[Dict]]] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.manager = manager or SessionManager()
        self.quota = quota or DailyGenerationQuota()
        self.generator = generator or generate_puzzle_content
        self.clock = clock or utcnow

    async def generate_puzzle(self, target_difficulty: Optional[str] = None) -> Puzzle:
        self.quota.check()
        content = await self.generator(target_difficulty)
        try:
            puzzle = build_puzzle(content, difficulty=target_difficulty)
        except InvalidPuzzleError as e:
            logger.error(f"Generated puzzle rejected: {e.message}")
            raise GenerationError(f"Generated puzzle failed validation: {'; '.join(e.errors)}") from e
        remaining = self.quota.consume()
        self.manager.save_puzzle(puzzle)
        self.manager.add_admin_log('generate', puzzle.id, {
            'difficulty': puzzle.difficulty,
            'remainingQuota': remaining,
        })
        logger.info(f"Puzzle generated and logged: {puzzle.id} (remaining quota {remaining})")
        return puzzle

    def add_puzzle(self, content: Dict, approved: bool = False) -> Puzzle:
        """Admit a hand-written puzzle (seed data, imports)."""
        puzzle = build_puzzle(content, approved=approved, shuffle=False)
        self.manager.save_puzzle(puzzle)
        logger.info(f"Puzzle added: {puzzle.id} (approved={approved})")
        return puzzle

    def get_puzzle(self, puzzle_id: str) -> Puzzle:
        puzzle = self.manager.load_puzzle(puzzle_id)
        if puzzle is None:
            raise NotFoundError('Puzzle not found')
        return puzzle

    def list_puzzles(self) -> List[Puzzle]:
        return self.manager.list_puzzles()

    def list_approved_puzzles(self) -> List[Puzzle]:
        return [p for p in self.manager.list_puzzles() if p.approved]

    def approve_puzzle(self, puzzle_id: str) -> Puzzle:
        # Stats may bump the record between our read and write; re-read on conflict
        for attempt in range(3):
            puzzle = self.get_puzzle(puzzle_id)
            previous = puzzle.approved
            puzzle.approved = True
            try:
                self.manager.save_puzzle(puzzle)
                break
            except ConflictError:
                if attempt == 2:
                    raise
        self.manager.add_admin_log('approve', puzzle_id, {'previousStatus': previous})
        logger.info(f"Puzzle approved: {puzzle_id}")
        return puzzle

    def reject_puzzle(self, puzzle_id: str) -> None:
        puzzle = self.get_puzzle(puzzle_id)
        self.manager.add_admin_log('reject', puzzle_id, {'difficulty': puzzle.difficulty})
        self.manager.delete_puzzle(puzzle_id)
        logger.info(f"Puzzle rejected and deleted: {puzzle_id}")

    def get_random_approved_puzzle(self) -> Puzzle:
        approved = self.list_approved_puzzles()
        if not approved:
            raise NotFoundError('No approved puzzles available')
        return random.choice(approved)

    def set_daily_puzzle(self, date: str, puzzle_id: str):
        try:
            datetime.strptime(date, '%Y-%m-%d')
        except (TypeError, ValueError):
            raise InvalidInputError('date must be formatted YYYY-MM-DD')
        puzzle = self.get_puzzle(puzzle_id)
        if not puzzle.approved:
            raise NotApprovedError('Only approved puzzles can be set as daily puzzle')
        daily = self.manager.set_daily(date, puzzle_id)
        self.manager.add_admin_log('set_daily', puzzle_id, {'date': date})
        return daily

    def get_daily_puzzle(self, today: Optional[str] = None) -> Puzzle:
        today = today or self.clock().date().isoformat()
        daily = self.manager.load_daily(today)
        if daily:
            puzzle = self.manager.load_puzzle(daily.puzzle_id)
            if puzzle and puzzle.approved:
                return puzzle
            logger.warning(f"Daily puzzle {daily.puzzle_id} for {today} is missing or unapproved")
        return self.get_random_approved_puzzle()

    def get_admin_logs(self, limit: int = 50):
        return self.manager.list_admin_logs(limit)

    def get_admin_stats(self) -> Dict:
        puzzles = self.manager.list_puzzles()
        sessions = self.manager.list_sessions()
        approved = sum(1 for p in puzzles if p.approved)
        return {
            'totalPuzzles': len(puzzles),
            'approvedPuzzles': approved,
            'pendingPuzzles': len(puzzles) - approved,
            'totalGames': len(sessions),
            'completedGames': sum(1 for s in sessions if s.is_complete),
            'totalPlayers': len(self.manager.list_player_stats()),
            'remainingQuota': self.quota.remaining(),
        }

    def remaining_quota(self) -> int:
        return self.quota.remaining()

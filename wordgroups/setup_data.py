"""Seed the store with a few approved puzzles, sample player stats and today's daily puzzle."""

import logging
from typing import Dict, List, Optional

from .models import PlayerStats
from .monitoring import setup_logging
from .puzzle import Puzzle
from .puzzle_service import PuzzleService
from .session_manager import SessionManager

logger = logging.getLogger(__name__)

SAMPLE_PUZZLES: List[Dict] = [
    {
        'words': ['BASS', 'TROUT', 'SALMON', 'TUNA', 'ELDER', 'GOOSE', 'STRAW', 'BLUE',
                  'MAPLE', 'OAK', 'PINE', 'BIRCH', 'KEYBOARD', 'SURFBOARD', 'CARDBOARD', 'DASHBOARD'],
        'categories': [
            {'name': 'Types of Fish', 'words': ['BASS', 'TROUT', 'SALMON', 'TUNA'], 'tier': 'tier1'},
            {'name': '___BERRY', 'words': ['ELDER', 'GOOSE', 'STRAW', 'BLUE'], 'tier': 'tier2'},
            {'name': 'Types of Trees', 'words': ['MAPLE', 'OAK', 'PINE', 'BIRCH'], 'tier': 'tier3'},
            {'name': 'Words ending in BOARD', 'words': ['KEYBOARD', 'SURFBOARD', 'CARDBOARD', 'DASHBOARD'],
             'tier': 'tier4'},
        ],
        'overall_reasoning': 'Easy: common fish species. Medium: words that come before BERRY, '
                             'with ELDER doubling as a tree. '
                             'Tricky: tree species that could be confused with other wood-related words. '
                             'Hard: compound words all ending in BOARD.',
        'difficulty': 'medium',
    },
    {
        'words': ['SPIN', 'ROTATE', 'TURN', 'WHIRL', 'ANGRY', 'FURIOUS', 'MAD', 'IRATE',
                  'PARIS', 'LONDON', 'BERLIN', 'ROME', 'CHICAGO', 'BOSTON', 'SEATTLE', 'MIAMI'],
        'categories': [
            {'name': 'Words meaning to rotate', 'words': ['SPIN', 'ROTATE', 'TURN', 'WHIRL'], 'tier': 'tier1'},
            {'name': 'Words meaning angry', 'words': ['ANGRY', 'FURIOUS', 'MAD', 'IRATE'], 'tier': 'tier2'},
            {'name': 'European capitals', 'words': ['PARIS', 'LONDON', 'BERLIN', 'ROME'], 'tier': 'tier3'},
            {'name': 'US cities', 'words': ['CHICAGO', 'BOSTON', 'SEATTLE', 'MIAMI'], 'tier': 'tier4'},
        ],
        'overall_reasoning': 'Two semantic categories (rotation and anger) paired with two geography '
                             'categories (European capitals and US cities).',
        'difficulty': 'easy',
    },
    {
        'words': ['BANK', 'POOL', 'WAVE', 'CURRENT', 'IRON', 'PRESS', 'STEAM', 'WRINKLE',
                  'JAVA', 'PYTHON', 'SWIFT', 'RUBY', 'RING', 'BELL', 'HORN', 'WHISTLE'],
        'categories': [
            {'name': 'Things that make noise', 'words': ['RING', 'BELL', 'HORN', 'WHISTLE'], 'tier': 'tier1'},
            {'name': 'River-related words', 'words': ['BANK', 'POOL', 'WAVE', 'CURRENT'], 'tier': 'tier2'},
            {'name': 'Ironing-related', 'words': ['IRON', 'PRESS', 'STEAM', 'WRINKLE'], 'tier': 'tier3'},
            {'name': 'Programming languages', 'words': ['JAVA', 'PYTHON', 'SWIFT', 'RUBY'], 'tier': 'tier4'},
        ],
        'overall_reasoning': 'Mixes functional contexts (river, ironing) with technical knowledge '
                             '(programming languages) and noise-making objects. Many words carry '
                             'several meanings.',
        'difficulty': 'tricky',
    },
]

SAMPLE_STATS: List[Dict] = [
    {'username': 'Alice', 'total_games': 15, 'total_wins': 12, 'perfect_games': 3,
     'current_streak': 5, 'best_streak': 7, 'avg_time_seconds': 245.5, 'avg_mistakes': 1.2},
    {'username': 'Bob', 'total_games': 8, 'total_wins': 5, 'perfect_games': 1,
     'current_streak': 2, 'best_streak': 3, 'avg_time_seconds': 312.8, 'avg_mistakes': 2.1},
]


def seed_puzzles(service: PuzzleService) -> List[Puzzle]:
    return [service.add_puzzle(content, approved=True) for content in SAMPLE_PUZZLES]


def seed_stats(manager: SessionManager) -> None:
    for data in SAMPLE_STATS:
        if manager.load_player_stats(data['username']) is None:
            manager.save_player_stats(PlayerStats(**data))


def seed(service: Optional[PuzzleService] = None) -> List[Puzzle]:
    service = service or PuzzleService()
    puzzles = seed_puzzles(service)
    logger.info(f"Created {len(puzzles)} sample puzzles")
    seed_stats(service.manager)
    logger.info("Created sample stats")
    today = service.clock().date().isoformat()
    if service.manager.load_daily(today) is None:
        service.set_daily_puzzle(today, puzzles[0].id)
        logger.info(f"Daily puzzle for {today} set to {puzzles[0].id}")
    return puzzles


def main():
    setup_logging()
    seed()
    logger.info("Seed completed!")


if __name__ == '__main__':
    main()

from typing import Dict, List, Union

from .errors import InvalidPuzzleError
from .puzzle import GROUP_COUNT, GROUP_SIZE, PUZZLE_SIZE, Puzzle, Tier, normalize_word, tier_from_label


def validate_puzzle(puzzle: Union[Puzzle, Dict]) -> List[str]:
    """Return every structural problem with a puzzle; an empty list means it may be admitted.

    Accepts either a Puzzle or the raw dict produced by an authoring pipeline,
    so malformed generator output is reported instead of raising.
    """
    if isinstance(puzzle, Puzzle):
        puzzle = puzzle.model_dump(mode='json')
    if not isinstance(puzzle, dict):
        return ['Puzzle is not an object']

    errors: List[str] = []
    categories = puzzle.get('categories')
    if not isinstance(categories, list) or len(categories) != GROUP_COUNT:
        return [f'Must have exactly {GROUP_COUNT} categories']

    tiers = []
    all_words: List[str] = []
    for cat in categories:
        if not isinstance(cat, dict):
            errors.append('Category is not an object')
            continue
        name = cat.get('name')
        if not name or not isinstance(name, str) or not name.strip():
            errors.append('Category is missing a valid name')
            name = 'unknown'
        try:
            tiers.append(tier_from_label(cat.get('tier')))
        except ValueError:
            errors.append(f'Category "{name}" has invalid tier: {cat.get("tier")!r}')
        words = cat.get('words')
        if not isinstance(words, list) or len(words) != GROUP_SIZE:
            errors.append(f'Category "{name}" must have exactly {GROUP_SIZE} words')
            continue
        normalized = [normalize_word(w) for w in words]
        if any(not w for w in normalized):
            errors.append(f'Category "{name}" has an empty word')
        if len(set(normalized)) != GROUP_SIZE:
            errors.append(f'Category "{name}" has duplicate words')
        all_words.extend(normalized)

    for tier in Tier:
        if tier not in tiers:
            errors.append(f'Missing category tier: {tier.value}')
    if len(set(tiers)) != len(tiers):
        errors.append('Category tiers must be unique (each tier exactly once)')

    if len(all_words) != PUZZLE_SIZE:
        errors.append(f'Puzzle must contain exactly {PUZZLE_SIZE} words ({GROUP_COUNT} categories x {GROUP_SIZE} words)')
    category_words = set(all_words)
    if len(category_words) != len(all_words):
        errors.append('Puzzle words must be globally unique across categories')

    words = puzzle.get('words')
    if not isinstance(words, list):
        errors.append('Puzzle.words must be a list')
    else:
        puzzle_words = [normalize_word(w) for w in words]
        if len(puzzle_words) != PUZZLE_SIZE:
            errors.append(f'Puzzle.words must have length {PUZZLE_SIZE}')
        if len(set(puzzle_words)) != len(puzzle_words):
            errors.append('Puzzle.words must be unique')
        for w in sorted(category_words - set(puzzle_words)):
            errors.append(f'Puzzle.words missing word from categories: {w}')
        for w in sorted(set(puzzle_words) - category_words):
            errors.append(f'Puzzle.words contains extra word not in categories: {w}')

    return errors


def assert_valid_puzzle(puzzle: Union[Puzzle, Dict]) -> None:
    errors = validate_puzzle(puzzle)
    if errors:
        raise InvalidPuzzleError(errors)

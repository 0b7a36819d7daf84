"""
Guess classification (no storage, no session state).

For each guess we compute:
- matched: the not-yet-found category whose words are exactly the selection
- is_one_away: no match, but some not-yet-found category shares 3 of its 4 words
"""

import logging
from typing import Iterable, NamedTuple, Optional, Sequence

from .puzzle import GROUP_SIZE, Category, normalize_words

logger = logging.getLogger(__name__)


class Classification(NamedTuple):
    matched: Optional[Category]
    is_one_away: bool


def shared_word_count(selected: Iterable, category: Category) -> int:
    return len(normalize_words(selected) & category.word_set)


def remaining_categories(categories: Sequence[Category],
                         already_found: Sequence[Category]) -> list:
    """Categories not yet found, compared by word set rather than name."""
    found_sets = {c.word_set for c in already_found}
    return [c for c in categories if c.word_set not in found_sets]


def classify(selected: Iterable, categories: Sequence[Category],
             already_found: Sequence[Category] = ()) -> Classification:
    selected_set = normalize_words(selected)
    remaining = remaining_categories(categories, already_found)

    matches = [c for c in remaining if c.word_set == selected_set]
    if len(matches) > 1:
        # Categories must be disjoint; admission validation should have rejected this puzzle
        logger.error(
            f"Selection matches {len(matches)} categories "
            f"({', '.join(c.name for c in matches)}); using the first"
        )
    if matches:
        return Classification(matched=matches[0], is_one_away=False)

    one_away = any(len(selected_set & c.word_set) == GROUP_SIZE - 1 for c in remaining)
    return Classification(matched=None, is_one_away=one_away)

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

GROUP_SIZE = 4
GROUP_COUNT = 4
PUZZLE_SIZE = GROUP_SIZE * GROUP_COUNT


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_word(word) -> str:
    """Canonical form used for every word comparison: trimmed and upper-cased."""
    return str(word or '').strip().upper()


def normalize_words(words: Iterable) -> FrozenSet[str]:
    return frozenset(normalize_word(w) for w in words)


class Tier(str, Enum):
    TIER1 = 'tier1'
    TIER2 = 'tier2'
    TIER3 = 'tier3'
    TIER4 = 'tier4'

    @property
    def rank(self) -> int:
        return int(self.value[-1])


TIER_COLORS = {
    Tier.TIER1: 'yellow',
    Tier.TIER2: 'green',
    Tier.TIER3: 'blue',
    Tier.TIER4: 'purple',
}

TIER_DIFFICULTIES = {
    Tier.TIER1: 'easy',
    Tier.TIER2: 'medium',
    Tier.TIER3: 'tricky',
    Tier.TIER4: 'hard',
}

# Every label any authoring pipeline has used for a tier
_LABEL_TO_TIER = {
    **{t.value: t for t in Tier},
    **{str(t.rank): t for t in Tier},
    **{label: t for t, label in TIER_COLORS.items()},
    **{label: t for t, label in TIER_DIFFICULTIES.items()},
    'difficult': Tier.TIER4,
}


def tier_label(tier: Tier, scheme: str = 'color') -> str:
    """Display label for a tier. scheme is 'color' or 'difficulty'."""
    if scheme == 'color':
        return TIER_COLORS[tier]
    if scheme == 'difficulty':
        return TIER_DIFFICULTIES[tier]
    raise ValueError(f"Unknown tier label scheme: {scheme}")


def tier_from_label(label) -> Tier:
    if isinstance(label, Tier):
        return label
    key = str(label or '').strip().lower()
    if key not in _LABEL_TO_TIER:
        raise ValueError(f"Unknown tier label: {label!r}")
    return _LABEL_TO_TIER[key]


class Category(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    words: List[str]
    tier: Tier
    rationale: str = ''

    @field_validator('tier', mode='before')
    @classmethod
    def _parse_tier(cls, v):
        return tier_from_label(v)

    @property
    def word_set(self) -> FrozenSet[str]:
        return normalize_words(self.words)

    @property
    def color(self) -> str:
        return tier_label(self.tier, 'color')

    def matches(self, words: Iterable) -> bool:
        """Set equality over normalized words, independent of order."""
        return self.word_set == normalize_words(words)


class Puzzle(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    words: List[str]
    categories: List[Category]
    approved: bool = False
    play_count: int = 0
    avg_completion_seconds: float = 0.0
    avg_mistakes: float = 0.0
    difficulty: str = 'medium'
    rationale: str = ''
    created_at: datetime = Field(default_factory=utcnow)
    version: int = 0

    @property
    def word_set(self) -> FrozenSet[str]:
        return normalize_words(self.words)

    def has_word(self, word) -> bool:
        return normalize_word(word) in self.word_set

    def category_for_word(self, word) -> Optional[Category]:
        target = normalize_word(word)
        for category in self.categories:
            if target in category.word_set:
                return category
        return None

    def public_view(self) -> dict:
        """What a player may see before solving: the words, never the groups."""
        return {
            'id': self.id,
            'words': list(self.words),
            'difficulty': self.difficulty,
        }

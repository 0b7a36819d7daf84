import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .puzzle import Category, utcnow

MAX_MISTAKES = 4


class SessionState(str, Enum):
    IN_PROGRESS = 'in_progress'
    WON = 'won'
    LOST = 'lost'

    @property
    def is_terminal(self) -> bool:
        return self is not SessionState.IN_PROGRESS


class Session(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    puzzle_id: str
    username: Optional[str] = None
    started_at: datetime = Field(default_factory=utcnow)
    found_groups: List[Category] = Field(default_factory=list)
    mistakes_remaining: int = MAX_MISTAKES
    attempts: int = 0
    state: SessionState = SessionState.IN_PROGRESS
    completed_at: Optional[datetime] = None
    time_taken_seconds: Optional[int] = None
    stats_recorded: bool = False
    version: int = 0

    @property
    def is_complete(self) -> bool:
        return self.state.is_terminal

    @property
    def is_won(self) -> bool:
        return self.state is SessionState.WON

    @property
    def mistakes_made(self) -> int:
        return MAX_MISTAKES - self.mistakes_remaining


class GuessOutcome(BaseModel):
    success: bool
    matched_category: Optional[Category] = None
    is_one_away: bool = False
    is_complete: bool = False
    is_won: bool = False
    mistakes_remaining: int


class PlayerStats(BaseModel):
    username: str
    total_games: int = 0
    total_wins: int = 0
    perfect_games: int = 0
    current_streak: int = 0
    best_streak: int = 0
    avg_time_seconds: float = 0.0
    avg_mistakes: float = 0.0
    updated_at: datetime = Field(default_factory=utcnow)
    version: int = 0


class DailyPuzzle(BaseModel):
    date: str
    puzzle_id: str
    version: int = 0


class AdminLog(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    action: str
    puzzle_id: Optional[str] = None
    details: dict = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    version: int = 0

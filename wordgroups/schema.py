from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .puzzle import GROUP_SIZE


class StartGameRequest(BaseModel):
    puzzle_id: str = Field(..., min_length=1)
    username: Optional[str] = Field(None, max_length=50)


class SubmitGuessRequest(BaseModel):
    """Four words picked from the grid. Case and surrounding whitespace are ignored."""

    session_id: str = Field(..., min_length=1)
    selected_words: List[str] = Field(..., description="exactly four words from the puzzle")

    @field_validator('selected_words')
    @classmethod
    def validate_selected_words(cls, v):
        if len(v) != GROUP_SIZE:
            raise ValueError(f'Must select exactly {GROUP_SIZE} words')
        for word in v:
            if not isinstance(word, str) or not word.strip():
                raise ValueError('Selected words must be non-empty strings')
        return v


class SyncStatsRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    total_games: int = Field(0, ge=0)
    total_wins: int = Field(0, ge=0)
    perfect_games: int = Field(0, ge=0)
    current_streak: int = Field(0, ge=0)
    best_streak: int = Field(0, ge=0)
    avg_time_seconds: Optional[float] = Field(None, ge=0)
    avg_mistakes: Optional[float] = Field(None, ge=0)


class LoginRequest(BaseModel):
    password: str


class GeneratePuzzleRequest(BaseModel):
    target_difficulty: Optional[str] = None

    @field_validator('target_difficulty')
    @classmethod
    def validate_difficulty(cls, v):
        if v is not None and v not in ('easy', 'medium', 'hard'):
            raise ValueError('target_difficulty must be one of easy, medium, hard')
        return v


class SetDailyRequest(BaseModel):
    date: str = Field(..., pattern=r'^\d{4}-\d{2}-\d{2}$')
    puzzle_id: str = Field(..., min_length=1)

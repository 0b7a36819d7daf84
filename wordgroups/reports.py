import logging
from pathlib import Path
from typing import Dict, Optional

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import pandas as pd

from .session_manager import SessionManager

logger = logging.getLogger(__name__)

PUZZLE_COLUMNS = ['id', 'difficulty', 'approved', 'play_count', 'avg_completion_seconds', 'avg_mistakes',
                  'created_at']
SESSION_COLUMNS = ['id', 'puzzle_id', 'username', 'state', 'attempts', 'mistakes_remaining',
                   'time_taken_seconds', 'started_at', 'completed_at']


def puzzle_stats_frame(manager: SessionManager) -> pd.DataFrame:
    """One row per puzzle with its play aggregates, most played first."""
    rows = [p.model_dump(mode='json', include=set(PUZZLE_COLUMNS)) for p in manager.list_puzzles()]
    df = pd.DataFrame(rows, columns=PUZZLE_COLUMNS)
    return df.sort_values('play_count', ascending=False, kind='stable').reset_index(drop=True)


def session_frame(manager: SessionManager) -> pd.DataFrame:
    rows = [s.model_dump(mode='json', include=set(SESSION_COLUMNS)) for s in manager.list_sessions()]
    df = pd.DataFrame(rows, columns=SESSION_COLUMNS)
    df['started_at'] = pd.to_datetime(df['started_at'], utc=True, format='ISO8601')
    df['completed_at'] = pd.to_datetime(df['completed_at'], utc=True, format='ISO8601')
    return df


def daily_completions(manager: SessionManager) -> pd.DataFrame:
    """Finished games per day, split into wins and losses."""
    df = session_frame(manager)
    done = df[df['state'].isin(['won', 'lost'])].copy()
    if done.empty:
        return pd.DataFrame(columns=['date', 'won', 'lost'])
    done['date'] = done['completed_at'].dt.date
    counts = done.groupby(['date', 'state']).size().unstack(fill_value=0)
    for state in ('won', 'lost'):
        if state not in counts.columns:
            counts[state] = 0
    return counts[['won', 'lost']].reset_index()


def export_puzzle_stats(path: str, manager: Optional[SessionManager] = None) -> Path:
    manager = manager or SessionManager()
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    puzzle_stats_frame(manager).to_csv(out, index=False)
    logger.info(f"Puzzle stats exported to {out}")
    return out


def generate_completion_graph(manager: SessionManager, save_dir: str = "game_data/graphs") -> Dict[str, Optional[str]]:
    df = daily_completions(manager)
    if df.empty:
        return {"completion_trend": None}
    save_path = Path(save_dir)
    save_path.mkdir(parents=True, exist_ok=True)
    plt.figure(figsize=(10, 6))
    plt.plot(df["date"], df["won"], marker='o', label="Won")
    plt.plot(df["date"], df["lost"], marker='o', label="Lost")
    plt.title("Completed Games per Day")
    plt.ylabel("Games")
    plt.xlabel("Date")
    plt.legend()
    plt.xticks(rotation=45)
    plt.tight_layout()
    trend_path = save_path / "completion_trend.png"
    plt.savefig(trend_path)
    plt.close()
    return {"completion_trend": str(trend_path)}

import logging
import threading
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from . import config
from .errors import QuotaExceededError
from .puzzle import utcnow

logger = logging.getLogger(__name__)


class DailyGenerationQuota:
    """Count of puzzle generations allowed per UTC day.

    The counter resets the first time it is consulted on or after resets_at
    (the next UTC midnight).
    """

    def __init__(self, max_per_day: Optional[int] = None, clock: Optional[Callable[[], datetime]] = None):
        self.max_per_day = config.max_daily_generations() if max_per_day is None else max_per_day
        self.clock = clock or utcnow
        self.used = 0
        self.resets_at: date = self._today() + timedelta(days=1)
        self._lock = threading.Lock()

    def _today(self) -> date:
        return self.clock().date()

    def _maybe_reset(self) -> None:
        today = self._today()
        if today >= self.resets_at:
            self.used = 0
            self.resets_at = today + timedelta(days=1)
            logger.info("Daily puzzle generation limit reset")

    def remaining(self) -> int:
        with self._lock:
            self._maybe_reset()
            return max(0, self.max_per_day - self.used)

    def check(self) -> None:
        """Raise if no generations are left today, without using one."""
        if self.remaining() <= 0:
            logger.warning("Daily puzzle generation limit reached")
            raise QuotaExceededError(
                f"Daily puzzle generation limit of {self.max_per_day} reached. "
                f"Limit resets at {self.resets_at.isoformat()} 00:00 UTC."
            )

    def consume(self) -> int:
        """Use one generation; returns how many remain."""
        with self._lock:
            self._maybe_reset()
            if self.used >= self.max_per_day:
                raise QuotaExceededError(f"Daily puzzle generation limit of {self.max_per_day} reached.")
            self.used += 1
            return self.max_per_day - self.used

    def status(self) -> dict:
        remaining = self.remaining()
        return {
            'remaining': remaining,
            'max': self.max_per_day,
            'resets_at': self.resets_at.isoformat(),
        }

"""
Daily call budget for metered providers

The counter lives in process memory, so a restart resets it and several
worker processes each get their own budget. Swap in a shared counter with the
same interface when running more than one process.
"""

from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from logging_config import get_logger

logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DailyQuota:
    """Call counter that resets at UTC midnight."""

    def __init__(self, daily_limit: int, name: str = "provider",
                 clock: Optional[Callable[[], datetime]] = None):
        self.daily_limit = daily_limit
        self.name = name
        self._clock = clock or _utc_now
        self._calls_today = 0
        self._current_date = ""

    def reset_if_new_day(self) -> None:
        today = self._clock().strftime("%Y-%m-%d")
        if today != self._current_date:
            if self._current_date:
                logger.info(f"{self.name} daily quota reset", extra={"provider": self.name})
            self._calls_today = 0
            self._current_date = today

    def try_reserve(self, calls: int) -> bool:
        """Reserve `calls` from today's budget; all or nothing."""
        self.reset_if_new_day()
        if self._calls_today + calls > self.daily_limit:
            logger.warning(
                f"{self.name} daily limit would be exceeded "
                f"({self._calls_today + calls}/{self.daily_limit})",
                extra={"provider": self.name},
            )
            return False
        self._calls_today += calls
        return True

    @property
    def calls_today(self) -> int:
        self.reset_if_new_day()
        return self._calls_today

    @property
    def remaining(self) -> int:
        return max(0, self.daily_limit - self.calls_today)

    def usage(self) -> Dict[str, int]:
        return {"calls_today": self.calls_today, "daily_limit": self.daily_limit}

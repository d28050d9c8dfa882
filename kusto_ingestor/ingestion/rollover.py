from datetime import datetime, timedelta, timezone
from typing import Optional


class RolloverPolicy:
    """Decides whether a file has stopped being written to.

    Upstream writers may still be appending, and there is no "file closed"
    signal, so a file is only eligible once it is at least ``delay`` old.
    """

    def __init__(self, delay: timedelta):
        if delay < timedelta(0):
            raise ValueError("Rollover delay must not be negative")
        self.delay = delay

    def threshold(self, now: Optional[datetime] = None) -> datetime:
        """Latest creation time that is considered rolled over at ``now``."""
        return (now or datetime.now(timezone.utc)) - self.delay

    def is_rolled_over(
        self, created_at: datetime, now: Optional[datetime] = None
    ) -> bool:
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return created_at <= self.threshold(now)

import time
from datetime import datetime, timezone


class Clock:
    """
    Time source used by the lifecycle manager and the reconciliation loop.
    Tests swap it for a fake that records sleeps instead of blocking.
    """

    def now(self) -> datetime:
        raise NotImplementedError

    def sleep(self, seconds: float) -> None:
        raise NotImplementedError


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)

from __future__ import annotations

from dataclasses import dataclass
from time import monotonic

DEBOUNCE_INTERVAL = 0.25


def should_rebuild(now: float, last_build: float | None, interval: float) -> bool:
    if last_build is None:
        return True

    return now - last_build >= interval


@dataclass(slots=True)
class Debouncer:
    """
    Gates rebuilds on the time since the last *completed* rebuild attempt.

    Times come from :func:`time.monotonic`, never the wall clock.
    """

    interval: float = DEBOUNCE_INTERVAL
    last_build: float | None = None

    def ready(self, now: float | None = None) -> bool:
        return should_rebuild(
            now=monotonic() if now is None else now,
            last_build=self.last_build,
            interval=self.interval,
        )

    def record(self, now: float | None = None) -> None:
        self.last_build = monotonic() if now is None else now

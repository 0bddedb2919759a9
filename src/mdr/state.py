from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from mdr.debounce import DEBOUNCE_INTERVAL, Debouncer
from mdr.events import TrackedInput, WatchEvent, is_relevant, targets_input


class Status(Enum):
    Starting = "starting"
    Watching = "watching"
    Rebuilding = "rebuilding"
    Stopped = "stopped"


@dataclass
class WatchState:
    tracked: TrackedInput
    watch_directory: Path
    debouncer: Debouncer = field(default_factory=Debouncer)

    status: Status = Status.Starting
    rebuilds: int = 0

    @classmethod
    def from_input(cls, input_path: Path, interval: float = DEBOUNCE_INTERVAL) -> WatchState:
        return cls(
            tracked=TrackedInput.from_path(input_path),
            watch_directory=input_path.parent,
            debouncer=Debouncer(interval=interval),
        )

    def wants(self, events: tuple[WatchEvent, ...]) -> bool:
        return any(
            is_relevant(event) and targets_input(event, self.tracked, self.watch_directory)
            for event in events
        )

    def input_exists(self) -> bool:
        return self.tracked.path.exists()

    def mark_watching(self) -> None:
        self.mark(Status.Watching)

    def mark_rebuilding(self) -> None:
        self.mark(Status.Rebuilding)

    def mark_stopped(self) -> None:
        self.mark(Status.Stopped)

    def mark(self, status: Status) -> None:
        self.status = status

    def record_rebuild(self) -> None:
        self.rebuilds += 1
        self.debouncer.record()
        self.mark_watching()

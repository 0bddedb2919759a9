from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from pathlib import Path

from watchfiles import Change

from mdr.model import Model


class ChangeKind(Enum):
    Create = "create"
    ModifyData = "modify-data"
    ModifyMetadata = "modify-metadata"
    ModifyName = "modify-name"
    ModifyAny = "modify-any"
    Remove = "remove"
    Access = "access"
    Other = "other"


RELEVANT_KINDS = frozenset(
    {
        ChangeKind.Create,
        ChangeKind.ModifyData,
        ChangeKind.ModifyMetadata,
        ChangeKind.ModifyName,
        ChangeKind.ModifyAny,
        ChangeKind.Remove,
    }
)

CHANGE_TO_KIND = {
    Change.added: ChangeKind.Create,
    Change.modified: ChangeKind.ModifyAny,
    Change.deleted: ChangeKind.Remove,
}


class WatchEvent(Model):
    kind: ChangeKind
    paths: tuple[Path, ...]

    @classmethod
    def from_change(cls, change: Change, path: str | Path) -> WatchEvent:
        return cls(kind=CHANGE_TO_KIND.get(change, ChangeKind.Other), paths=(Path(path),))

    @classmethod
    def from_changes(cls, changes: Iterable[tuple[Change, str]]) -> tuple[WatchEvent, ...]:
        return tuple(cls.from_change(change, path) for change, path in changes)


class TrackedInput(Model):
    """
    The single source file being watched.

    The canonical form is captured once, when watching starts.
    If the file cannot be canonicalized then,
    ``canonical`` falls back to the declared path and ``canonicalized`` is false.
    """

    path: Path
    canonical: Path
    canonicalized: bool = True

    @classmethod
    def from_path(cls, path: Path) -> TrackedInput:
        try:
            return cls(path=path, canonical=path.resolve(strict=True))
        except (OSError, RuntimeError):
            return cls(path=path, canonical=path, canonicalized=False)


def is_relevant(event: WatchEvent) -> bool:
    return event.kind in RELEVANT_KINDS


def targets_input(event: WatchEvent, tracked: TrackedInput, watch_directory: Path) -> bool:
    # Editors save in-place, rename over the original, or unlink and recreate it,
    # so any one of the three comparisons is enough.
    for path in event.paths:
        candidate = path if path.is_absolute() else watch_directory / path

        try:
            if candidate.resolve(strict=True) == tracked.canonical:
                return True
        except (OSError, RuntimeError):
            # the file may be momentarily absent during an atomic save
            pass

        if candidate.name and candidate.name == tracked.path.name:
            return True

        if candidate == tracked.path:
            return True

    return False

from datetime import datetime, timedelta
from pathlib import Path

from pydantic import Field
from watchfiles import Change

from mdr.model import Model


class Message(Model):
    timestamp: datetime = Field(default_factory=datetime.now)


class RenderStarted(Message):
    input_path: Path
    output_path: Path
    pid: int


class RenderOutput(Message):
    text: str


class RenderCompleted(Message):
    pid: int
    exit_code: int
    duration: timedelta


class RenderFailed(Message):
    exit_code: int
    text: str


class WatchStarted(Message):
    input_path: Path
    watch_directory: Path


class WatchPathChanged(Message):
    changes: set[tuple[Change, str]]


class InputMissing(Message):
    input_path: Path


class Reloaded(Message):
    receivers: int


class ServerStarted(Message):
    output_path: Path
    url: str


class ClientConnected(Message):
    client: str


class ClientDisconnected(Message):
    client: str


class ArtifactUnavailable(Message):
    output_path: Path
    text: str


class WatcherFailed(Message):
    text: str


class ServerStopped(Message):
    text: str


class Info(Message):
    text: str


class Warn(Message):
    text: str


class Fatal(Message):
    text: str


class Quit(Message):
    pass

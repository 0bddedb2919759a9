from __future__ import annotations

from rich.console import Console
from rich.style import Style
from rich.table import Table
from rich.text import Text
from watchfiles import Change

from mdr.messages import (
    ArtifactUnavailable,
    ClientConnected,
    ClientDisconnected,
    Fatal,
    Info,
    InputMissing,
    Message,
    Quit,
    Reloaded,
    RenderCompleted,
    RenderFailed,
    RenderOutput,
    RenderStarted,
    ServerStarted,
    ServerStopped,
    Warn,
    WatcherFailed,
    WatchPathChanged,
    WatchStarted,
)

PREFIX = "mdr: "
prefix_format = "{timestamp:%H:%M:%S} pandoc  "
CHANGE_TO_STYLE = {
    Change.added: Style(color="green"),
    Change.deleted: Style(color="red"),
    Change.modified: Style(color="yellow"),
}


class Renderer:
    """
    Turns messages into one-line diagnostics on the console.

    Everything user-facing goes through here, prefixed with ``mdr:``;
    renderer output is shown dimmed, prefixed with its timestamp.
    """

    def __init__(self, console: Console):
        self.console = console

    def handle_message(self, message: Message) -> None:
        match message:
            case RenderOutput() as msg:
                self.handle_output_message(msg)

            case Fatal(text=text) | WatcherFailed(text=text) | ServerStopped(text=text):
                self.line(Text(f"error: {text}", style=Style(color="red")))

            case RenderFailed(exit_code=exit_code, text=text):
                self.line(Text(text, style=Style(color="red" if exit_code == 127 else "yellow")))

            case Warn(text=text):
                self.line(Text(f"warning: {text}", style=Style(color="yellow")))

            case InputMissing(input_path=input_path):
                self.line(
                    Text(
                        f"input file {input_path} is missing; waiting for it to reappear",
                        style=Style(color="yellow"),
                    )
                )

            case ArtifactUnavailable(output_path=output_path, text=text):
                self.line(Text(f"failed to read output {output_path}: {text}", style=Style(color="yellow")))

            case _:
                self.handle_lifecycle_message(message)

    def handle_lifecycle_message(self, message: Message) -> None:
        match message:
            case WatchStarted(input_path=input_path):
                text = Text(f"watching {input_path} for changes (press Ctrl+C to stop)")
            case ServerStarted(output_path=output_path, url=url):
                text = Text.assemble(
                    f"serving {output_path} at ",
                    (url, Style(color="cyan", underline=True)),
                    " (live reload enabled)",
                )
            case WatchPathChanged(changes=changes):
                text = Text.assemble(
                    "detected changes: ",
                    Text(" ").join(
                        Text(path, style=CHANGE_TO_STYLE.get(change, Style())) for change, path in sorted(changes)
                    ),
                    style=Style(dim=True),
                )
            case RenderStarted(input_path=input_path, output_path=output_path, pid=pid):
                text = Text(f"rendering {input_path} -> {output_path} (pid {pid})", style=Style(dim=True))
            case RenderCompleted(pid=pid, exit_code=exit_code, duration=duration):
                text = Text.assemble(
                    f"renderer (pid {pid}) exited with code ",
                    (str(exit_code), "green" if exit_code == 0 else "red"),
                    f" in {duration.total_seconds():.3f} seconds",
                    style=Style(dim=True),
                )
            case Reloaded(receivers=receivers):
                text = Text(
                    f"change detected; rebuild complete (notified {receivers} "
                    f"{'client' if receivers == 1 else 'clients'})"
                )
            case ClientConnected(client=client):
                text = Text(f"live view connected from {client}", style=Style(dim=True))
            case ClientDisconnected(client=client):
                text = Text(f"live view from {client} disconnected", style=Style(dim=True))
            case Quit():
                text = Text("stopping watch")
            case Info(text=info):
                text = Text(info, style=Style(dim=True))
            case _:
                return

        self.line(text)

    def handle_output_message(self, message: RenderOutput) -> None:
        prefix = Text(
            prefix_format.format_map({"timestamp": message.timestamp}),
            style=Style(color="blue", dim=True),
        )

        g = Table.grid()
        g.add_row(prefix, Text.from_ansi(message.text))

        self.console.print(g)

    def line(self, text: Text) -> None:
        self.console.print(Text.assemble(PREFIX, text), soft_wrap=True)

from __future__ import annotations

import signal
from asyncio import Event, Queue, Task, create_task, gather
from pathlib import Path
from types import FrameType
from typing import Any

from rich.console import Console
from watchfiles import awatch

from mdr.assets import Assets, materialized
from mdr.bus import ReloadBus
from mdr.config import Config
from mdr.debounce import DEBOUNCE_INTERVAL
from mdr.events import WatchEvent
from mdr.execution import RENDERER_NOT_FOUND, Rebuilder
from mdr.messages import (
    Fatal,
    InputMissing,
    Message,
    Quit,
    Reloaded,
    ServerStarted,
    ServerStopped,
    Warn,
    WatcherFailed,
    WatchPathChanged,
    WatchStarted,
)
from mdr.render import renderer_available
from mdr.renderer import Renderer
from mdr.server import PreviewServer, bind_socket, create_app, server_url
from mdr.state import WatchState

# milliseconds; awatch yields a batch once no change arrives for WATCH_STEP,
# or once the batch has been collecting for WATCH_MAX_BATCH
WATCH_STEP = 50
WATCH_MAX_BATCH = 250


class SessionAborted(Exception):
    def __init__(self, exit_code: int):
        super().__init__(f"Session aborted with exit code {exit_code}")
        self.exit_code = exit_code


class Orchestrator:
    def __init__(
        self,
        config: Config,
        console: Console,
        debounce_interval: float = DEBOUNCE_INTERVAL,
    ):
        self.config = config
        self.console = console

        self.renderer = Renderer(console=console)
        self.state = WatchState.from_input(config.input_path, interval=debounce_interval)
        self.bus = ReloadBus()

        self.inbox: Queue[Message] = Queue()
        self.stop_watching = Event()

        self.rebuilder: Rebuilder | None = None
        self.watcher: Task[None] | None = None
        self.server: PreviewServer | None = None
        self.server_task: Task[None] | None = None
        self.url: str | None = None

    def report(self, message: Message) -> None:
        self.renderer.handle_message(message)

    async def run(self) -> int:
        if not await renderer_available(self.config.pandoc):
            self.report(
                Fatal(
                    text=f"{self.config.pandoc} not found. Please install pandoc and ensure it is on your PATH."
                )
            )
            return RENDERER_NOT_FOUND

        with materialized(report=self.report) as assets:
            try:
                return await self.run_session(assets)
            except SessionAborted as e:
                return e.exit_code

    async def run_session(self, assets: Assets) -> int:
        self.rebuilder = Rebuilder(
            input_path=self.config.input_path,
            output_path=self.config.output_path,
            assets=assets,
            report=self.report,
            pandoc=self.config.pandoc,
            katex=self.config.katex,
        )

        # The first render always runs, outside the filter and debounce.
        exit_code = await self.rebuild()
        if exit_code != 0 or not self.config.watching:
            self.state.mark_stopped()
            return exit_code

        previous_handlers = {
            sig: signal.signal(sig, self.request_quit) for sig in (signal.SIGINT, signal.SIGTERM)
        }

        try:
            if not self.start_watcher():
                return 1

            if self.config.serve and not self.start_server():
                return 1

            self.state.mark_watching()

            return await self.handle_messages()
        finally:
            for sig, handler in previous_handlers.items():
                signal.signal(sig, handler)

            await self.shutdown()

    async def handle_messages(self) -> int:
        while True:
            match message := await self.inbox.get():
                case WatchPathChanged():
                    exit_code = await self.handle_change(message)
                    if exit_code is not None:
                        return exit_code

                case WatcherFailed() | ServerStopped():
                    self.renderer.handle_message(message)
                    return 1

                case Quit():
                    self.renderer.handle_message(message)
                    return 0

    async def handle_change(self, message: WatchPathChanged) -> int | None:
        """
        Rebuild if the change is relevant to the tracked input and the debounce
        interval has passed since the last rebuild attempt.

        Returns an exit code if the session has to end, or ``None`` to keep watching.
        """
        if not self.state.wants(WatchEvent.from_changes(message.changes)):
            return None

        self.report(message)

        if not self.state.debouncer.ready():
            return None

        if not self.state.input_exists():
            self.report(InputMissing(input_path=self.state.tracked.path))
            return None

        exit_code = await self.rebuild()

        if exit_code == RENDERER_NOT_FOUND:
            return exit_code

        self.state.record_rebuild()

        if exit_code == 0:
            self.report(Reloaded(receivers=self.bus.publish()))

        return None

    async def rebuild(self) -> int:
        if self.rebuilder is None:  # pragma: unreachable
            raise Exception("Cannot rebuild before assets have been written")

        self.state.mark_rebuilding()

        task = create_task(self.rebuilder.rebuild(), name=f"Render {self.config.input_path}")
        try:
            return await task
        except Exception as e:
            # errors inside the render task end the session
            self.report(Fatal(text=f"build task failed: {e}"))
            raise SessionAborted(exit_code=1) from e

    def request_quit(self, sig: int, frame: FrameType | None) -> None:
        self.inbox.put_nowait(Quit())

        if self.rebuilder is not None:
            self.rebuilder.terminate()

    def start_watcher(self) -> bool:
        watch_directory = self.state.watch_directory

        if not watch_directory.is_dir():
            self.report(Fatal(text=f"unable to watch {watch_directory}: not a directory"))
            return False

        if not self.state.tracked.canonicalized:
            self.report(Warn(text=f"could not canonicalize input {self.state.tracked.path}"))

        self.watcher = create_task(
            watch(
                directory=watch_directory,
                events=self.inbox,
                stop_event=self.stop_watching,
            ),
            name=f"Watch {watch_directory}",
        )
        self.watcher.add_done_callback(self.on_watcher_done)

        self.report(WatchStarted(input_path=self.state.tracked.path, watch_directory=watch_directory))

        return True

    def start_server(self) -> bool:
        try:
            sock = bind_socket(self.config.host, self.config.port)
        except OSError as e:
            self.report(Fatal(text=f"failed to bind HTTP server: {e}"))
            return False

        app = create_app(output_path=self.config.output_path, bus=self.bus, report=self.report)
        self.server = PreviewServer.for_app(app)
        self.server_task = create_task(self.server.serve(sockets=[sock]), name="Preview server")
        self.server_task.add_done_callback(self.on_server_done)

        self.url = server_url(sock)
        self.report(ServerStarted(output_path=self.config.output_path, url=self.url))

        return True

    def on_watcher_done(self, task: Task[Any]) -> None:
        if task.cancelled() or self.stop_watching.is_set():
            return

        e = task.exception()
        self.inbox.put_nowait(
            WatcherFailed(text=f"watch error: {e}" if e else "watcher stopped unexpectedly")
        )

    def on_server_done(self, task: Task[Any]) -> None:
        if task.cancelled() or (self.server is not None and self.server.should_exit):
            return

        e = task.exception()
        self.inbox.put_nowait(
            ServerStopped(text=f"server error: {e}" if e else "server stopped unexpectedly")
        )

    async def shutdown(self) -> None:
        self.state.mark_stopped()

        self.bus.close()

        if self.server is not None:
            self.server.abort()

        self.stop_watching.set()
        if self.watcher is not None:
            self.watcher.cancel()

        if self.rebuilder is not None:
            await self.rebuilder.stop()

        await gather(
            *(t for t in (self.watcher, self.server_task) if t is not None),
            return_exceptions=True,
        )


async def watch(directory: Path, events: Queue[Message], stop_event: Event) -> None:
    async for changes in awatch(
        directory,
        recursive=False,
        step=WATCH_STEP,
        debounce=WATCH_MAX_BATCH,
        stop_event=stop_event,
    ):
        await events.put(WatchPathChanged(changes=changes))

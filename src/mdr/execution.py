from __future__ import annotations

import os
from asyncio import Task, TimeoutError, create_task, shield, wait_for
from asyncio.subprocess import DEVNULL, PIPE, STDOUT, Process, create_subprocess_exec
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from signal import SIGKILL, SIGTERM
from time import monotonic

from mdr.assets import Assets
from mdr.messages import (
    Info,
    Message,
    RenderCompleted,
    RenderFailed,
    RenderOutput,
    RenderStarted,
)
from mdr.render import build_command

OUTPUT_BUFFER_SIZE = 1 * 1024 * 1024  # 1 MiB, default is 64 KiB

RENDERER_NOT_FOUND = 127

STOP_TIMEOUT = 2.0

Report = Callable[[Message], None]


@dataclass(frozen=True)
class Execution:
    input_path: Path
    output_path: Path

    report: Report = field(repr=False)

    process: Process
    start_time: float
    reader: Task[None]

    @classmethod
    async def start(
        cls,
        input_path: Path,
        output_path: Path,
        assets: Assets,
        pandoc: str,
        katex: str | None,
        report: Report,
    ) -> Execution:
        command = build_command(
            pandoc=pandoc,
            input_path=input_path,
            output_path=output_path,
            assets=assets,
            katex=katex,
        )

        start_time = monotonic()

        process = await create_subprocess_exec(
            *command,
            stdin=DEVNULL,
            stdout=PIPE,
            stderr=STDOUT,
            preexec_fn=os.setsid,
            limit=OUTPUT_BUFFER_SIZE,
        )

        reader = create_task(
            read_output(process=process, report=report),
            name=f"Read renderer output for {input_path}",
        )

        report(RenderStarted(input_path=input_path, output_path=output_path, pid=process.pid))

        return cls(
            input_path=input_path,
            output_path=output_path,
            report=report,
            process=process,
            start_time=start_time,
            reader=reader,
        )

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def exit_code(self) -> int | None:
        return self.process.returncode

    @property
    def has_exited(self) -> bool:
        return self.exit_code is not None

    def _send_signal(self, signal: int) -> None:
        if self.has_exited:
            return None

        try:
            os.killpg(os.getpgid(self.process.pid), signal)
        except ProcessLookupError:
            # process exited before we could send the signal
            pass

    def terminate(self) -> None:
        self._send_signal(SIGTERM)

    def kill(self) -> None:
        self._send_signal(SIGKILL)

    async def wait(self) -> Execution:
        exit_code = await self.process.wait()
        end_time = monotonic()

        await self.reader

        self.report(
            RenderCompleted(
                pid=self.pid,
                exit_code=exit_code,
                duration=timedelta(seconds=end_time - self.start_time),
            )
        )

        return self


async def read_output(process: Process, report: Report) -> None:
    if process.stdout is None:  # pragma: unreachable
        raise Exception(f"{process} does not have an associated stream reader")

    while True:
        try:
            line = await process.stdout.readline()
        except ValueError:
            # Arises from a LimitOverrunError in readline(),
            # which is raised when the reader's internal buffer size is exceeded.
            report(
                Info(
                    text="Renderer output buffer size exceeded. Dropping renderer output buffer contents and continuing.",
                )
            )
            continue

        if not line:
            break

        report(RenderOutput(text=line.decode("utf-8", errors="replace").rstrip()))


class Rebuilder:
    """
    Runs the renderer on the tracked input, one render at a time.

    The render is a separate process, so awaiting it never blocks
    file-event delivery or HTTP serving.
    A missing renderer is reported as exit code 127.
    """

    def __init__(
        self,
        input_path: Path,
        output_path: Path,
        assets: Assets,
        report: Report,
        pandoc: str = "pandoc",
        katex: str | None = None,
    ):
        self.input_path = input_path
        self.output_path = output_path
        self.assets = assets
        self.report = report
        self.pandoc = pandoc
        self.katex = katex

        self.execution: Execution | None = None

    async def rebuild(self) -> int:
        try:
            self.execution = await Execution.start(
                input_path=self.input_path,
                output_path=self.output_path,
                assets=self.assets,
                pandoc=self.pandoc,
                katex=self.katex,
                report=self.report,
            )
        except (FileNotFoundError, PermissionError) as e:
            self.report(
                RenderFailed(
                    exit_code=RENDERER_NOT_FOUND,
                    text=f"failed to spawn {self.pandoc}: {e}",
                )
            )
            return RENDERER_NOT_FOUND

        try:
            await self.execution.wait()
        except BaseException:
            # the renderer runs in its own session, so nothing else will stop it
            self.execution.terminate()
            raise
        finally:
            exit_code = self.execution.exit_code
            self.execution = None

        if exit_code is None:  # pragma: unreachable
            raise Exception(f"Renderer for {self.input_path} has not exited")

        if exit_code != 0:
            self.report(
                RenderFailed(
                    exit_code=exit_code,
                    text=f"{self.pandoc} failed with exit code {exit_code}",
                )
            )

        return exit_code

    def terminate(self) -> None:
        if self.execution is not None:
            self.execution.terminate()

    async def stop(self, timeout: float = STOP_TIMEOUT) -> None:
        """Terminate any in-flight render, killing it if it outlives the timeout."""
        execution = self.execution
        if execution is None:
            return

        execution.terminate()
        try:
            await wait_for(shield(execution.process.wait()), timeout)
        except TimeoutError:
            execution.kill()

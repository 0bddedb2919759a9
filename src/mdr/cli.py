from __future__ import annotations

import asyncio
from pathlib import Path
from time import monotonic
from typing import Optional

import typer.rich_utils as ru
from pydantic import ValidationError
from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.prompt import Confirm
from rich.style import Style
from rich.text import Text
from typer import Argument, Exit, Option, Typer

from mdr.config import DEFAULT_HOST, DEFAULT_PORT, PUBLIC_HOST, Config
from mdr.orchestrator import Orchestrator
from mdr.render import DEFAULT_KATEX
from mdr.renderer import PREFIX

ru.STYLE_HELPTEXT = ""

cli = Typer(pretty_exceptions_enable=False)


@cli.command()
def run(
    input: Path = Argument(
        ...,
        dir_okay=False,
        help="The Markdown file to render.",
    ),
    output: Optional[Path] = Argument(
        default=None,
        dir_okay=False,
        help="Where to write the rendered HTML. Defaults to the input path with an .html suffix.",
    ),
    output_option: Optional[Path] = Option(
        None,
        "--output",
        "-o",
        dir_okay=False,
        help="Where to write the rendered HTML (alternative to the positional argument).",
    ),
    watch: bool = Option(
        False,
        "--watch",
        "-w",
        help="If enabled, re-render whenever the input file changes.",
    ),
    serve: bool = Option(
        False,
        "--serve",
        "-s",
        help="If enabled, serve the rendered HTML with live reload. Implies --watch.",
    ),
    public: bool = Option(
        False,
        "--public",
        "-P",
        help=f"Serve on {PUBLIC_HOST} instead of the loopback address. Implies --serve.",
    ),
    port: int = Option(
        DEFAULT_PORT,
        "--port",
        "-p",
        help="The port to serve on.",
    ),
    host: str = Option(
        DEFAULT_HOST,
        "--host",
        help="The address to serve on.",
    ),
    no_clobber: bool = Option(
        False,
        "--no-clobber",
        "-n",
        help="If enabled, ask before overwriting an existing output file.",
    ),
    katex: str = Option(
        DEFAULT_KATEX,
        "--katex",
        envvar="MDR_KATEX",
        help="Base URL that KaTeX assets are loaded from.",
    ),
    pandoc: str = Option(
        "pandoc",
        "--pandoc",
        envvar="MDR_PANDOC",
        help="The pandoc executable to render with.",
    ),
    dry: bool = Option(
        False,
        "--dry",
        help="If enabled, print the resolved configuration and do not render anything.",
    ),
) -> None:
    start_time = monotonic()

    console = Console(stderr=True)

    if output is not None and output_option is not None and output != output_option:
        console.print(Text(f"{PREFIX}error: conflicting output paths {output} and {output_option}", style="red"))
        raise Exit(code=64)

    try:
        config = Config(
            input_path=input,
            output_path=output_option or output,
            watch=watch,
            serve=serve or public,
            host=PUBLIC_HOST if public else host,
            port=port,
            no_clobber=no_clobber,
            katex=katex,
            pandoc=pandoc,
        )
    except ValidationError as e:
        for err in e.errors():
            loc = ".".join(map(str, err["loc"]))
            msg = err["msg"]
            console.print(f"[red]ERROR[/red] {loc} -> {msg}")
        raise Exit(code=1)

    if dry:
        console.print(
            Panel(
                JSON(config.model_dump_json()),
                title="Configuration",
                title_align="left",
            )
        )
        return

    if config.no_clobber:
        confirm_overwrite(config.output_path, console)

    orchestrator = Orchestrator(config=config, console=console)

    try:
        exit_code = asyncio.run(orchestrator.run())
    except KeyboardInterrupt:
        raise Exit(code=0)
    finally:
        end_time = monotonic()

        if config.watching:
            console.print(Text(f"Finished in {end_time - start_time:.3f} seconds.", style=Style(dim=True)))

    if exit_code != 0:
        raise Exit(code=exit_code)


def confirm_overwrite(path: Path, console: Console) -> None:
    if not path.exists():
        return

    console.print(Text(f"{PREFIX}warning: output file already exists: {path}", style=Style(color="yellow")))

    if not Confirm.ask("Overwrite?", console=console, default=False):
        console.print(Text(f"{PREFIX}aborting; not overwriting existing file", style=Style(color="red")))
        raise Exit(code=1)


if __name__ == "__main__":
    cli()

from __future__ import annotations

from asyncio.subprocess import DEVNULL, create_subprocess_exec
from pathlib import Path

from mdr.assets import Assets

DEFAULT_KATEX = "https://cdn.jsdelivr.net/npm/katex@0.15.1/dist/"
FALLBACK_TITLE = "Document"


def katex_url(url: str | None = None) -> str:
    url = url or DEFAULT_KATEX
    return url if url.endswith("/") else f"{url}/"


def has_title_metadata(path: Path) -> bool:
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return False

    # YAML metadata block
    if content.startswith("---\n"):
        end = content.find("\n---", 4)
        if end != -1:
            header = content[4:end]
            if any(line.lstrip().lower().startswith("title:") for line in header.splitlines()):
                return True

    # Pandoc %-style title block
    first_line = content.splitlines()[0] if content else ""
    return first_line.startswith("%") and len(first_line) > 1


def build_command(
    pandoc: str,
    input_path: Path,
    output_path: Path,
    assets: Assets,
    katex: str | None = None,
) -> list[str]:
    command = [
        pandoc,
        f"--katex={katex_url(katex)}",
        "--from",
        "markdown+tex_math_single_backslash",
        "--embed-resources",
        "--lua-filter",
        str(assets.lua_path),
        "--to",
        "html5+smart",
        "--standalone",
    ]

    if not has_title_metadata(input_path):
        command.extend(("--metadata", f"title={input_path.stem or FALLBACK_TITLE}"))

    command.extend(
        (
            "--template",
            str(assets.template_path),
            "--css",
            str(assets.theme_path),
            "--css",
            str(assets.skylighting_path),
            "--toc",
            "--wrap=none",
            "--output",
            str(output_path),
            str(input_path),
        )
    )

    return command


async def renderer_available(pandoc: str) -> bool:
    try:
        process = await create_subprocess_exec(
            pandoc,
            "--version",
            stdin=DEVNULL,
            stdout=DEVNULL,
            stderr=DEVNULL,
        )
    except OSError:
        return False

    return await process.wait() == 0

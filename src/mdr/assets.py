from __future__ import annotations

import shutil
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from importlib.resources import files
from pathlib import Path
from tempfile import mkdtemp

from mdr.messages import Message, Warn

RESOURCES = files("mdr") / "assets"

TEMPLATE = "template.html5"
LUA_FILTER = "pandoc-sidenote.lua"
THEME_CSS = "css/theme.css"
SKYLIGHTING_CSS = "css/skylighting-solarized-theme.css"


@dataclass(frozen=True)
class Assets:
    template_path: Path
    lua_path: Path
    theme_path: Path
    skylighting_path: Path

    @classmethod
    def write(cls, root: Path) -> Assets:
        assets = cls(
            template_path=root / TEMPLATE,
            lua_path=root / LUA_FILTER,
            theme_path=root / THEME_CSS,
            skylighting_path=root / SKYLIGHTING_CSS,
        )

        for name, path in (
            (TEMPLATE, assets.template_path),
            (LUA_FILTER, assets.lua_path),
            (THEME_CSS, assets.theme_path),
            (SKYLIGHTING_CSS, assets.skylighting_path),
        ):
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(RESOURCES.joinpath(name).read_text(encoding="utf-8"), encoding="utf-8")

        return assets


@contextmanager
def materialized(report: Callable[[Message], None]) -> Iterator[Assets]:
    """
    Write the bundled renderer assets into a fresh temporary directory.

    The directory is removed on every exit path.
    Failing to remove it only leaves residue behind, so it is reported as a warning.
    """
    root = Path(mkdtemp(prefix="mdr-"))

    try:
        yield Assets.write(root)
    finally:
        try:
            shutil.rmtree(root)
        except OSError as e:
            report(Warn(text=f"unable to remove temp dir {root}: {e}"))

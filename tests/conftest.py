from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from stat import S_IEXEC

import pytest
from rich.console import Console, Group
from rich.rule import Rule
from rich.text import Text
from typer.testing import CliRunner, Result

from mdr.assets import Assets
from mdr.cli import cli

console = Console()

FAKE_PANDOC = """#!/bin/sh
if [ "$1" = "--version" ]; then
  echo "fake pandoc 0.0.0"
  exit 0
fi
here="$(dirname "$0")"
echo "$*" >> "$here/invocations.log"
code="$(cat "$here/exit_code" 2>/dev/null || echo 0)"
if [ "$code" -ne 0 ]; then
  echo "fake pandoc failed" >&2
  exit "$code"
fi
all="$*"
out=
while [ $# -gt 0 ]; do
  if [ "$1" = "--output" ]; then shift; out="$1"; fi
  shift
done
[ -z "$out" ] && { echo "no --output given" >&2; exit 1; }
printf "<!--ARGS:%s-->\\n<html>fake</html>\\n" "$all" > "$out"
echo "wrote $out"
exit 0
"""

SLOW_PANDOC = """#!/bin/sh
if [ "$1" = "--version" ]; then
  exit 0
fi
sleep 30
"""

STUBBORN_PANDOC = """#!/bin/sh
if [ "$1" = "--version" ]; then
  exit 0
fi
trap '' TERM
sleep 30
"""


@dataclass(frozen=True)
class FakePandoc:
    path: Path

    @property
    def log(self) -> Path:
        return self.path.parent / "invocations.log"

    def invocations(self) -> list[str]:
        if not self.log.exists():
            return []
        return self.log.read_text().splitlines()

    def fail_with(self, exit_code: int) -> None:
        (self.path.parent / "exit_code").write_text(f"{exit_code}\n")


@pytest.fixture
def fake_pandoc(tmp_path: Path) -> FakePandoc:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()

    path = bin_dir / "pandoc"
    path.write_text(FAKE_PANDOC)
    path.chmod(path.stat().st_mode | S_IEXEC)

    return FakePandoc(path=path)


def write_script(path: Path, text: str) -> Path:
    path.write_text(text)
    path.chmod(path.stat().st_mode | S_IEXEC)

    return path


@pytest.fixture
def slow_pandoc(tmp_path: Path) -> Path:
    return write_script(tmp_path / "slow-pandoc", SLOW_PANDOC)


@pytest.fixture
def stubborn_pandoc(tmp_path: Path) -> Path:
    return write_script(tmp_path / "stubborn-pandoc", STUBBORN_PANDOC)


@pytest.fixture
def note(tmp_path: Path) -> Path:
    docs = tmp_path / "docs"
    docs.mkdir()

    path = docs / "note.md"
    path.write_text("# Title\n\nBody\n")

    return path


@pytest.fixture
def assets(tmp_path: Path) -> Assets:
    return Assets.write(tmp_path / "assets")


def run_cli(*args: str, input: str | None = None) -> Result:
    runner = CliRunner()

    result = runner.invoke(cli, args, input=input)

    console.print(
        Group(
            Rule(title="Start Command Output", characters="v"),
            Text.from_ansi(result.output),
            Rule(title="End Command Output", characters="^"),
        ),
    )

    return result

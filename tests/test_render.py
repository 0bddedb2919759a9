from pathlib import Path

import pytest

from mdr.assets import Assets
from mdr.render import DEFAULT_KATEX, build_command, has_title_metadata, katex_url, renderer_available
from tests.conftest import FakePandoc


@pytest.mark.parametrize(
    ("content", "expected"),
    (
        ("# Heading\n\nBody\n", False),
        ("---\ntitle: Hello\n---\n\nBody\n", True),
        ("---\n  Title: Hello\n---\n", True),
        ("---\nauthor: Someone\n---\n\ntitle: not metadata\n", False),
        ("---\ntitle: never closed\n", False),
        ("% Pandoc Title\n% Author\n\nBody\n", True),
        ("%\nBody\n", False),
        ("", False),
    ),
)
def test_has_title_metadata(tmp_path: Path, content: str, expected: bool) -> None:
    path = tmp_path / "doc.md"
    path.write_text(content)

    assert has_title_metadata(path) is expected


def test_unreadable_input_has_no_title_metadata(tmp_path: Path) -> None:
    assert not has_title_metadata(tmp_path / "missing.md")


def test_crlf_front_matter_title_is_detected(tmp_path: Path) -> None:
    path = tmp_path / "doc.md"
    path.write_bytes(b"---\r\ntitle: Hello\r\n---\r\n\r\nBody\r\n")

    assert has_title_metadata(path)


@pytest.mark.parametrize(
    ("url", "expected"),
    (
        (None, DEFAULT_KATEX),
        ("file:///opt/katex", "file:///opt/katex/"),
        ("https://example.com/katex/", "https://example.com/katex/"),
    ),
)
def test_katex_url_has_trailing_slash(url: str | None, expected: str) -> None:
    assert katex_url(url) == expected


def test_build_command_adds_fallback_title(note: Path, assets: Assets, tmp_path: Path) -> None:
    output = tmp_path / "note.html"

    command = build_command("pandoc", note, output, assets, katex="file:///katex")

    assert command[:2] == ["pandoc", "--katex=file:///katex/"]
    assert command[command.index("--metadata") + 1] == "title=note"
    assert command[command.index("--lua-filter") + 1] == str(assets.lua_path)
    assert command[command.index("--template") + 1] == str(assets.template_path)
    assert [command[i + 1] for i, arg in enumerate(command) if arg == "--css"] == [
        str(assets.theme_path),
        str(assets.skylighting_path),
    ]
    assert "--toc" in command
    assert "--wrap=none" in command
    assert "--embed-resources" in command
    assert command[-3:] == ["--output", str(output), str(note)]


def test_build_command_keeps_existing_title(note: Path, assets: Assets, tmp_path: Path) -> None:
    note.write_text("---\ntitle: Real Title\n---\n\nBody\n")

    command = build_command("pandoc", note, tmp_path / "note.html", assets)

    assert "--metadata" not in command


def test_assets_are_written(assets: Assets) -> None:
    for path in (assets.template_path, assets.lua_path, assets.theme_path, assets.skylighting_path):
        assert path.is_file()
        assert path.read_text()

    assert "$body$" in assets.template_path.read_text()


async def test_renderer_available(fake_pandoc: FakePandoc) -> None:
    assert await renderer_available(str(fake_pandoc.path))


async def test_missing_renderer_is_unavailable(tmp_path: Path) -> None:
    assert not await renderer_available(str(tmp_path / "no-such-pandoc"))

from pathlib import Path

import pytest
from pydantic import ValidationError

from mdr.config import DEFAULT_HOST, DEFAULT_PORT, Config
from mdr.render import DEFAULT_KATEX


def test_defaults() -> None:
    config = Config(input_path=Path("docs/note.md"))

    assert config.output_path == Path("docs/note.html")
    assert config.host == DEFAULT_HOST
    assert config.port == DEFAULT_PORT
    assert config.katex == DEFAULT_KATEX
    assert config.pandoc == "pandoc"
    assert not config.watching


def test_explicit_output_path_wins() -> None:
    config = Config(input_path=Path("note.md"), output_path=Path("out/index.html"))

    assert config.output_path == Path("out/index.html")


def test_input_without_suffix_gets_html_suffix() -> None:
    assert Config(input_path=Path("README")).output_path == Path("README.html")


@pytest.mark.parametrize(
    ("watch", "serve", "expected"),
    (
        (False, False, False),
        (True, False, True),
        (False, True, True),
        (True, True, True),
    ),
)
def test_serving_implies_watching(watch: bool, serve: bool, expected: bool) -> None:
    assert Config(input_path=Path("note.md"), watch=watch, serve=serve).watching is expected


def test_katex_url_gets_trailing_slash() -> None:
    assert Config(input_path=Path("note.md"), katex="file:///katex").katex == "file:///katex/"


@pytest.mark.parametrize("port", (-1, 65536))
def test_invalid_port(port: int) -> None:
    with pytest.raises(ValidationError):
        Config(input_path=Path("note.md"), port=port)


def test_config_is_frozen() -> None:
    config = Config(input_path=Path("note.md"))

    with pytest.raises(ValidationError):
        config.watch = True  # type: ignore[misc]

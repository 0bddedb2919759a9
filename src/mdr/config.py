from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

from pydantic import Field, field_validator, model_validator

from mdr.model import Model
from mdr.render import DEFAULT_KATEX, katex_url

DEFAULT_HOST = "127.0.0.1"
PUBLIC_HOST = "0.0.0.0"
DEFAULT_PORT = 8080


def default_output_path(input_path: Path) -> Path:
    return input_path.with_suffix(".html")


class Config(Model):
    input_path: Annotated[Path, Field(description="The Markdown file to render.")]
    output_path: Annotated[
        Path,
        Field(description="Where to write the rendered HTML. Defaults to the input path with an .html suffix."),
    ]

    watch: Annotated[bool, Field(description="Re-render whenever the input changes.")] = False
    serve: Annotated[
        bool,
        Field(description="Serve the rendered HTML with live reload. Implies watching."),
    ] = False
    host: Annotated[str, Field(min_length=1, description="The address to serve on.")] = DEFAULT_HOST
    port: Annotated[int, Field(ge=0, le=65535, description="The port to serve on.")] = DEFAULT_PORT
    no_clobber: Annotated[
        bool,
        Field(description="Ask before overwriting an existing output file."),
    ] = False

    katex: Annotated[str, Field(description="Base URL that KaTeX assets are loaded from.")] = DEFAULT_KATEX
    pandoc: Annotated[str, Field(min_length=1, description="The pandoc executable to render with.")] = (
        "pandoc"
    )

    @model_validator(mode="before")
    @classmethod
    def derive_output_path(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("output_path") is None and data.get("input_path") is not None:
            return data | {"output_path": default_output_path(Path(data["input_path"]))}

        return data

    @field_validator("output_path")
    @classmethod
    def output_path_is_not_empty(cls, output_path: Path) -> Path:
        if not output_path.name:
            raise ValueError("could not derive output path from input")

        return output_path

    @field_validator("katex")
    @classmethod
    def katex_has_trailing_slash(cls, katex: str) -> str:
        return katex_url(katex)

    @property
    def watching(self) -> bool:
        return self.watch or self.serve

"""Build manifest: validation and persistence.

The manifest is a flat ``Key="value"`` file (valid TOML), one property per
line, sorted by key so identical builds produce identical files.
"""

from __future__ import annotations

import json
import tomllib
from importlib import resources
from pathlib import Path

from jsonschema import Draft202012Validator

MANIFEST_FILE_NAME = "build-manifest.toml"

_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t"}


def _manifest_schema() -> dict:
    ref = resources.files("buildsmith").joinpath("schema/manifest.schema.json")
    with ref.open("r", encoding="utf-8") as f:
        return json.load(f)


def validate_manifest(data: dict[str, str]) -> None:
    Draft202012Validator(_manifest_schema()).validate(data)


def _quote(value: str) -> str:
    return '"' + "".join(_ESCAPES.get(ch, ch) for ch in value) + '"'


def format_manifest(data: dict[str, str]) -> str:
    return "".join(f"{key}={_quote(data[key])}\n" for key in sorted(data))


def write_manifest(directory: Path, data: dict[str, str]) -> Path:
    """Validate *data* and write it to ``<directory>/build-manifest.toml``."""
    validate_manifest(data)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / MANIFEST_FILE_NAME
    path.write_text(format_manifest(data), encoding="utf-8")
    return path


def read_manifest(path: Path) -> dict[str, str]:
    with path.open("rb") as f:
        return {k: str(v) for k, v in tomllib.load(f).items()}

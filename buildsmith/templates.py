"""Script template rendering.

Templates are bash files shipped as package data under ``buildsmith/templates``.
Placeholders use ``@@{name}`` so they never clash with shell ``${VAR}``
expansion; ``@@@@`` renders a literal ``@@``.

Callers decide *what* goes into a template; they never build shell text by
string concatenation.
"""

from __future__ import annotations

import string
from collections.abc import Callable, Mapping
from functools import lru_cache
from importlib import resources
from typing import Any

Renderer = Callable[[str, Mapping[str, Any]], str]


class ScriptTemplate(string.Template):
    delimiter = "@@"


@lru_cache(maxsize=None)
def load_template(template_id: str) -> str:
    ref = resources.files("buildsmith").joinpath(f"templates/{template_id}.sh")
    with ref.open("r", encoding="utf-8") as f:
        return f.read()


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def render(template_id: str, properties: Mapping[str, Any]) -> str:
    """Fill *template_id* with *properties*; a missing property raises ``KeyError``."""
    template = ScriptTemplate(load_template(template_id))
    return template.substitute({k: _text(v) for k, v in properties.items()})

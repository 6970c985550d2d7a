"""
build-helpers: template expansion

Purpose
- Render inline template strings and template files for generated build inputs
  (packaging specs, config files, scripts).

Functional requirements
- Undefined variables are errors, never silently empty.
- Several variable mappings merge left to right; later keys win.
- ``expand_file`` renders the destination path with the same variables.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from jinja2 import Environment, StrictUndefined, TemplateError

from buildhelpers.constants import DEFAULT_FILE_MODE
from buildhelpers.utils.fs import atomic_write, create_parent_dir
from buildhelpers.utils.shell import env_or

PathLike = str | os.PathLike[str]

_INLINE_NAME = "inline"


class TemplateExpansionError(ValueError):
    """Raised when a template fails to parse or render."""


def build_environment() -> Environment:
    environment = Environment(
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )
    environment.globals["env_or"] = env_or
    return environment


def join_maps(*mappings: Mapping[str, Any] | None) -> dict[str, Any]:
    """Merge ``mappings`` left to right into a new dict."""

    merged: dict[str, Any] = {}
    for mapping in mappings:
        if mapping:
            merged.update(mapping)
    return merged


def expand(text: str, *mappings: Mapping[str, Any] | None) -> str:
    """Render the inline template ``text`` with the merged ``mappings``."""

    return _render(_INLINE_NAME, text, join_maps(*mappings))


def expand_file(src: PathLike, dst: PathLike, *mappings: Mapping[str, Any] | None) -> Path:
    """Render the template file ``src`` into the (templated) path ``dst``."""

    source = Path(src)
    try:
        template_text = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise TemplateExpansionError(f"failed reading from template {source}: {exc}") from exc

    variables = join_maps(*mappings)
    rendered = _render(str(source), template_text, variables)
    target = create_parent_dir(_render(_INLINE_NAME, os.fspath(dst), variables))
    atomic_write(target, rendered, mode=DEFAULT_FILE_MODE)
    return target


def _render(name: str, text: str, variables: Mapping[str, Any]) -> str:
    context = {"env": dict(os.environ), **variables}
    environment = build_environment()
    subject = f"template {text!r}" if name == _INLINE_NAME else f"template {name}"
    try:
        template = environment.from_string(text)
    except TemplateError as exc:
        raise TemplateExpansionError(f"failed to parse {subject}: {exc}") from exc
    try:
        return template.render(context)
    except TemplateError as exc:
        raise TemplateExpansionError(f"failed to expand {subject}: {exc}") from exc


__all__ = [
    "TemplateExpansionError",
    "build_environment",
    "expand",
    "expand_file",
    "join_maps",
]

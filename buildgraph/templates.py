# SPDX-License-Identifier: MIT
"""Template rendering for rule libraries.

Rule libraries that generate scripts (TCL, shell, ...) render them with
Jinja2 and hand the finished text to a BuildStep. The engine itself never
sees templates.

Example:
    script = compile_template(
        "{% for src in srcs %}read_verilog {{ src }}\\n{% endfor %}",
        "synth.tcl",
        {"srcs": ["a.v", "b.v"]},
    )
    ctx.add_build_step(BuildStep(out=out, script=script))
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined
from jinja2 import TemplateError as JinjaError

from buildgraph.core.errors import TemplateError


def has_suffix(value: Any, suffix: str) -> bool:
    return str(value).endswith(suffix)


def _environment(loader: FileSystemLoader | None = None) -> Environment:
    env = Environment(
        loader=loader,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )
    env.globals["has_suffix"] = has_suffix
    env.filters["has_suffix"] = has_suffix
    return env


def compile_template(text: str, name: str, data: dict[str, Any]) -> str:
    """Render template ``text`` with ``data``.

    Args:
        text: Template source.
        name: Template name, used in error messages.
        data: Template variables.

    Raises:
        TemplateError: If the template cannot be parsed or rendered.
    """
    try:
        template = _environment().from_string(text)
        return template.render(**data)
    except JinjaError as e:
        raise TemplateError(f"cannot render template '{name}': {e}") from e


def compile_template_file(path: Path | str, data: dict[str, Any]) -> str:
    """Render the template file at ``path`` with ``data``.

    Raises:
        TemplateError: If the file cannot be loaded, parsed or rendered.
    """
    path = Path(path)
    try:
        env = _environment(FileSystemLoader(str(path.parent)))
        return env.get_template(path.name).render(**data)
    except JinjaError as e:
        raise TemplateError(f"cannot render template '{path}': {e}") from e

# SPDX-License-Identifier: MIT
"""Ninja build file generator.

The build file has four sections, always in this order:

1. ``build __phony__: phony``, an always-dirty anchor that top-level
   targets depend on so they re-run their echo/run/test commands.
2. One ``rule`` block per distinct rule. Named rules keep their name;
   anonymous ones are called ``__ruleN`` in order of first use.
3. One ``build`` block per edge, sorted by first output and preceded by
   ``# trace:`` comments naming where the step was defined.
4. One block per exported target: an aggregation edge echoing the
   target's outputs, plus ``<name>#run`` and ``<name>#test`` edges running
   in the console pool.

Rendering is a pure function of the context, so identical inputs produce
byte-identical files.
"""

from __future__ import annotations

import io
import re
from typing import TYPE_CHECKING, TextIO

from buildgraph.core.context import ANONYMOUS_RULE_PREFIX
from buildgraph.core.step import escape_value
from buildgraph.generators.generator import BaseGenerator

if TYPE_CHECKING:
    from collections.abc import Iterable

    from buildgraph.core.context import BuildContext, TargetRule
    from buildgraph.core.paths import Path
    from buildgraph.core.step import BuildRule, Edge

PHONY_ANCHOR = "__phony__"
MAX_TRACES = 10


def escape_path(path: str) -> str:
    """Escape a path for use in a ``build`` line.

    >>> escape_path("dir with spaces/a:b")
    'dir$ with$ spaces/a$:b'
    """
    return re.sub(r"([ \n:$])", r"$\1", path)


class NinjaWriter:
    """Renders one BuildContext as Ninja text."""

    def __init__(self, ctx: BuildContext) -> None:
        self.ctx = ctx
        self._rule_names: dict[object, str] = {}
        self._next_rule = 0

    def render(self) -> str:
        self._rule_names = {}
        self._next_rule = 0
        f = io.StringIO()
        f.write(f"build {PHONY_ANCHOR}: phony\n\n")

        edges = self.ctx.edges()
        self._write_rules(f, edges)
        for edge in edges:
            self._write_edge(f, edge)
        for target_rule in self.ctx.target_rules:
            self._write_target(f, target_rule)
        return f.getvalue()

    def _rule_key(self, rule: BuildRule) -> object:
        return rule.name if rule.name else id(rule)

    def _anonymous_name(self) -> str:
        name = f"{ANONYMOUS_RULE_PREFIX}{self._next_rule}"
        self._next_rule += 1
        return name

    def _write_rules(self, f: TextIO, edges: list[Edge]) -> None:
        for edge in edges:
            key = self._rule_key(edge.rule)
            if key in self._rule_names:
                continue
            name = edge.rule.name or self._anonymous_name()
            self._rule_names[key] = name
            self._write_rule(f, name, edge.rule.ninja_variables())

    def _write_rule(
        self, f: TextIO, name: str, variables: Iterable[tuple[str, str]]
    ) -> None:
        f.write(f"rule {name}\n")
        for key, value in variables:
            f.write(f"  {key} = {value}\n")
        f.write("\n")

    def _write_edge(self, f: TextIO, edge: Edge) -> None:
        for trace in edge.traces[:MAX_TRACES]:
            f.write(f"# trace: {trace}\n")
        if len(edge.traces) > MAX_TRACES:
            f.write(f"# ... and {len(edge.traces) - MAX_TRACES} more traces\n")

        line = f"build {self._paths(edge.outs)}: {self._rule_names[self._rule_key(edge.rule)]}"
        if edge.ins:
            line += f" {self._paths(edge.ins)}"
        if edge.implicit:
            line += f" | {self._paths(edge.implicit)}"
        if edge.order_only:
            line += f" || {self._paths(edge.order_only)}"
        f.write(line + "\n")

        if edge.depfile is not None:
            f.write(f"  depfile = {escape_path(edge.depfile.absolute())}\n")
        for key, value in edge.variables:
            f.write(f"  {key} = {value}\n")
        f.write("\n")

    def _write_target(self, f: TextIO, target: TargetRule) -> None:
        name = escape_path(target.name)
        printed = "\\n".join(
            escape_value(p).replace('"', '\\"') for p in target.printed
        )
        rule = self._anonymous_name()
        self._write_rule(
            f,
            rule,
            [
                ("command", f'echo "{printed}"'),
                ("description", f"Created {target.name}:"),
            ],
        )
        deps = [self._paths(target.inputs)] if target.inputs else []
        deps.extend(escape_path(d) for d in target.target_deps)
        deps.append(PHONY_ANCHOR)
        f.write(f"build {name}: {rule} {' '.join(deps)}\n\n")

        for suffix, command, verb in (
            ("run", target.run_command, "Running"),
            ("test", target.test_command, "Testing"),
        ):
            if command is None:
                continue
            rule = self._anonymous_name()
            self._write_rule(
                f,
                rule,
                [
                    ("command", command),
                    ("description", f"{verb} {target.name}:"),
                    ("pool", "console"),
                ],
            )
            f.write(f"build {name}#{suffix}: {rule} {name} {PHONY_ANCHOR}\n\n")

    def _paths(self, paths: Iterable[Path]) -> str:
        return " ".join(escape_path(p.absolute()) for p in paths)


class NinjaGenerator(BaseGenerator):
    """Generator for Ninja build files."""

    def __init__(self, filename: str = "build.ninja") -> None:
        super().__init__("ninja", filename)

    def render(self, ctx: BuildContext) -> str:
        return NinjaWriter(ctx).render()

# SPDX-License-Identifier: MIT
"""Build steps and rules.

A build step is one command producing a set of outputs from a set of inputs.
Steps come in two shapes:

- BuildStep carries its own command (or a script/data payload). The engine
  gives it a private, anonymous rule.
- BuildStepWithRule references a shared, named BuildRule (e.g. one ``cxx``
  rule for every C++ compile) and passes per-edge variables to it.

Rule commands are plain Ninja command lines; ``$in``, ``$out`` and edge
variables are expanded by Ninja, not by buildgraph.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from buildgraph.core.paths import OutPath, Path


def escape_value(value: str) -> str:
    """Escape literal text for use in a Ninja command or variable value."""
    return value.replace("$", "$$")


@dataclass(frozen=True)
class BuildRule:
    """A reusable command recipe.

    Attributes:
        name: Rule name. Empty means anonymous; the Ninja writer assigns
            ``__ruleN`` names to anonymous rules.
        command: Ninja command line.
        description: Text Ninja prints while running the command.
        depfile: Depfile pattern (e.g. ``$out.d``).
        deps: Depfile format (``gcc`` or ``msvc``).
        pool: Ninja pool (``console`` for interactive commands).
        restat: Re-stat outputs after running.
        generator: Mark the rule as a generator rule.
        compdb: Include the rule in the compilation database.
        variables: Additional rule-level variables.
    """

    name: str = ""
    command: str = ""
    description: str = ""
    depfile: str = ""
    deps: str = ""
    pool: str = ""
    restat: bool = False
    generator: bool = False
    compdb: bool = False
    variables: tuple[tuple[str, str], ...] = ()

    @classmethod
    def create(
        cls,
        name: str,
        command: str,
        *,
        variables: Mapping[str, str] | None = None,
        **kwargs: object,
    ) -> BuildRule:
        """Create a rule, accepting ``variables`` as a mapping."""
        return cls(
            name=name,
            command=command,
            variables=tuple(sorted((variables or {}).items())),
            **kwargs,  # type: ignore[arg-type]
        )

    def ninja_variables(self) -> list[tuple[str, str]]:
        """Variables of the rule block, in output order."""
        result = [("command", self.command)]
        if self.description:
            result.append(("description", self.description))
        if self.depfile:
            result.append(("depfile", self.depfile))
        if self.deps:
            result.append(("deps", self.deps))
        if self.pool:
            result.append(("pool", self.pool))
        if self.restat:
            result.append(("restat", "1"))
        if self.generator:
            result.append(("generator", "1"))
        result.extend(self.variables)
        return result


@dataclass
class BuildStep:
    """One build command with its inputs and outputs.

    ``out``/``in_`` are conveniences for the common single-path case; they are
    combined with ``outs``/``ins``. Exactly one of ``cmd``, ``script`` and
    ``data`` provides the payload:

    - ``cmd``: a shell command line.
    - ``script``: a script body, written to a content-addressed file that
      becomes the command.
    - ``data``: file contents, written to a content-addressed file and copied
      to the single output.
    """

    out: OutPath | None = None
    outs: Sequence[OutPath] = field(default_factory=list)
    in_: Path | None = None
    ins: Sequence[Path] = field(default_factory=list)
    order_only: Sequence[Path] = field(default_factory=list)
    depfile: OutPath | None = None
    cmd: str = ""
    script: str = ""
    data: str = ""
    data_file_mode: int = 0
    descr: str = ""

    def all_outs(self) -> list[OutPath]:
        result = list(self.outs)
        if self.out is not None:
            result.append(self.out)
        return result

    def all_ins(self) -> list[Path]:
        result = list(self.ins)
        if self.in_ is not None:
            result.append(self.in_)
        return result


@dataclass
class BuildStepWithRule:
    """A build step using a shared, named rule.

    Attributes:
        rule: The rule; must have a name.
        outs: Outputs.
        ins: Explicit inputs (``$in``).
        implicit: Implicit inputs (after ``|``), not part of ``$in``.
        order_only: Order-only inputs (after ``||``).
        depfile: Per-edge depfile, emitted as the ``depfile`` edge variable.
        variables: Per-edge variables referenced by the rule command.
    """

    rule: BuildRule
    outs: Sequence[OutPath] = field(default_factory=list)
    ins: Sequence[Path] = field(default_factory=list)
    implicit: Sequence[Path] = field(default_factory=list)
    order_only: Sequence[Path] = field(default_factory=list)
    depfile: OutPath | None = None
    variables: Mapping[str, str] = field(default_factory=dict)


@dataclass
class Edge:
    """A build statement in the graph, as owned by the engine.

    All sequences are tuples copied from the step; callers cannot mutate
    them after registration.
    """

    rule: BuildRule
    outs: tuple[OutPath, ...]
    ins: tuple[Path, ...]
    implicit: tuple[Path, ...] = ()
    order_only: tuple[Path, ...] = ()
    depfile: OutPath | None = None
    variables: tuple[tuple[str, str], ...] = ()
    traces: list[str] = field(default_factory=list)

    def signature(self) -> tuple[object, ...]:
        """Everything that affects the build; equal signatures are equivalent steps."""
        return (
            self.rule,
            self.outs,
            self.ins,
            self.implicit,
            self.order_only,
            self.depfile,
            self.variables,
        )

    def sort_key(self) -> str:
        return self.outs[0].absolute()

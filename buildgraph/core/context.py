# SPDX-License-Identifier: MIT
"""The build engine.

A BuildContext is created once per generation run. Targets are handed to it
one at a time, in sorted order, and register build steps through it:

    ctx = BuildContext(workspace, targets)
    ctx.process_targets()
    text = NinjaWriter(ctx).render()

The context keeps:

- the output table, mapping every output path to the edge producing it.
  An output may only be redefined by an equivalent step; the redefinition
  is merged and its trace recorded.
- the frontier of the current target: outputs no step has consumed yet.
  It is what an exported target depends on and prints by default.
- the trace stack, breadcrumbs naming which target/library produced a step.
- the set of identities already built (see ``built``).
"""

from __future__ import annotations

import contextlib
import logging
import os
import posixpath
import shlex
import zlib
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path as FsPath
from typing import Any

from buildgraph.core.errors import (
    BuildGraphError,
    BuildStepError,
    GenerateError,
    RedefinitionError,
    RuleConflictError,
    TargetReferenceError,
)
from buildgraph.core.paths import OutPath, Path, Workspace
from buildgraph.core.step import (
    BuildRule,
    BuildStep,
    BuildStepWithRule,
    Edge,
    escape_value,
)
from buildgraph.core.target import (
    description_of,
    has_outputs,
    is_exported,
    is_runnable,
    is_target,
    is_testable,
)

logger = logging.getLogger(__name__)

TRACE_SEPARATOR = " // "
NO_OUTPUTS = "<no outputs produced>"
RESERVED_RULE_NAMES = frozenset(["phony"])
ANONYMOUS_RULE_PREFIX = "__rule"


@dataclass
class TargetRule:
    """Top-level Ninja target for an exported build target.

    Attributes:
        name: Target path, used as the Ninja target name.
        inputs: Frontier outputs the aggregation edge depends on.
        target_deps: Other top-level targets it depends on.
        printed: Outputs echoed when the target is built.
        description: Target description, if any.
        run_command: Command of the ``<name>#run`` edge, if runnable.
        test_command: Command of the ``<name>#test`` edge, if testable.
    """

    name: str
    inputs: list[Path] = field(default_factory=list)
    target_deps: list[str] = field(default_factory=list)
    printed: list[str] = field(default_factory=list)
    description: str = ""
    run_command: str | None = None
    test_command: str | None = None


class BuildContext:
    """Collects the build graph of one generation run.

    Attributes:
        workspace: Directory layout; its configuration hash namespaces outputs.
        targets: Top-level targets by path.
        run_args: Arguments passed to runnable targets.
        test_args: Arguments passed to testable targets.
        target_rules: Top-level targets, in processing order.
        current_target: Target being processed, if any.
    """

    def __init__(
        self,
        workspace: Workspace,
        targets: Mapping[str, Any] | None = None,
        *,
        run_args: Sequence[str] = (),
        test_args: Sequence[str] = (),
    ) -> None:
        self.workspace = workspace
        self.targets: dict[str, Any] = dict(targets or {})
        self.run_args = list(run_args)
        self.test_args = list(test_args)
        self.target_rules: list[TargetRule] = []
        self.current_target: str | None = None

        self._target_names = {id(obj): name for name, obj in self.targets.items()}
        self._outputs: dict[str, Edge] = {}
        self._edges: list[Edge] = []
        self._named_rules: dict[str, BuildRule] = {}
        self._frontier: dict[Path, None] = {}
        self._target_deps: list[str] = []
        self._seen: set[str] = set()
        self._trace: list[str] = []
        self._cwd = workspace.out("")

    # -- Build contract API -------------------------------------------------

    def cwd(self) -> OutPath:
        """Build directory of the current target."""
        return self._cwd

    def out_path(self, path: Path) -> OutPath:
        """The build-side counterpart of a path (same relative path)."""
        if isinstance(path, OutPath):
            return path
        return self.workspace.out(path.relative())

    def built(self, identity: str) -> bool:
        """Report whether ``identity`` was seen before, and mark it seen.

        Build something at most once with:

            if ctx.built(out.absolute()):
                return out
        """
        if identity in self._seen:
            return True
        self._seen.add(identity)
        return False

    @contextlib.contextmanager
    def traced(self, label: str) -> Iterator[BuildContext]:
        """Push ``label`` onto the trace for the duration of the block."""
        self._trace.append(label)
        try:
            yield self
        finally:
            self._trace.pop()

    def with_trace(self, label: str, fn: Callable[[BuildContext], Any]) -> Any:
        """Call ``fn(ctx)`` with ``label`` added to the trace."""
        with self.traced(label):
            return fn(self)

    def trace(self) -> list[str]:
        """Current trace, most recent last."""
        return list(self._trace)

    def add_target_dependency(self, target: Any) -> None:
        """Make the current top-level target depend on another one."""
        name = self._target_names.get(id(target))
        if name is None:
            raise TargetReferenceError("adding target dependency to invalid target")
        if not is_exported(name):
            raise TargetReferenceError(
                f"adding target dependency to non-exported target '{name}'"
            )
        self._target_deps.append(name)

    def add_build_step(self, step: BuildStep | BuildStepWithRule) -> None:
        """Register a build step.

        Steps without outputs are ignored. A step redefining an output must
        be equivalent to the step that defined it first.

        Raises:
            RedefinitionError: An output is already produced by a different step.
            RuleConflictError: A named rule was defined differently before.
            BuildStepError: The step is malformed.
        """
        if isinstance(step, BuildStepWithRule):
            outs = list(step.outs)
            if not outs:
                return
            edge = Edge(
                rule=step.rule,
                outs=tuple(outs),
                ins=tuple(step.ins),
                implicit=tuple(step.implicit),
                order_only=tuple(step.order_only),
                depfile=step.depfile,
                variables=tuple(sorted(step.variables.items())),
            )
        else:
            outs = step.all_outs()
            if not outs:
                return
            edge = Edge(
                rule=BuildRule(
                    command=self._step_command(step),
                    description=step.descr,
                ),
                outs=tuple(outs),
                ins=tuple(step.all_ins()),
                order_only=tuple(step.order_only),
                depfile=step.depfile,
            )
        self._add_edge(edge)

    # -- Engine internals ---------------------------------------------------

    def _trace_label(self) -> str:
        return TRACE_SEPARATOR.join(self._trace)

    def _add_edge(self, edge: Edge) -> None:
        trace = self._trace_label()
        self._check_rule(edge.rule)

        existing: Edge | None = None
        for out in edge.outs:
            other = self._outputs.get(out.absolute())
            if other is None:
                continue
            if other.signature() != edge.signature():
                raise RedefinitionError(out.absolute(), other.traces, trace)
            existing = other

        if existing is not None:
            logger.debug("Merging redefinition of %s", edge.outs[0].absolute())
            existing.traces.append(trace)
        else:
            edge.traces.append(trace)
            for out in edge.outs:
                self._outputs[out.absolute()] = edge
            self._edges.append(edge)
            logger.debug("Added build step for %s", edge.outs[0].absolute())

        for out in edge.outs:
            self._frontier[out] = None
        for path in (*edge.ins, *edge.implicit, *edge.order_only):
            self._frontier.pop(path, None)

    def _check_rule(self, rule: BuildRule) -> None:
        if not rule.name:
            return
        if rule.name in RESERVED_RULE_NAMES or rule.name.startswith(
            ANONYMOUS_RULE_PREFIX
        ):
            raise BuildStepError(f"rule name '{rule.name}' is reserved")
        existing = self._named_rules.get(rule.name)
        if existing is None:
            self._named_rules[rule.name] = rule
        elif existing != rule:
            raise RuleConflictError(rule.name)

    def _step_command(self, step: BuildStep) -> str:
        if step.script:
            if step.cmd:
                raise BuildStepError(
                    "cannot specify both Cmd and Script in a build step"
                )
            return escape_value(shlex.quote(self._write_blob(step.script, 0o755)))
        if step.data:
            if step.cmd:
                raise BuildStepError("cannot specify both Cmd and Data in a build step")
            if step.out is None or step.outs:
                raise BuildStepError("a single Out is required for Data in a build step")
            blob = self._write_blob(step.data, step.data_file_mode or 0o644)
            return escape_value(
                f"cp {shlex.quote(blob)} {shlex.quote(step.out.absolute())}"
            )
        return step.cmd

    def _write_blob(self, data: str, mode: int) -> str:
        """Write ``data`` to a content-addressed file and return its path."""
        content = data.encode()
        name = f"{zlib.crc32(content) & 0xFFFFFFFF:08X}"
        blob = FsPath(self.workspace.data_dir) / name
        try:
            blob.parent.mkdir(parents=True, exist_ok=True)
            if not blob.exists() or blob.read_bytes() != content:
                blob.write_bytes(content)
                logger.debug("Wrote data file %s", blob)
            os.chmod(blob, mode)
        except OSError as e:
            raise GenerateError(f"failed to write data file {blob}: {e}") from e
        return posixpath.join(self.workspace.data_dir, name)

    # -- Target processing --------------------------------------------------

    def handle_target(self, name: str, target: Any) -> None:
        """Build one top-level target and record its Ninja target.

        Raises:
            BuildGraphError: Any error, tagged with the target name.
        """
        self.current_target = name
        self._cwd = self.workspace.out(posixpath.dirname(name))
        self._frontier = {}
        self._target_deps = []

        try:
            self.with_trace(f"top:{name}", target.build)
            if is_exported(name):
                self.target_rules.append(self._target_rule(name, target))
        except BuildGraphError as e:
            if e.target is None:
                e.target = name
            raise
        self.current_target = None

    def _target_rule(self, name: str, target: Any) -> TargetRule:
        inputs = sorted(self._frontier, key=lambda p: p.absolute())
        if has_outputs(target):
            printed = [self.workspace.display(p) for p in target.outputs()]
        else:
            printed = [self.workspace.display(p) for p in inputs]
        printed.sort()

        rule = TargetRule(
            name=name,
            inputs=inputs,
            target_deps=list(self._target_deps),
            printed=printed or [NO_OUTPUTS],
            description=description_of(target),
        )
        if is_runnable(target):
            rule.run_command = target.run(list(self.run_args))
        if is_testable(target):
            rule.test_command = target.test(list(self.test_args))
        return rule

    def process_targets(self) -> None:
        """Handle every registered target, in sorted name order."""
        for name in sorted(self.targets):
            target = self.targets[name]
            if is_target(target):
                self.handle_target(name, target)

    # -- Results ------------------------------------------------------------

    def edges(self) -> list[Edge]:
        """All distinct edges, sorted by their first output."""
        return sorted(self._edges, key=Edge.sort_key)

    def edge_for(self, output: Path | str) -> Edge | None:
        key = output if isinstance(output, str) else output.absolute()
        return self._outputs.get(key)

    def frontier(self) -> list[Path]:
        """Frontier of the current (or last) target, sorted."""
        return sorted(self._frontier, key=lambda p: p.absolute())

    def compdb_rules(self) -> list[str]:
        """Names of the rules to include in a compilation database."""
        return sorted(name for name, r in self._named_rules.items() if r.compdb)

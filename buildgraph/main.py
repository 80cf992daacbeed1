# SPDX-License-Identifier: MIT
"""Generator driver: from a GeneratorInput to a GeneratorOutput.

One run goes through these phases:

1. Load the targets (executing BUILD.py files registers their flags).
2. Lock the flags, which fixes the configuration hash and thereby the
   build directory.
3. Report the exported targets and which of them the patterns select.
4. For the build, run and test modes, process every target in sorted
   order and render the Ninja file.

Any BuildGraphError aborts the run before anything is reported.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

from buildgraph.core.context import BuildContext
from buildgraph.core.errors import ProtocolError
from buildgraph.core.flags import FlagRegistry, load_persisted_flags
from buildgraph.core.paths import Workspace
from buildgraph.core.target import TargetInfo, is_exported
from buildgraph.generators.ninja import NinjaGenerator
from buildgraph.loader import load_targets
from buildgraph.protocol import GeneratorInput, GeneratorOutput, Mode

logger = logging.getLogger(__name__)


def compile_patterns(patterns: list[str]) -> list[re.Pattern[str]]:
    """Compile target patterns; each must match a whole target path."""
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error as e:
            raise ProtocolError(
                f"target pattern '{pattern}' is not a valid regular expression: {e}"
            ) from e
    return compiled


def select_targets(
    targets: Mapping[str, Any], inp: GeneratorInput
) -> tuple[dict[str, TargetInfo], list[str]]:
    """Describe the exported targets and select those matching the patterns.

    Negative patterns take precedence over positive ones. In run and test
    mode, only runnable or testable targets are reported.

    Returns:
        Target infos by path, and the sorted list of selected target paths.
    """
    positive = compile_patterns(inp.positive_patterns)
    negative = compile_patterns(inp.negative_patterns)

    infos: dict[str, TargetInfo] = {}
    selected: list[str] = []
    for path in sorted(targets):
        if not is_exported(path):
            continue
        info = TargetInfo.of(targets[path])
        if inp.mode == Mode.RUN and not info.runnable:
            continue
        if inp.mode == Mode.TEST and not info.testable:
            continue
        excluded = any(p.fullmatch(path) for p in negative)
        if not excluded and any(p.fullmatch(path) for p in positive):
            info.selected = True
            selected.append(path)
        infos[path] = info
    return infos, selected


def run_generator(
    inp: GeneratorInput,
    targets: Mapping[str, Any] | None = None,
    registry: FlagRegistry | None = None,
) -> GeneratorOutput:
    """Run the generator for one input.

    Args:
        inp: The invocation.
        targets: Targets by path. Loaded from the BUILD.py files of
            ``inp.source_dir`` if not given.
        registry: Flag registry the targets were defined against. Created
            from the command line and persisted flags if not given.

    Raises:
        BuildGraphError: On any configuration, graph or I/O error.
    """
    workspace = Workspace(
        source_dir=inp.source_dir,
        build_dir_prefix=inp.build_dir_prefix,
        working_dir=inp.working_dir,
    )
    if registry is None:
        registry = FlagRegistry(
            cmdline=inp.cmdline_flags,
            persisted=load_persisted_flags(workspace.flags_file),
        )
    if targets is None:
        targets = load_targets(inp.source_dir, registry)

    locked = registry.lock(workspace.flags_file if inp.persist_flags else None)
    workspace = workspace.with_config_hash(locked.config_hash)
    logger.info("Build directory: %s", workspace.build_dir)

    output = GeneratorOutput(flags=locked.info)
    output.targets, output.selected_targets = select_targets(targets, inp)

    if inp.mode.generates:
        ctx = BuildContext(
            workspace, targets, run_args=inp.run_args, test_args=inp.test_args
        )
        ctx.process_targets()
        output.ninja_file = NinjaGenerator().render(ctx)
        output.compdb_rules = ctx.compdb_rules()
    return output

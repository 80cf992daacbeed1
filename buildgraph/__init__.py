# SPDX-License-Identifier: MIT
"""
buildgraph: turns Python build target definitions into Ninja files.

Targets are plain objects with a ``build(ctx)`` method, defined in BUILD.py
files. buildgraph walks them in a deterministic order, memoizes and checks
the build steps they register, namespaces outputs by the active flag
configuration and writes a Ninja build file for an external executor.
"""

from __future__ import annotations

__version__ = "0.3.0"

# Re-export commonly used classes for convenient imports
from buildgraph.core.context import BuildContext  # noqa: E402
from buildgraph.core.errors import BuildGraphError  # noqa: E402
from buildgraph.core.flags import (  # noqa: E402
    BoolFlag,
    FlagRegistry,
    FloatFlag,
    IntFlag,
    StringFlag,
)
from buildgraph.core.paths import (  # noqa: E402
    GlobalPath,
    OutPath,
    Path,
    SourcePath,
    Workspace,
)
from buildgraph.core.step import BuildRule, BuildStep, BuildStepWithRule  # noqa: E402
from buildgraph.core.target import TargetGroup  # noqa: E402
from buildgraph.generators.ninja import NinjaGenerator  # noqa: E402

# Public API exports
__all__ = [
    # Version
    "__version__",
    # Engine
    "BuildContext",
    "BuildGraphError",
    "BuildRule",
    "BuildStep",
    "BuildStepWithRule",
    "TargetGroup",
    # Paths
    "GlobalPath",
    "OutPath",
    "Path",
    "SourcePath",
    "Workspace",
    # Flags
    "BoolFlag",
    "FlagRegistry",
    "FloatFlag",
    "IntFlag",
    "StringFlag",
    # Generators
    "NinjaGenerator",
]

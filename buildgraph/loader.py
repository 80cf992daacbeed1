# SPDX-License-Identifier: MIT
"""Discovery of targets in BUILD.py files.

Every ``BUILD.py`` below the source directory defines a package named after
its directory. The file runs with two extra globals:

- ``package``: a Package, whose ``source()`` creates paths relative to the
  package directory.
- ``flags``: the FlagRegistry of the run.

Every public module-level object with a ``build`` method becomes a target
named ``<package>/<variable>``:

    # lib/hello/BUILD.py
    from buildgraph.rules import cc

    Hello = cc.Binary(name="hello", srcs=[package.source("hello.c")])

defines the target ``lib/hello/Hello``.
"""

from __future__ import annotations

import logging
import os
import posixpath
import runpy
import types
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from buildgraph.core.errors import BuildGraphError, LoadError
from buildgraph.core.paths import SourcePath
from buildgraph.core.target import is_target

if TYPE_CHECKING:
    from buildgraph.core.flags import FlagRegistry

logger = logging.getLogger(__name__)

BUILD_FILE = "BUILD.py"


@dataclass(frozen=True)
class Package:
    """A directory containing a BUILD.py file.

    Attributes:
        source_dir: Root of the source tree.
        name: Directory relative to the source root ("" for the root).
    """

    source_dir: str
    name: str

    def source(self, rel: str) -> SourcePath:
        """Path of a file in this package."""
        return SourcePath(self.source_dir, posixpath.join(self.name, rel))

    def target_path(self, variable: str) -> str:
        return posixpath.join(self.name, variable) if self.name else variable


def find_build_files(source_dir: Path | str) -> list[Path]:
    """All BUILD.py files below ``source_dir``, sorted, skipping hidden dirs."""
    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(source_dir):
        dirnames[:] = sorted(
            d for d in dirnames if not d.startswith(".") and d != "__pycache__"
        )
        if BUILD_FILE in filenames:
            found.append(Path(dirpath) / BUILD_FILE)
    return sorted(found)


def load_build_file(
    path: Path, package: Package, registry: FlagRegistry
) -> dict[str, Any]:
    """Execute one BUILD.py and return its targets by target path.

    Raises:
        LoadError: If the file raises anything but a BuildGraphError.
    """
    logger.debug("Loading %s", path)
    try:
        namespace = runpy.run_path(
            str(path),
            init_globals={"package": package, "flags": registry},
            run_name=f"buildgraph.packages.{package.name.replace('/', '.') or '_root'}",
        )
    except BuildGraphError:
        raise
    except Exception as e:
        raise LoadError(f"failed to load {path}: {e}") from e

    targets: dict[str, Any] = {}
    for variable, value in namespace.items():
        if variable.startswith("_") or isinstance(value, types.ModuleType):
            continue
        if is_target(value):
            targets[package.target_path(variable)] = value
    return targets


def load_targets(source_dir: Path | str, registry: FlagRegistry) -> dict[str, Any]:
    """Load the targets of every package below ``source_dir``."""
    root = Path(source_dir)
    source_root = str(root.absolute()).replace(os.sep, "/")
    targets: dict[str, Any] = {}
    for build_file in find_build_files(root):
        name = build_file.parent.relative_to(root).as_posix()
        package = Package(source_root, "" if name == "." else name)
        targets.update(load_build_file(build_file, package, registry))
    logger.info("Found %d targets in %s", len(targets), source_dir)
    return targets

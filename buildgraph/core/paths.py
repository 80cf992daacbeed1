# SPDX-License-Identifier: MIT
"""Path model for build inputs and outputs.

A SourcePath is fixed under the source root. An OutPath is fixed under the
build root and carries the configuration hash it was created under, so
outputs of different configurations never alias:

    ws = Workspace("/src", "/out/build", config_hash="1A2B3C4D")
    obj = ws.out("lib/foo.c").with_ext("o")
    obj.absolute()  # '/out/build-1A2B3C4D/lib/foo.o'

All paths are immutable; derivations return new values. Paths use forward
slashes since they end up in Ninja files and shell commands.
"""

from __future__ import annotations

import dataclasses
import os
import posixpath
from dataclasses import dataclass


@dataclass(frozen=True)
class Path:
    """Base class for paths that are inputs to or outputs of build steps."""

    def absolute(self) -> str:
        raise NotImplementedError

    def relative(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.absolute()


@dataclass(frozen=True)
class SourcePath(Path):
    """A path relative to the workspace source directory."""

    root: str
    rel: str

    def absolute(self) -> str:
        return posixpath.join(self.root, self.rel)

    def relative(self) -> str:
        return self.rel


@dataclass(frozen=True)
class OutPath(Path):
    """A path relative to the build directory of one configuration."""

    root: str
    config_hash: str
    rel: str

    @property
    def build_dir(self) -> str:
        return build_dir_name(self.root, self.config_hash)

    def absolute(self) -> str:
        return posixpath.join(self.build_dir, self.rel)

    def relative(self) -> str:
        return self.rel

    def with_ext(self, ext: str) -> OutPath:
        """Replace the extension of the final component.

        >>> OutPath("/b", "0", "x/foo.c").with_ext("o").rel
        'x/foo.o'
        """
        stem, _ = posixpath.splitext(self.rel)
        return dataclasses.replace(self, rel=f"{stem}.{ext.lstrip('.')}")

    def with_filename(self, filename: str) -> OutPath:
        """Replace the final component."""
        return dataclasses.replace(
            self, rel=posixpath.join(posixpath.dirname(self.rel), filename)
        )

    def with_suffix(self, suffix: str) -> OutPath:
        """Append a suffix to the final component (``foo.o`` -> ``foo.o.d``)."""
        return dataclasses.replace(self, rel=self.rel + suffix)

    def join(self, rel: str) -> OutPath:
        """A path below this one."""
        return dataclasses.replace(self, rel=posixpath.join(self.rel, rel))

    def with_prefix(self, prefix: str) -> OutPath:
        """Nest the path under an additional directory."""
        return dataclasses.replace(self, rel=posixpath.join(prefix, self.rel))


@dataclass(frozen=True)
class GlobalPath(Path):
    """An absolute path outside the workspace (e.g. a system tool)."""

    abs: str

    def absolute(self) -> str:
        return self.abs

    def relative(self) -> str:
        return self.abs


def build_dir_name(prefix: str, config_hash: str) -> str:
    """Name of the build directory for a configuration hash."""
    if not config_hash:
        return prefix
    return f"{prefix}-{config_hash}"


@dataclass(frozen=True)
class Workspace:
    """Directory layout of one generation run.

    Attributes:
        source_dir: Root of the source tree.
        build_dir_prefix: Build directory before the configuration suffix.
        working_dir: Directory user-facing paths are printed relative to.
        config_hash: Hash of the locked flag values.
    """

    source_dir: str
    build_dir_prefix: str
    working_dir: str = ""
    config_hash: str = ""

    @property
    def build_dir(self) -> str:
        return build_dir_name(self.build_dir_prefix, self.config_hash)

    @property
    def output_root(self) -> str:
        """Directory holding all build directories, the flags file and blobs."""
        return posixpath.dirname(self.build_dir_prefix)

    @property
    def data_dir(self) -> str:
        return posixpath.join(self.output_root, "DATA")

    @property
    def flags_file(self) -> str:
        return posixpath.join(self.output_root, "FLAGS.json")

    def source(self, rel: str) -> SourcePath:
        return SourcePath(self.source_dir, rel)

    def out(self, rel: str) -> OutPath:
        return OutPath(self.build_dir_prefix, self.config_hash, rel)

    def with_config_hash(self, config_hash: str) -> Workspace:
        return dataclasses.replace(self, config_hash=config_hash)

    def display(self, path: Path) -> str:
        """Path as shown to the user, relative to the working directory."""
        if not self.working_dir:
            return path.absolute()
        return os.path.relpath(path.absolute(), self.working_dir).replace(os.sep, "/")

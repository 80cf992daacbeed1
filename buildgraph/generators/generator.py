# SPDX-License-Identifier: MIT
"""Generator protocol and shared file writing.

A generator turns a processed BuildContext into the text of one build file.
Rendering is kept separate from writing so the driver can hand the text to
its caller without touching the filesystem.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from buildgraph.core.errors import GenerateError

if TYPE_CHECKING:
    from buildgraph.core.context import BuildContext

logger = logging.getLogger(__name__)


@runtime_checkable
class Generator(Protocol):
    """A build file format."""

    @property
    def name(self) -> str:
        """Format name (e.g., 'ninja')."""
        ...

    def render(self, ctx: BuildContext) -> str:
        """Build file text for a context whose targets were all handled."""
        ...

    def generate(self, ctx: BuildContext, output_dir: Path) -> Path:
        """Render and write the build file into ``output_dir``.

        Returns:
            Path of the file written.
        """
        ...


class BaseGenerator:
    """Writes whatever ``render`` produces to ``output_dir / filename``."""

    def __init__(self, name: str, filename: str) -> None:
        self._name = name
        self.filename = filename

    @property
    def name(self) -> str:
        return self._name

    def render(self, ctx: BuildContext) -> str:
        raise NotImplementedError

    def generate(self, ctx: BuildContext, output_dir: Path) -> Path:
        # Render first; a failure must not leave a partial file behind.
        text = self.render(ctx)
        output_file = Path(output_dir) / self.filename
        write_atomically(output_file, text)
        logger.info("Generated %s", output_file)
        return output_file

    def __repr__(self) -> str:
        return f"{type(self).__name__}(filename={self.filename!r})"


def write_atomically(path: Path, text: str) -> None:
    """Replace ``path`` with ``text`` via a temporary file in the same directory.

    Raises:
        GenerateError: If the file cannot be written.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(text)
            os.chmod(tmp, 0o644)
            os.replace(tmp, path)
        except BaseException:
            os.unlink(tmp)
            raise
    except OSError as e:
        raise GenerateError(f"failed to write {path}: {e}") from e

# SPDX-License-Identifier: MIT
"""Build file generators for buildgraph."""

from buildgraph.generators.generator import BaseGenerator, Generator, write_atomically
from buildgraph.generators.ninja import NinjaGenerator, NinjaWriter

__all__ = [
    "BaseGenerator",
    "Generator",
    "NinjaGenerator",
    "NinjaWriter",
    "write_atomically",
]

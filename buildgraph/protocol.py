# SPDX-License-Identifier: MIT
"""Input and output documents of the generator.

The generator is driven by a GeneratorInput, built either from the command
line or from a JSON document, and reports a GeneratorOutput as JSON:

    {
      "version": 1,
      "ninja_file": "build __phony__: phony\\n...",
      "targets": {"app/App": {"description": "", "runnable": true, ...}},
      "flags": {"opt": {"type": "int", "value": "2", ...}},
      "compdb_rules": ["cxx"],
      "selected_targets": ["app/App"]
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any

from buildgraph.core.errors import ProtocolError

if TYPE_CHECKING:
    from buildgraph.core.flags import FlagInfo
    from buildgraph.core.target import TargetInfo

PROTOCOL_VERSION = 1


class Mode(str, Enum):
    """What the caller wants to do with the generated graph."""

    BUILD = "build"
    RUN = "run"
    TEST = "test"
    LIST = "list"
    FLAGS = "flags"

    @property
    def generates(self) -> bool:
        """Whether this mode needs a build file."""
        return self in (Mode.BUILD, Mode.RUN, Mode.TEST)


def _string_list(data: dict[str, Any], key: str) -> list[str]:
    value = data.get(key, [])
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ProtocolError(f"input field '{key}' must be a list of strings")
    return list(value)


def _string_map(data: dict[str, Any], key: str) -> dict[str, str]:
    value = data.get(key, {})
    if not isinstance(value, dict) or not all(
        isinstance(v, str) for v in value.values()
    ):
        raise ProtocolError(f"input field '{key}' must be a string mapping")
    return dict(value)


@dataclass
class GeneratorInput:
    """Everything the generator needs to know about one invocation."""

    mode: Mode
    source_dir: str
    build_dir_prefix: str
    working_dir: str
    cmdline_flags: dict[str, str] = field(default_factory=dict)
    run_args: list[str] = field(default_factory=list)
    test_args: list[str] = field(default_factory=list)
    positive_patterns: list[str] = field(default_factory=list)
    negative_patterns: list[str] = field(default_factory=list)
    persist_flags: bool = True
    version: int = PROTOCOL_VERSION

    @classmethod
    def from_json(cls, data: Any) -> GeneratorInput:
        """Validate and convert a decoded JSON input document.

        Raises:
            ProtocolError: If the document is malformed or has another version.
        """
        if not isinstance(data, dict):
            raise ProtocolError("input document must be a JSON object")
        version = data.get("version")
        if version != PROTOCOL_VERSION:
            raise ProtocolError(
                f"unexpected version of input: {version}, expected {PROTOCOL_VERSION}"
            )
        try:
            mode = Mode(data.get("mode", Mode.BUILD.value))
        except ValueError as e:
            raise ProtocolError(f"unknown mode: {data.get('mode')!r}") from e
        for key in ("source_dir", "build_dir_prefix", "working_dir"):
            if not isinstance(data.get(key), str):
                raise ProtocolError(f"input field '{key}' must be a string")
        return cls(
            mode=mode,
            source_dir=data["source_dir"],
            build_dir_prefix=data["build_dir_prefix"],
            working_dir=data["working_dir"],
            cmdline_flags=_string_map(data, "cmdline_flags"),
            run_args=_string_list(data, "run_args"),
            test_args=_string_list(data, "test_args"),
            positive_patterns=_string_list(data, "positive_patterns"),
            negative_patterns=_string_list(data, "negative_patterns"),
            persist_flags=bool(data.get("persist_flags", True)),
        )

    @classmethod
    def load(cls, path: Path | str) -> GeneratorInput:
        """Read an input document from a JSON file.

        Raises:
            ProtocolError: If the file cannot be read or parsed.
        """
        try:
            with open(path) as f:
                data = json.load(f)
        except OSError as e:
            raise ProtocolError(f"could not read input file: {e}") from e
        except json.JSONDecodeError as e:
            raise ProtocolError(f"could not parse input: {e}") from e
        return cls.from_json(data)


@dataclass
class GeneratorOutput:
    """Result of one generator run."""

    ninja_file: str = ""
    targets: dict[str, TargetInfo] = field(default_factory=dict)
    flags: dict[str, FlagInfo] = field(default_factory=dict)
    compdb_rules: list[str] = field(default_factory=list)
    selected_targets: list[str] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        return {
            "version": PROTOCOL_VERSION,
            "ninja_file": self.ninja_file,
            "targets": {
                name: info.to_json() for name, info in sorted(self.targets.items())
            },
            "flags": {name: info.to_json() for name, info in sorted(self.flags.items())},
            "compdb_rules": list(self.compdb_rules),
            "selected_targets": list(self.selected_targets),
        }

    def dump(self, f: IO[str]) -> None:
        json.dump(self.to_json(), f, indent=2)
        f.write("\n")

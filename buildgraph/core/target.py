# SPDX-License-Identifier: MIT
"""Target contract and optional capabilities.

A target is any object with a ``build(ctx)`` method. Targets may also
implement any of the capability protocols below; the engine checks for them
with the ``is_*``/``has_*`` helpers instead of requiring a common base class.

Only exported targets (whose last path component starts with an upper-case
letter) get a top-level Ninja target, e.g. ``lib/foo/Foo``.
"""

from __future__ import annotations

import posixpath
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from buildgraph.core.context import BuildContext
    from buildgraph.core.paths import Path


@runtime_checkable
class Target(Protocol):
    """Anything that registers build steps."""

    def build(self, ctx: BuildContext) -> None: ...


@runtime_checkable
class Describable(Protocol):
    def description(self) -> str: ...


@runtime_checkable
class Runnable(Protocol):
    def run(self, args: list[str]) -> str:
        """Shell command running the target with the given arguments."""
        ...


@runtime_checkable
class Testable(Protocol):
    def test(self, args: list[str]) -> str:
        """Shell command testing the target with the given arguments."""
        ...


@runtime_checkable
class HasOutputs(Protocol):
    def outputs(self) -> list[Path]:
        """Outputs to report for the target instead of the frontier."""
        ...


def _implements(obj: Any, protocol: type) -> bool:
    # Classes satisfy the structural check too; only instances are targets.
    return not isinstance(obj, type) and isinstance(obj, protocol)


def is_target(obj: Any) -> bool:
    return _implements(obj, Target)


def is_runnable(obj: Any) -> bool:
    return _implements(obj, Runnable)


def is_testable(obj: Any) -> bool:
    return _implements(obj, Testable)


def has_outputs(obj: Any) -> bool:
    return _implements(obj, HasOutputs)


def description_of(obj: Any) -> str:
    if _implements(obj, Describable):
        return str(obj.description())
    return ""


def is_exported(target_path: str) -> bool:
    """Whether a target path names an exported (upper-case) target."""
    name = posixpath.basename(target_path)
    return bool(name) and name[0].isupper()


@dataclass
class TargetInfo:
    """Capabilities of a target, as reported by the generator."""

    description: str = ""
    runnable: bool = False
    testable: bool = False
    selected: bool = False

    @classmethod
    def of(cls, target: Any) -> TargetInfo:
        return cls(
            description=description_of(target),
            runnable=is_runnable(target),
            testable=is_testable(target),
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "runnable": self.runnable,
            "testable": self.testable,
            "selected": self.selected,
        }


class TargetGroup:
    """A target that only depends on other top-level targets.

    Example:
        All = TargetGroup(Foo, Bar)
    """

    def __init__(self, *targets: Any) -> None:
        self.targets = list(targets)

    def build(self, ctx: BuildContext) -> None:
        for target in self.targets:
            ctx.add_target_dependency(target)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.targets)

    def __repr__(self) -> str:
        return f"TargetGroup({len(self.targets)} targets)"

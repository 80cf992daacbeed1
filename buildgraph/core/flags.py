# SPDX-License-Identifier: MIT
"""Configuration flags.

Flags are named, typed configuration values. Each flag resolves exactly once,
taking the first value found in:

1. the command line (``name=value``, or a bare ``name`` meaning ``true``),
2. the persisted flags file written by the previous run,
3. the flag's programmatic default.

Locking the registry freezes the set of flags and computes the configuration
hash, which namespaces every build output created afterwards:

    registry = FlagRegistry(cmdline={"opt": "3"})
    OPT = registry.register(IntFlag("opt", "Optimization level", default=2))
    OPT.value()                       # 3
    locked = registry.lock()
    workspace = workspace.with_config_hash(locked.config_hash)
"""

from __future__ import annotations

import json
import logging
import zlib
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Generic, TypeVar, Union

from buildgraph.core.errors import (
    ConfigError,
    DisallowedFlagValueError,
    DuplicateFlagError,
    MissingFlagValueError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Flag(ABC, Generic[T]):
    """Definition of a configuration flag.

    Subclasses define how values are parsed from and formatted to strings.

    Attributes:
        name: Process-wide unique name.
        description: Human readable description.
        allowed_values: If non-empty, the resolved value must be one of these.
        default: Default value, used if no override applies.
        default_factory: Callable computing the default (wins over default).
    """

    type_name: ClassVar[str] = ""

    name: str
    description: str = ""
    allowed_values: tuple[T, ...] = ()
    default: T | None = None
    default_factory: Callable[[], T] | None = None

    @abstractmethod
    def parse(self, text: str) -> T:
        """Parse a command-line or persisted value."""

    def format(self, value: T) -> str:
        return str(value)

    def allowed_strings(self) -> list[str]:
        return [self.format(v) for v in self.allowed_values]

    def default_value(self) -> T | None:
        if self.default_factory is not None:
            return self.default_factory()
        return self.default


@dataclass(frozen=True)
class StringFlag(Flag[str]):
    type_name: ClassVar[str] = "string"

    def parse(self, text: str) -> str:
        return text


@dataclass(frozen=True)
class BoolFlag(Flag[bool]):
    type_name: ClassVar[str] = "bool"

    def parse(self, text: str) -> bool:
        if text == "true":
            return True
        if text == "false":
            return False
        raise ConfigError(f"invalid value '{text}' for boolean flag '{self.name}'")

    def format(self, value: bool) -> str:
        return "true" if value else "false"

    def allowed_strings(self) -> list[str]:
        return ["true", "false"]


@dataclass(frozen=True)
class IntFlag(Flag[int]):
    type_name: ClassVar[str] = "int"

    def parse(self, text: str) -> int:
        try:
            return int(text, 10)
        except ValueError as e:
            raise ConfigError(
                f"invalid value '{text}' for integer flag '{self.name}': {e}"
            ) from e


@dataclass(frozen=True)
class FloatFlag(Flag[float]):
    type_name: ClassVar[str] = "float"

    def parse(self, text: str) -> float:
        try:
            return float(text)
        except ValueError as e:
            raise ConfigError(
                f"invalid value '{text}' for floating-point flag '{self.name}': {e}"
            ) from e

    def format(self, value: float) -> str:
        return repr(float(value))


@dataclass
class FlagInfo:
    """Resolved flag, as reported to the caller of the generator."""

    description: str
    type: str
    allowed_values: list[str]
    value: str

    def to_json(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "type": self.type,
            "allowed_values": list(self.allowed_values),
            "value": self.value,
        }


@dataclass
class LockedFlags:
    """Result of locking a FlagRegistry."""

    config_hash: str
    info: dict[str, FlagInfo] = field(default_factory=dict)

    def values(self) -> dict[str, str]:
        return {name: info.value for name, info in self.info.items()}


class FlagHandle(Generic[T]):
    """A registered flag, bound to its registry."""

    __slots__ = ("registry", "flag")

    def __init__(self, registry: FlagRegistry, flag: Flag[T]) -> None:
        self.registry = registry
        self.flag = flag

    @property
    def name(self) -> str:
        return self.flag.name

    def value(self) -> T:
        result: T = self.registry.value(self.flag)
        return result

    def __repr__(self) -> str:
        return f"FlagHandle({self.flag.name!r})"


FlagRef = Union[Flag[Any], FlagHandle[Any], str]


class FlagRegistry:
    """Table of all flags of one generation run.

    Attributes:
        cmdline: Overrides from the command line.
        persisted: Overrides from the persisted flags file.
    """

    def __init__(
        self,
        cmdline: Mapping[str, str] | None = None,
        persisted: Mapping[str, str] | None = None,
    ) -> None:
        self.cmdline = dict(cmdline or {})
        self.persisted = dict(persisted or {})
        self._flags: dict[str, Flag[Any]] = {}
        self._values: dict[str, Any] = {}
        self._locked: LockedFlags | None = None

    @property
    def locked(self) -> bool:
        return self._locked is not None

    @property
    def config_hash(self) -> str:
        if self._locked is None:
            raise ConfigError("configuration hash requested before flags were locked")
        return self._locked.config_hash

    def __contains__(self, name: object) -> bool:
        return name in self._flags

    def __len__(self) -> int:
        return len(self._flags)

    def register(self, flag: Flag[T]) -> FlagHandle[T]:
        """Register a flag.

        Registering an identical definition again before locking is a no-op.

        Raises:
            DuplicateFlagError: A different flag already uses the name.
            ConfigError: The registry is locked.
        """
        if self.locked:
            raise ConfigError(
                f"flag '{flag.name}' registered after flags were locked"
            )
        existing = self._flags.get(flag.name)
        if existing is not None:
            if existing != flag:
                raise DuplicateFlagError(flag.name)
            return FlagHandle(self, flag)
        self._flags[flag.name] = flag
        logger.debug("Registered flag %s", flag.name)
        return FlagHandle(self, flag)

    def value(self, ref: FlagRef) -> Any:
        """Return the resolved value of a flag, registering it if needed."""
        if isinstance(ref, str):
            flag = self._flags.get(ref)
            if flag is None:
                raise ConfigError(f"flag '{ref}' is not registered")
        else:
            flag = ref.flag if isinstance(ref, FlagHandle) else ref
            existing = self._flags.get(flag.name)
            if existing is None:
                if self.locked:
                    raise ConfigError(
                        f"flag '{flag.name}' accessed, but not registered "
                        "before flags were locked"
                    )
                self.register(flag)
            elif existing != flag:
                raise DuplicateFlagError(flag.name)
        if flag.name not in self._values:
            self._values[flag.name] = self._resolve(flag)
        return self._values[flag.name]

    def _resolve(self, flag: Flag[Any]) -> Any:
        if flag.name in self.cmdline:
            logger.debug("Flag %s set on the command line", flag.name)
            return flag.parse(self.cmdline[flag.name])
        if flag.name in self.persisted:
            logger.debug("Flag %s set from persisted flags", flag.name)
            return flag.parse(self.persisted[flag.name])
        value = flag.default_value()
        if value is None:
            raise MissingFlagValueError(flag.name)
        return value

    def info(self) -> dict[str, FlagInfo]:
        """Resolve all flags and describe them, sorted by name."""
        result: dict[str, FlagInfo] = {}
        for name in sorted(self._flags):
            flag = self._flags[name]
            result[name] = FlagInfo(
                description=flag.description,
                type=flag.type_name,
                allowed_values=flag.allowed_strings(),
                value=flag.format(self.value(flag)),
            )
        return result

    def lock(self, persist_to: Path | str | None = None) -> LockedFlags:
        """Freeze the registry and compute the configuration hash.

        Args:
            persist_to: If given, write the resolved values to this JSON file
                so the next run reproduces them without the command line.

        Returns:
            The configuration hash and the resolved flag table.

        Raises:
            DisallowedFlagValueError: A value is not in its flag's allow-list.
        """
        if self._locked is not None:
            return self._locked

        info = self.info()
        for name, flag_info in info.items():
            allowed = self._flags[name].allowed_strings()
            if allowed and flag_info.value not in allowed:
                raise DisallowedFlagValueError(name, flag_info.value, allowed)

        digest = config_hash((name, i.value) for name, i in info.items())
        locked = LockedFlags(config_hash=digest, info=info)
        if persist_to is not None:
            save_persisted_flags(persist_to, locked.values())
        self._locked = locked
        logger.debug("Locked %d flags, configuration hash %s", len(info), digest)
        return locked


def config_hash(values: Iterable[tuple[str, str]]) -> str:
    """Order-independent CRC32 over ``name=value`` pairs.

    >>> config_hash([("b", "2"), ("a", "1")]) == config_hash([("a", "1"), ("b", "2")])
    True
    """
    entries = sorted(f"{name}={value}" for name, value in values)
    return f"{zlib.crc32('#'.join(entries).encode()) & 0xFFFFFFFF:08X}"


def parse_flag_args(args: Iterable[str]) -> dict[str, str]:
    """Parse ``name=value`` arguments; a bare ``name`` means ``true``.

    >>> parse_flag_args(["opt=3", "debug"])
    {'opt': '3', 'debug': 'true'}
    """
    flags: dict[str, str] = {}
    for arg in args:
        name, sep, value = arg.partition("=")
        if not name:
            raise ConfigError(f"invalid flag argument '{arg}'")
        flags[name] = value if sep else "true"
    return flags


def load_persisted_flags(path: Path | str) -> dict[str, str]:
    """Load flag values written by a previous lock.

    A missing file means no persisted values.

    Raises:
        ConfigError: If the file cannot be read or is malformed.
    """
    path = Path(path)
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"failed to read persisted flags from {path}: {e}") from e
    if not isinstance(data, dict) or not all(
        isinstance(v, str) for v in data.values()
    ):
        raise ConfigError(f"persisted flags in {path} are not a name/value object")
    return data


def save_persisted_flags(path: Path | str, values: Mapping[str, str]) -> None:
    """Write flag values as a flat JSON object."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(dict(sorted(values.items())), f, indent=2)
            f.write("\n")
    except OSError as e:
        raise ConfigError(f"failed to write persisted flags to {path}: {e}") from e

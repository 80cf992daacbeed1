# SPDX-License-Identifier: MIT
"""Tests for buildgraph.core.flags module."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from buildgraph.core.errors import (
    ConfigError,
    DisallowedFlagValueError,
    DuplicateFlagError,
    MissingFlagValueError,
)
from buildgraph.core.flags import (
    BoolFlag,
    Flag,
    FlagRegistry,
    FloatFlag,
    IntFlag,
    StringFlag,
    config_hash,
    load_persisted_flags,
    parse_flag_args,
    save_persisted_flags,
)


class TestFlagTypes:
    """Tests for parsing and formatting of flag values."""

    def test_bool_parse(self) -> None:
        flag = BoolFlag("debug")
        assert flag.parse("true") is True
        assert flag.parse("false") is False

    def test_bool_rejects_other_spellings(self) -> None:
        with pytest.raises(ConfigError, match="boolean flag 'debug'"):
            BoolFlag("debug").parse("yes")

    def test_bool_allowed_values(self) -> None:
        assert BoolFlag("debug").allowed_strings() == ["true", "false"]

    def test_int_parse(self) -> None:
        assert IntFlag("opt").parse("3") == 3
        assert IntFlag("opt").parse("-1") == -1

    def test_int_rejects_garbage(self) -> None:
        with pytest.raises(ConfigError, match="integer flag 'opt'"):
            IntFlag("opt").parse("three")

    def test_float_parse_and_format(self) -> None:
        flag = FloatFlag("freq")
        assert flag.parse("1.5") == 1.5
        assert flag.format(2) == "2.0"

    def test_string_allowed_values(self) -> None:
        flag = StringFlag("board", allowed_values=("zcu102", "zcu106"))
        assert flag.allowed_strings() == ["zcu102", "zcu106"]

    def test_default_factory_wins(self) -> None:
        flag = StringFlag("board", default="a", default_factory=lambda: "b")
        assert flag.default_value() == "b"


class TestFlagRegistry:
    """Tests for registration and value resolution."""

    def test_default_value(self) -> None:
        registry = FlagRegistry()
        opt = registry.register(IntFlag("opt", default=2))
        assert opt.value() == 2

    def test_cmdline_wins_over_persisted(self) -> None:
        registry = FlagRegistry(cmdline={"opt": "3"}, persisted={"opt": "1"})
        opt = registry.register(IntFlag("opt", default=2))
        assert opt.value() == 3

    def test_persisted_wins_over_default(self) -> None:
        registry = FlagRegistry(persisted={"opt": "1"})
        opt = registry.register(IntFlag("opt", default=2))
        assert opt.value() == 1

    def test_missing_value(self) -> None:
        registry = FlagRegistry()
        name = registry.register(StringFlag("name"))
        with pytest.raises(MissingFlagValueError):
            name.value()

    def test_value_is_resolved_once(self) -> None:
        calls = []

        def default() -> str:
            calls.append(1)
            return "x"

        registry = FlagRegistry()
        handle = registry.register(StringFlag("name", default_factory=default))
        assert handle.value() == "x"
        assert handle.value() == "x"
        assert calls == [1]

    def test_identical_registration_is_noop(self) -> None:
        registry = FlagRegistry()
        registry.register(IntFlag("opt", default=2))
        registry.register(IntFlag("opt", default=2))
        assert len(registry) == 1

    def test_duplicate_name(self) -> None:
        registry = FlagRegistry()
        registry.register(IntFlag("opt", default=2))
        with pytest.raises(DuplicateFlagError, match="multiple flags with name 'opt'"):
            registry.register(IntFlag("opt", default=3))

    def test_duplicate_name_different_type(self) -> None:
        registry = FlagRegistry()
        registry.register(IntFlag("opt", default=2))
        with pytest.raises(DuplicateFlagError):
            registry.register(StringFlag("opt", default="2"))

    def test_lazy_registration_by_value(self) -> None:
        registry = FlagRegistry()
        flag = BoolFlag("debug", default=False)
        assert registry.value(flag) is False
        assert "debug" in registry

    def test_unknown_name(self) -> None:
        with pytest.raises(ConfigError, match="not registered"):
            FlagRegistry().value("nope")

    def test_register_after_lock(self) -> None:
        registry = FlagRegistry()
        registry.lock()
        with pytest.raises(ConfigError, match="after flags were locked"):
            registry.register(IntFlag("late", default=1))

    def test_reregister_known_flag_after_lock(self) -> None:
        registry = FlagRegistry()
        registry.register(IntFlag("opt", default=2))
        registry.lock()
        with pytest.raises(ConfigError, match="after flags were locked"):
            registry.register(IntFlag("opt", default=2))

    def test_first_access_after_lock(self) -> None:
        registry = FlagRegistry()
        registry.lock()
        with pytest.raises(ConfigError, match="not registered before flags were locked"):
            registry.value(BoolFlag("late", default=True))

    def test_abstract_flag(self) -> None:
        with pytest.raises(TypeError):
            Flag("raw")  # type: ignore[abstract]

    def test_known_flag_readable_after_lock(self) -> None:
        registry = FlagRegistry()
        opt = registry.register(IntFlag("opt", default=2))
        registry.lock()
        assert opt.value() == 2

    def test_config_hash_before_lock(self) -> None:
        with pytest.raises(ConfigError):
            FlagRegistry().config_hash  # noqa: B018

    def test_info_is_sorted(self) -> None:
        registry = FlagRegistry()
        registry.register(StringFlag("zeta", "last", default="z"))
        registry.register(BoolFlag("alpha", "first", default=True))
        info = registry.info()
        assert list(info) == ["alpha", "zeta"]
        assert info["alpha"].type == "bool"
        assert info["alpha"].value == "true"
        assert info["alpha"].allowed_values == ["true", "false"]
        assert info["zeta"].to_json() == {
            "description": "last",
            "type": "string",
            "allowed_values": [],
            "value": "z",
        }


class TestLock:
    """Tests for locking and the configuration hash."""

    def test_lock_is_idempotent(self) -> None:
        registry = FlagRegistry()
        registry.register(IntFlag("opt", default=2))
        first = registry.lock()
        assert registry.lock() is first
        assert registry.locked

    def test_hash_depends_on_values(self) -> None:
        def digest(value: str) -> str:
            registry = FlagRegistry(cmdline={"opt": value})
            registry.register(IntFlag("opt", default=2))
            return registry.lock().config_hash

        assert digest("2") == digest("2")
        assert digest("2") != digest("3")

    def test_hash_matches_config_hash(self) -> None:
        registry = FlagRegistry()
        registry.register(IntFlag("opt", default=2))
        registry.register(BoolFlag("debug", default=False))
        locked = registry.lock()
        assert locked.config_hash == config_hash([("debug", "false"), ("opt", "2")])
        assert registry.config_hash == locked.config_hash

    def test_hash_format(self) -> None:
        digest = FlagRegistry().lock().config_hash
        assert len(digest) == 8
        assert digest == digest.upper()
        int(digest, 16)

    def test_allowed_value(self) -> None:
        registry = FlagRegistry(cmdline={"board": "zcu106"})
        board = registry.register(
            StringFlag("board", default="zcu102", allowed_values=("zcu102", "zcu106"))
        )
        locked = registry.lock()
        assert board.value() == "zcu106"
        assert locked.info["board"].value == "zcu106"
        assert locked.info["board"].allowed_values == ["zcu102", "zcu106"]

    def test_disallowed_value(self) -> None:
        registry = FlagRegistry(cmdline={"board": "zcu999"})
        registry.register(
            StringFlag("board", default="zcu102", allowed_values=("zcu102", "zcu106"))
        )
        with pytest.raises(DisallowedFlagValueError) as exc_info:
            registry.lock()
        assert exc_info.value.value == "zcu999"
        assert "zcu102, zcu106" in str(exc_info.value)

    def test_persist(self, tmp_path: Path) -> None:
        flags_file = tmp_path / "FLAGS.json"
        registry = FlagRegistry(cmdline={"opt": "3"})
        registry.register(IntFlag("opt", default=2))
        registry.register(BoolFlag("debug", default=False))
        registry.lock(persist_to=flags_file)

        assert json.loads(flags_file.read_text()) == {"debug": "false", "opt": "3"}

    def test_persisted_values_reproduce_hash(self, tmp_path: Path) -> None:
        flags_file = tmp_path / "FLAGS.json"
        first = FlagRegistry(cmdline={"opt": "3"})
        first.register(IntFlag("opt", default=2))
        first.lock(persist_to=flags_file)

        second = FlagRegistry(persisted=load_persisted_flags(flags_file))
        second.register(IntFlag("opt", default=2))
        assert second.lock().config_hash == first.config_hash


class TestConfigHash:
    def test_order_independent(self):
        assert config_hash([("b", "2"), ("a", "1")]) == config_hash(
            [("a", "1"), ("b", "2")]
        )

    def test_name_is_part_of_hash(self):
        assert config_hash([("a", "1")]) != config_hash([("b", "1")])

    def test_empty(self):
        # CRC32 of the empty string
        assert config_hash([]) == "00000000"


class TestParseFlagArgs:
    def test_name_value(self):
        assert parse_flag_args(["opt=3", "board=zcu102"]) == {
            "opt": "3",
            "board": "zcu102",
        }

    def test_bare_name_is_true(self):
        assert parse_flag_args(["debug"]) == {"debug": "true"}

    def test_value_may_contain_equals(self):
        assert parse_flag_args(["define=A=1"]) == {"define": "A=1"}

    def test_empty_value(self):
        assert parse_flag_args(["name="]) == {"name": ""}

    def test_empty_name(self):
        with pytest.raises(ConfigError):
            parse_flag_args(["=3"])


class TestPersistedFlags:
    def test_missing_file(self, tmp_path):
        assert load_persisted_flags(tmp_path / "FLAGS.json") == {}

    def test_roundtrip(self, tmp_path):
        path = tmp_path / "out" / "FLAGS.json"
        save_persisted_flags(path, {"b": "2", "a": "1"})
        assert path.read_text() == '{\n  "a": "1",\n  "b": "2"\n}\n'
        assert load_persisted_flags(path) == {"a": "1", "b": "2"}

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "FLAGS.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError, match="failed to read"):
            load_persisted_flags(path)

    def test_non_string_values(self, tmp_path):
        path = tmp_path / "FLAGS.json"
        path.write_text('{"opt": 3}')
        with pytest.raises(ConfigError):
            load_persisted_flags(path)

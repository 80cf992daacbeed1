# SPDX-License-Identifier: MIT
"""Custom exceptions for buildgraph.

All buildgraph exceptions inherit from BuildGraphError, which carries the
name of the target being processed when the error occurred (if known).
Every one of them is fatal: the CLI reports it and exits without writing
any output.
"""

from __future__ import annotations

from collections.abc import Sequence


class BuildGraphError(Exception):
    """Base class for all buildgraph exceptions.

    Attributes:
        message: The error message.
        target: Name of the target being processed, if known.
    """

    def __init__(self, message: str, target: str | None = None) -> None:
        self.message = message
        self.target = target
        super().__init__(message)

    def _format_message(self) -> str:
        if self.target:
            return f"target '{self.target}': {self.message}"
        return self.message

    def __str__(self) -> str:
        return self._format_message()


class ConfigError(BuildGraphError):
    """Invalid flag definition, access or value."""


class DuplicateFlagError(ConfigError):
    """Two different flags were registered under the same name.

    Attributes:
        name: The flag name.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"multiple flags with name '{name}'")


class MissingFlagValueError(ConfigError):
    """A flag has no command-line, persisted or default value.

    Attributes:
        name: The flag name.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"flag '{name}' has no value")


class DisallowedFlagValueError(ConfigError):
    """A flag resolved to a value outside its allow-list.

    Attributes:
        name: The flag name.
        value: The resolved value.
        allowed_values: The allow-list.
    """

    def __init__(self, name: str, value: str, allowed_values: Sequence[str]) -> None:
        self.name = name
        self.value = value
        self.allowed_values = list(allowed_values)
        allowed = ", ".join(self.allowed_values)
        super().__init__(
            f"flag '{name}' has unallowed value '{value}' (allowed: {allowed})"
        )


class GenerateError(BuildGraphError):
    """Error during build graph generation."""


class BuildStepError(GenerateError):
    """A build step is malformed (e.g. both a command and a script)."""


class RedefinitionError(GenerateError):
    """Two incompatible build steps claim the same output.

    Attributes:
        output: The contested output path.
        existing_traces: Traces of the step registered first.
        new_trace: Trace of the step being added.
    """

    def __init__(
        self,
        output: str,
        existing_traces: Sequence[str],
        new_trace: str,
    ) -> None:
        self.output = output
        self.existing_traces = list(existing_traces)
        self.new_trace = new_trace
        first = self.existing_traces[0] if self.existing_traces else "<unknown>"
        super().__init__(
            f"incompatible redefinition of output '{output}' "
            f"(first defined at '{first}', redefined at '{new_trace}')"
        )


class RuleConflictError(GenerateError):
    """Two different rules were registered under the same name.

    Attributes:
        rule: The rule name.
    """

    def __init__(self, rule: str) -> None:
        self.rule = rule
        super().__init__(f"conflicting definitions of rule '{rule}'")


class TargetReferenceError(GenerateError):
    """A target dependency refers to an object that is not a registered target."""


class ProtocolError(BuildGraphError):
    """Malformed or version-mismatched generator input."""


class LoadError(BuildGraphError):
    """A BUILD file could not be loaded."""


class TemplateError(BuildGraphError):
    """A template could not be parsed or rendered."""

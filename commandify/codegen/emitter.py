"""Indentation-aware emitter for generated Python source.

Generated text never spells out a runtime object. Annotations,
defaults, host types and the original routine are handed to the
assembler as bindings under reserved ``_cmdfy_`` names, so the text
stays valid whatever the objects' reprs look like.
"""
from __future__ import annotations

import contextlib
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from commandify.types import RESERVED_PREFIX

# Aliases every generated namespace defines; the assembler reads them.
RECORD = f"{RESERVED_PREFIX}record"
TRAIT = f"{RESERVED_PREFIX}trait"
METHOD = f"{RESERVED_PREFIX}method"
ROUTINE = f"{RESERVED_PREFIX}routine"
ROUTE = f"{RESERVED_PREFIX}route"
IMPLEMENTATIONS = f"{RESERVED_PREFIX}implementations"


@dataclass(frozen=True)
class Fragment:
    """One named piece of generated source and the objects it uses."""

    name: str
    source: str
    bindings: Mapping[str, object] = field(
        default_factory=lambda: MappingProxyType({}),
    )


class CodeEmitter:
    """Collects lines at the current indentation, plus their bindings."""

    def __init__(self, indent: str = "    ") -> None:
        self._lines: list[str] = []
        self._indent = indent
        self._level = 0
        self._bindings: dict[str, object] = {}

    def line(self, code: str = "") -> None:
        """Emit one line; an empty string emits a blank line."""
        if code:
            self._lines.append(f"{self._indent * self._level}{code}")
        else:
            self._lines.append("")

    @contextlib.contextmanager
    def block(self, header: str) -> Iterator[None]:
        """Emit ``header`` and indent everything emitted inside."""
        self.line(header)
        self._level += 1
        try:
            yield
        finally:
            self._level -= 1

    def docstring(self, text: str | None) -> None:
        if text:
            self.line(repr(text))

    def bind(self, name: str, value: object) -> str:
        """Make ``value`` reachable from the text; returns its name.

        Binding the same name twice must bind the same object.
        """
        reserved = f"{RESERVED_PREFIX}{name}"
        if reserved in self._bindings and self._bindings[reserved] is not value:
            msg = f"conflicting bindings for `{reserved}`"
            raise ValueError(msg)
        self._bindings[reserved] = value
        return reserved

    def fragment(self, name: str) -> Fragment:
        return Fragment(
            name=name,
            source="\n".join(self._lines) + "\n",
            bindings=MappingProxyType(dict(self._bindings)),
        )

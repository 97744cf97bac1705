"""Shared type definitions for the commandify pipeline."""
from __future__ import annotations

import enum
import inspect
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from commandify.errors import Span

if TYPE_CHECKING:
    from commandify.host import HostCapabilities
    from commandify.options import MacroOptions

_EMPTY: Mapping[str, Span] = MappingProxyType({})

# Names generated code binds in the definition namespace start with this.
RESERVED_PREFIX = "_cmdfy_"

# Attributes of command records that fields may not shadow.
RECORD_ATTRIBUTES = frozenset({"apply", "with_entity"})


class Bind:
    """Destructuring pattern for an input-channel parameter.

    Python signatures cannot unpack tuples, so the names are attached
    through ``typing.Annotated``::

        pair: Annotated[In[tuple[Entity, int]], Bind("entity", "n")]
    """

    __slots__ = ("names",)

    def __init__(self, *names: object) -> None:
        self.names = names

    def __repr__(self) -> str:
        return f"Bind({', '.join(map(repr, self.names))})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Bind) and other.names == self.names

    def __hash__(self) -> int:
        return hash(self.names)


@dataclass(frozen=True)
class SourceMap:
    """Spans of the tokens of one decorated definition.

    Lookups fall back to the definition line when the source could
    not be read.
    """

    file: str
    line: int
    parameters: Mapping[str, Span] = field(default_factory=lambda: _EMPTY)
    returns: Span | None = None
    keywords: Mapping[str, Span] = field(default_factory=lambda: _EMPTY)

    def definition(self, segment: str = "") -> Span:
        return Span(self.file, self.line, 0, segment)

    def for_parameter(self, name: str) -> Span:
        return self.parameters.get(name) or self.definition(name)

    def for_option(self, key: str) -> Span:
        return self.keywords.get(key) or self.definition(key)

    def for_return(self) -> Span:
        return self.returns or self.definition("return")


@dataclass(frozen=True)
class Parameter:
    """One declared parameter of a decorated function.

    ``annotation`` is resolved and stripped of ``Annotated``; a ``Bind``
    found in its metadata is kept in ``binding``.
    """

    name: str
    annotation: object
    kind: inspect._ParameterKind
    default: object = inspect.Parameter.empty
    binding: Bind | None = None

    @property
    def has_default(self) -> bool:
        return self.default is not inspect.Parameter.empty

    @property
    def is_variadic(self) -> bool:
        return self.kind in (
            inspect.Parameter.VAR_POSITIONAL,
            inspect.Parameter.VAR_KEYWORD,
        )

    @property
    def is_keyword_only(self) -> bool:
        return self.kind is inspect.Parameter.KEYWORD_ONLY

    @property
    def is_positional_only(self) -> bool:
        return self.kind is inspect.Parameter.POSITIONAL_ONLY


@dataclass(frozen=True)
class CommandSpec:
    """Parsed description of the decorated function."""

    name: str
    qualname: str
    module: str
    body: Callable[..., object]
    parameters: tuple[Parameter, ...]
    spans: SourceMap
    generics: tuple[object, ...] = ()
    chainable: bool = False
    outcome: tuple[object, object] | None = None
    doc: str | None = None


class ParameterRole(enum.Enum):
    """Semantic role of a parameter after classification."""

    CONTEXT = "context"
    ENTITY = "entity"
    PIPED_INPUT = "piped_input"
    SYSTEM_PARAM = "system_param"
    CAPTURED_FIELD = "captured_field"


@dataclass(frozen=True)
class PipedInput:
    """The names and types threaded through the input channel.

    ``is_tuple`` is set when the channel carries a tuple. ``packed`` is
    the 1:many arity: one name holding the whole tuple of ``types``.
    ``entity_index`` is the position of an entity promoted out of the
    input.
    """

    param: Parameter
    names: tuple[str, ...]
    types: tuple[object, ...]
    is_tuple: bool = False
    packed: bool = False
    entity_index: int | None = None

    @property
    def aggregate(self) -> bool:
        """True when the payload is rebuilt from one field per element."""
        return self.is_tuple and not self.packed

    def threaded(self) -> tuple[tuple[str, object], ...]:
        """Name/type pairs that become record fields."""
        if self.packed:
            return ((self.names[0], tuple[self.types]),)
        return tuple(
            pair
            for index, pair in enumerate(zip(self.names, self.types))
            if index != self.entity_index
        )


@dataclass(frozen=True)
class Classification:
    """Role partition of a CommandSpec's parameters."""

    roles: tuple[tuple[Parameter, ParameterRole], ...]
    context: Parameter | None = None
    entity: Parameter | None = None
    piped: PipedInput | None = None

    def of_role(self, role: ParameterRole) -> tuple[Parameter, ...]:
        return tuple(param for param, r in self.roles if r is role)

    @property
    def captured(self) -> tuple[Parameter, ...]:
        return self.of_role(ParameterRole.CAPTURED_FIELD)

    @property
    def system_params(self) -> tuple[Parameter, ...]:
        return self.of_role(ParameterRole.SYSTEM_PARAM)

    @property
    def entity_is_piped(self) -> bool:
        return self.piped is not None and self.piped.entity_index is not None


class Mode(enum.Enum):
    """How the generated apply reaches the original body."""

    EXCLUSIVE = "exclusive"
    SCHEDULED = "scheduled"


@dataclass(frozen=True)
class RecordField:
    """A field of the generated command record."""

    name: str
    annotation: object
    default: object = inspect.Parameter.empty
    kw_only: bool = False

    @property
    def has_default(self) -> bool:
        return self.default is not inspect.Parameter.empty


@dataclass(frozen=True)
class ArtifactSet:
    """Everything one generation run produced."""

    spec: CommandSpec
    options: MacroOptions
    host: HostCapabilities
    mode: Mode
    entity_command: bool
    record: type
    routine: Callable[..., object]
    source: str
    fields: tuple[RecordField, ...] = ()
    trait: type | None = None
    method: Callable[..., object] | None = None
    implementations: Mapping[type, Callable[..., object]] = field(
        default_factory=lambda: MappingProxyType({}),
    )
    shadow: Callable[..., object] | None = None


@dataclass(frozen=True)
class CommandPlan:
    """Everything the fragment generator needs for one command.

    ``body`` is the routine the generated code calls: the original
    function, or its renamed ``shadow`` when the outcome is routed.
    """

    spec: CommandSpec
    options: MacroOptions
    host: HostCapabilities
    classification: Classification
    mode: Mode
    entity_command: bool
    body: Callable[..., object]
    shadow: Callable[..., object] | None = None

    @property
    def routed(self) -> bool:
        return self.options.routes_outcome

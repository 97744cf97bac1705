"""Option resolver: validates decorator keywords into MacroOptions.

Raw keywords are checked by a strict pydantic model whose key set is
closed; resolution then fills in the derived names. Defaults are
computed after the ``name`` override so renaming the method renames
the record and trait too.
"""
from __future__ import annotations

import keyword
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import ModuleType

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from returns.result import Failure, Result, Success

from commandify.errors import GenerationError
from commandify.host import DEFAULT_HOST_ROOT, STANDALONE_HOST_ROOT
from commandify.types import RESERVED_PREFIX, SourceMap

_WORDS = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z0-9]+|[A-Z]+")


def to_pascal_case(name: str) -> str:
    """``do_sub`` -> ``DoSub``, ``fooBar`` -> ``FooBar``."""
    return "".join(
        word[:1].upper() + word[1:] for word in _WORDS.findall(name)
    )


def _is_identifier(value: str) -> bool:
    return value.isidentifier() and not keyword.iskeyword(value)


class DirectiveArgs(BaseModel):
    """Keywords accepted by ``@command`` / ``@entity_command``."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        strict=True,
        arbitrary_types_allowed=True,
    )

    no_trait: bool = False
    no_world: bool = False
    name: str | None = None
    struct_name: str | None = None
    trait_name: str | None = None
    ecs: str | ModuleType | None = None
    bevy_ecs: bool = False
    ok: Callable[..., object] | None = None
    err: Callable[..., object] | None = None

    @field_validator("name", "struct_name", "trait_name")
    @classmethod
    def _check_identifier(cls, value: str | None) -> str | None:
        if value is None:
            return value
        if not _is_identifier(value) or value.startswith(RESERVED_PREFIX):
            msg = f"invalid name: `{value}`"
            raise ValueError(msg)
        return value

    @field_validator("ecs")
    @classmethod
    def _check_path(
        cls,
        value: str | ModuleType | None,
    ) -> str | ModuleType | None:
        if isinstance(value, str) and not all(
            _is_identifier(part) for part in value.split(".")
        ):
            msg = f"invalid path: `{value}`"
            raise ValueError(msg)
        return value


@dataclass(frozen=True)
class MacroOptions:
    """Resolved generation options."""

    suppress_extension_trait: bool
    suppress_context_impl: bool
    record_name: str
    extension_trait_name: str
    host_root: str | ModuleType
    method_name: str
    ok_handler: Callable[..., object] | None = None
    err_handler: Callable[..., object] | None = None

    @property
    def host_root_path(self) -> str:
        """Dotted name of the host root."""
        if isinstance(self.host_root, ModuleType):
            return self.host_root.__name__
        return self.host_root

    @property
    def routes_outcome(self) -> bool:
        return self.ok_handler is not None or self.err_handler is not None


def _validation_failure(
    exc: ValidationError,
    spans: SourceMap,
) -> GenerationError:
    first = exc.errors()[0]
    key = str(first["loc"][0]) if first["loc"] else ""
    if first["type"] == "extra_forbidden":
        return GenerationError(
            stage="options",
            error_type="UnknownOptionError",
            message=f"Unknown attribute `{key}`",
            span=spans.for_option(key),
            context={"option": key},
        )
    return GenerationError(
        stage="options",
        error_type="InvalidOptionError",
        message=f"invalid value for `{key}`: {first['msg']}",
        span=spans.for_option(key),
        context={"option": key, "input": repr(first.get("input"))},
    )


def resolve_options(
    raw: Mapping[str, object],
    function_name: str,
    *,
    entity_command: bool,
    spans: SourceMap,
) -> Result[MacroOptions, GenerationError]:
    """Validate decorator keywords and resolve default names."""
    try:
        args = DirectiveArgs(**raw)
    except ValidationError as exc:
        return Failure(_validation_failure(exc, spans))

    if args.ecs is not None and args.bevy_ecs:
        return Failure(
            GenerationError(
                stage="options",
                error_type="InvalidOptionError",
                message="`ecs` and `bevy_ecs` are mutually exclusive",
                span=spans.for_option("bevy_ecs"),
                context={"option": "bevy_ecs"},
            ),
        )

    if args.ecs is not None:
        root = args.ecs
    elif args.bevy_ecs:
        root = STANDALONE_HOST_ROOT
    else:
        root = DEFAULT_HOST_ROOT

    # late so that `name` applies to the derived names
    method = args.name or function_name
    suffix = "EntityCommand" if entity_command else "Command"
    base = to_pascal_case(method)
    record_name = args.struct_name or f"{base}{suffix}"
    trait_name = args.trait_name or f"{suffix}s{base}Ext"
    if record_name == trait_name and not args.no_trait:
        return Failure(
            GenerationError(
                stage="options",
                error_type="InvalidOptionError",
                message=f"record and trait are both named `{record_name}`",
                span=spans.for_option("trait_name"),
                context={"option": "trait_name"},
            ),
        )
    return Success(
        MacroOptions(
            suppress_extension_trait=args.no_trait,
            suppress_context_impl=args.no_world,
            record_name=record_name,
            extension_trait_name=trait_name,
            host_root=root,
            method_name=method,
            ok_handler=args.ok,
            err_handler=args.err,
        ),
    )

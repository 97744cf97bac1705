"""Parameter classifier: assigns every parameter exactly one role.

Roles are resolved against the host capability registry by identity.
A type that merely shares a marker's name (a World from some other
package, say) is reported instead of being captured silently.
"""
from __future__ import annotations

import keyword
import typing
from typing import TYPE_CHECKING

from returns.result import Failure, Result, Success

from commandify.errors import GenerationError
from commandify.host import HANDLE_MARKERS
from commandify.types import (
    RECORD_ATTRIBUTES,
    RESERVED_PREFIX,
    Classification,
    CommandSpec,
    Parameter,
    ParameterRole,
    PipedInput,
)

if TYPE_CHECKING:
    from commandify.host import HostCapabilities


def _error(
    spec: CommandSpec,
    name: str,
    error_type: str,
    message: str,
    **context: object,
) -> GenerationError:
    return GenerationError(
        stage="classify",
        error_type=error_type,
        message=message,
        span=spec.spans.for_parameter(name),
        context={"function": spec.qualname, "parameter": name, **context},
    )


def _origin(annotation: object) -> object:
    return typing.get_origin(annotation) or annotation


def _is_field_name(value: object) -> bool:
    return (
        isinstance(value, str)
        and value.isidentifier()
        and not keyword.iskeyword(value)
        and value != "self"
    )


def _check_name(
    spec: CommandSpec,
    param: Parameter,
) -> Result[Parameter, GenerationError]:
    if param.name == "self":
        return Failure(
            _error(
                spec, param.name, "ReceiverParameterError",
                "commands cannot take `self`; decorate a free function",
            ),
        )
    if param.is_variadic:
        return Failure(
            _error(
                spec, param.name, "VariadicSignatureError",
                "commands cannot take `*args` or `**kwargs`",
            ),
        )
    if param.name.startswith(RESERVED_PREFIX):
        return Failure(
            _error(
                spec, param.name, "ReservedNameError",
                f"names starting with `{RESERVED_PREFIX}` are reserved"
                f" for generated code",
            ),
        )
    return Success(param)


def _input_names(
    spec: CommandSpec,
    param: Parameter,
) -> Result[tuple[str, ...], GenerationError]:
    """Names bound by the input pattern: the Bind names or the param."""
    if param.binding is None:
        return Success((param.name,))
    names = param.binding.names
    if not names or not all(_is_field_name(name) for name in names):
        return Failure(
            _error(
                spec, param.name, "InvalidBindingError",
                f"{param.binding!r} must name one or more plain"
                f" identifiers",
            ),
        )
    if len(set(names)) != len(names):
        return Failure(
            _error(
                spec, param.name, "InvalidBindingError",
                f"{param.binding!r} binds the same name twice",
            ),
        )
    reserved = [name for name in names if name.startswith(RESERVED_PREFIX)]
    if reserved:
        return Failure(
            _error(
                spec, param.name, "ReservedNameError",
                f"names starting with `{RESERVED_PREFIX}` are reserved"
                f" for generated code",
                names=reserved,
            ),
        )
    clashing = sorted(
        set(names)
        & {other.name for other in spec.parameters if other is not param},
    )
    if clashing:
        return Failure(
            _error(
                spec, param.name, "InvalidBindingError",
                f"{param.binding!r} reuses parameter name"
                f" `{clashing[0]}`",
            ),
        )
    return Success(tuple(names))


def _parse_input(
    spec: CommandSpec,
    param: Parameter,
    host: HostCapabilities,
    *,
    entity_command: bool,
) -> Result[PipedInput, GenerationError]:
    """Pair the pattern names with the types carried by ``In[...]``.

    Arity is either 1:1 (as many names as types) or 1:many (one name
    holding the whole tuple). ``tuple[T, ...]`` counts as one type.
    """
    named = _input_names(spec, param)
    if isinstance(named, Failure):
        return named
    names = named.unwrap()

    args = typing.get_args(param.annotation)
    inner = args[0] if args else typing.Any
    elements = typing.get_args(inner)
    is_tuple = (
        typing.get_origin(inner) is tuple
        and bool(elements)
        and Ellipsis not in elements
    )
    types = elements if is_tuple else (inner,)

    packed = is_tuple and len(names) == 1 and len(types) > 1
    if not packed and len(names) != len(types):
        return Failure(
            _error(
                spec, param.name, "ImbalancedInputError",
                "imbalanced names and types",
                names=list(names),
                types=[repr(t) for t in types],
            ),
        )

    entity_index = None
    if entity_command and not packed:
        positions = [i for i, t in enumerate(types) if t is host.entity]
        if len(positions) > 1:
            return Failure(
                _error(
                    spec, param.name, "DuplicateEntityError",
                    "the input carries more than one `Entity`",
                ),
            )
        entity_index = positions[0] if positions else None

    # each element of an unpacked tuple default becomes a field default
    if is_tuple and not packed and param.has_default and (
        not isinstance(param.default, tuple)
        or len(param.default) != len(types)
    ):
        return Failure(
            _error(
                spec, param.name, "InvalidInputDefaultError",
                f"default {param.default!r} must be a tuple of"
                f" {len(types)} values",
            ),
        )

    return Success(
        PipedInput(
            param=param,
            names=names,
            types=tuple(types),
            is_tuple=is_tuple,
            packed=packed,
            entity_index=entity_index,
        ),
    )


def _foreign_marker(annotation: object) -> str | None:
    name = getattr(_origin(annotation), "__name__", None)
    return name if name in HANDLE_MARKERS else None


def classify_parameters(
    spec: CommandSpec,
    host: HostCapabilities,
    *,
    entity_command: bool,
) -> Result[Classification, GenerationError]:
    """Partition the parameters of ``spec`` into roles.

    Rules are tried in order; the first match wins. An entity command
    must end up with exactly one ENTITY, either a plain parameter or an
    element promoted out of the input.
    """
    roles: list[tuple[Parameter, ParameterRole]] = []
    context: Parameter | None = None
    entity: Parameter | None = None
    piped: PipedInput | None = None

    for param in spec.parameters:
        checked = _check_name(spec, param)
        if isinstance(checked, Failure):
            return checked

        annotation = param.annotation
        origin = _origin(annotation)
        if origin is host.input_marker:
            if piped is not None:
                return Failure(
                    _error(
                        spec, param.name, "DuplicateInputError",
                        f"only one `In` parameter is allowed, already"
                        f" have `{piped.param.name}`",
                    ),
                )
            parsed = _parse_input(
                spec, param, host, entity_command=entity_command,
            )
            if isinstance(parsed, Failure):
                return parsed
            piped = parsed.unwrap()
            if piped.entity_index is not None:
                if entity is not None:
                    return Failure(
                        _error(
                            spec, param.name, "DuplicateEntityError",
                            f"entity already taken by `{entity.name}`",
                        ),
                    )
                entity = param
            roles.append((param, ParameterRole.PIPED_INPUT))
            continue

        if param.binding is not None:
            return Failure(
                _error(
                    spec, param.name, "CapturedBindingError",
                    f"{param.binding!r} is only allowed on an `In`"
                    f" parameter",
                ),
            )

        if annotation is host.world:
            if context is not None:
                return Failure(
                    _error(
                        spec, param.name, "DuplicateContextError",
                        f"only one `World` parameter is allowed, already"
                        f" have `{context.name}`",
                    ),
                )
            context = param
            roles.append((param, ParameterRole.CONTEXT))
        elif entity_command and annotation is host.entity:
            if entity is not None:
                return Failure(
                    _error(
                        spec, param.name, "DuplicateEntityError",
                        f"entity already taken by `{entity.name}`",
                    ),
                )
            entity = param
            roles.append((param, ParameterRole.ENTITY))
        elif origin in host.system_params:
            roles.append((param, ParameterRole.SYSTEM_PARAM))
        elif (
            annotation is not host.entity
            and (marker := _foreign_marker(annotation)) is not None
        ):
            return Failure(
                _error(
                    spec, param.name, "ForeignMarkerError",
                    f"`{marker}` does not belong to host root"
                    f" `{host.root}`",
                    annotation=repr(annotation),
                    root=host.root,
                ),
            )
        else:
            roles.append((param, ParameterRole.CAPTURED_FIELD))

    field_names = [
        param.name
        for param, role in roles
        if role is ParameterRole.CAPTURED_FIELD
    ]
    if piped is not None:
        field_names.extend(name for name, _ in piped.threaded())
    shadowing = [name for name in field_names if name in RECORD_ATTRIBUTES]
    if shadowing:
        owner = shadowing[0]
        if piped is not None and owner in piped.names:
            owner = piped.param.name
        return Failure(
            _error(
                spec, owner, "ReservedNameError",
                f"`{shadowing[0]}` is an attribute of the command record",
            ),
        )

    if entity_command and entity is None:
        return Failure(
            GenerationError(
                stage="classify",
                error_type="MissingEntityError",
                message="entity commands must take an `Entity` parameter",
                span=spec.spans.definition(spec.name),
                context={"function": spec.qualname},
            ),
        )

    return Success(
        Classification(
            roles=tuple(roles),
            context=context,
            entity=entity,
            piped=piped,
        ),
    )

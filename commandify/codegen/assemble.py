"""Assembler: compiles the fragments into one namespace.

The text is compiled under ``<commandify module.qualname>`` and that
source is registered with ``linecache``, so tracebacks through a
generated ``apply`` show the generated lines.
"""
from __future__ import annotations

import functools
import linecache
from types import MappingProxyType
from typing import TYPE_CHECKING

from returns.result import Failure, Result, Success

from commandify.codegen.emitter import (
    IMPLEMENTATIONS,
    METHOD,
    RECORD,
    ROUTINE,
    TRAIT,
)
from commandify.errors import GenerationError
from commandify.types import ArtifactSet, Mode

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from commandify.codegen.emitter import Fragment
    from commandify.types import CommandPlan, RecordField

# Set on generated records and traits.
GENERATED_MARKER = "__commandify_generated__"
# Set on generated trait methods; holds the trait name.
TRAIT_MARKER = "__commandify_trait__"

_WRAPPER_ASSIGNMENTS = ("__module__", "__name__", "__qualname__", "__doc__")


def source_filename(plan: CommandPlan) -> str:
    return f"<commandify {plan.spec.module}.{plan.spec.qualname}>"


def _assembly_error(
    plan: CommandPlan,
    message: str,
    **context: object,
) -> GenerationError:
    return GenerationError(
        stage="assemble",
        error_type="AssemblyError",
        message=message,
        span=plan.spec.spans.definition(plan.spec.name),
        context={"function": plan.spec.qualname, **context},
    )


def merge_bindings(
    plan: CommandPlan,
    fragments: Sequence[Fragment],
) -> Result[dict[str, object], GenerationError]:
    """Union of every fragment's bindings; a name must mean one object."""
    merged: dict[str, object] = {}
    for fragment in fragments:
        for name, value in fragment.bindings.items():
            if name in merged and merged[name] is not value:
                return Failure(
                    _assembly_error(
                        plan,
                        f"fragment `{fragment.name}` rebinds `{name}`",
                        binding=name,
                    ),
                )
            merged[name] = value
    return Success(merged)


def _rename(fn: Callable[..., object], name: str, owner: str) -> None:
    fn.__name__ = name
    fn.__qualname__ = f"{owner}.{name}"


def _public_routine(
    plan: CommandPlan,
    namespace: dict[str, object],
) -> Callable[..., object]:
    if not plan.routed:
        return plan.spec.body
    routine = namespace[ROUTINE]
    if plan.mode is Mode.EXCLUSIVE:
        return functools.update_wrapper(routine, plan.spec.body)
    # no __wrapped__: the signature differs from the original
    for attribute in _WRAPPER_ASSIGNMENTS:
        setattr(routine, attribute, getattr(plan.spec.body, attribute))
    return routine


def assemble(
    plan: CommandPlan,
    fields: tuple[RecordField, ...],
    fragments: Sequence[Fragment],
) -> Result[ArtifactSet, GenerationError]:
    """Execute the fragments and collect the generated objects.

    Returns Failure(AssemblyError) if the bindings conflict or the
    generated text fails to compile or execute.
    """
    merged = merge_bindings(plan, fragments)
    if isinstance(merged, Failure):
        return merged

    source = "\n".join(fragment.source for fragment in fragments)
    filename = source_filename(plan)
    linecache.cache[filename] = (
        len(source),
        None,
        source.splitlines(keepends=True),
        filename,
    )
    namespace: dict[str, object] = {
        "__name__": plan.spec.module,
        **merged.unwrap(),
    }
    try:
        code = compile(source, filename, "exec")
        exec(code, namespace)  # noqa: S102
    except (SyntaxError, TypeError, ValueError, NameError) as exc:
        return Failure(
            _assembly_error(
                plan,
                f"generated code failed: {exc}",
                exception=type(exc).__name__,
            ),
        )

    record = namespace[RECORD]
    setattr(record, GENERATED_MARKER, True)

    trait = namespace.get(TRAIT)
    method = namespace.get(METHOD)
    implementations: dict[type, Callable[..., object]] = dict(
        namespace.get(IMPLEMENTATIONS, {}),
    )
    method_name = plan.options.method_name
    if trait is not None and method is not None:
        setattr(trait, GENERATED_MARKER, True)
        _rename(method, method_name, trait.__name__)
        method.__doc__ = plan.spec.doc
        setattr(method, TRAIT_MARKER, trait.__name__)
        for host_type, impl in implementations.items():
            _rename(impl, method_name, host_type.__name__)
            impl.__doc__ = plan.spec.doc

    return Success(
        ArtifactSet(
            spec=plan.spec,
            options=plan.options,
            host=plan.host,
            mode=plan.mode,
            entity_command=plan.entity_command,
            record=record,
            routine=_public_routine(plan, namespace),
            source=source,
            fields=fields,
            trait=trait,
            method=method,
            implementations=MappingProxyType(implementations),
            shadow=plan.shadow,
        ),
    )

"""Result-routing wrapper: sends a command's outcome to its handlers.

When ``ok`` or ``err`` is set, the original function is kept under a
renamed shadow, the public name is rebound to a routine that never
returns the outcome, and a glue function dispatches the outcome:
``Success`` runs ``ok`` once with the value, ``Failure`` runs ``err``
once with the error. A branch without a handler is dropped.
"""
from __future__ import annotations

import types
from typing import TYPE_CHECKING

from returns.result import Failure, Result, Success

from commandify.codegen.emitter import ROUTE, ROUTINE, CodeEmitter
from commandify.codegen.fragments import (
    body_call,
    construct_record,
    parameter_list,
    render_signature,
)
from commandify.errors import GenerationError
from commandify.types import Mode

if TYPE_CHECKING:
    from commandify.codegen.emitter import Fragment
    from commandify.options import MacroOptions
    from commandify.types import CommandPlan, CommandSpec, RecordField


def shadow_name(name: str) -> str:
    return f"_{name}_unrouted"


def rename_routine(
    fn: types.FunctionType,
    name: str,
) -> types.FunctionType:
    """Copy ``fn`` under a new name, sharing its code and globals."""
    qualname = fn.__qualname__.rpartition(".")
    renamed_qualname = f"{qualname[0]}.{name}" if qualname[0] else name
    code = fn.__code__.replace(co_name=name, co_qualname=renamed_qualname)
    shadow = types.FunctionType(
        code,
        fn.__globals__,
        name,
        fn.__defaults__,
        fn.__closure__,
    )
    shadow.__kwdefaults__ = (
        dict(fn.__kwdefaults__) if fn.__kwdefaults__ else None
    )
    shadow.__qualname__ = renamed_qualname
    shadow.__module__ = fn.__module__
    shadow.__doc__ = fn.__doc__
    shadow.__annotations__ = dict(fn.__annotations__)
    shadow.__dict__.update(fn.__dict__)
    if hasattr(fn, "__type_params__"):
        shadow.__type_params__ = fn.__type_params__
    return shadow


def validate_routing(
    spec: CommandSpec,
    options: MacroOptions,
) -> Result[CommandSpec, GenerationError]:
    """Routing needs a ``Result[T, E]`` outcome and excludes chaining."""
    if not options.routes_outcome:
        return Success(spec)
    if spec.chainable:
        return Failure(
            GenerationError(
                stage="routing",
                error_type="ChainableRoutingError",
                message="chainable commands cannot route a result",
                span=spec.spans.for_return(),
                context={"function": spec.qualname},
            ),
        )
    if spec.outcome is None:
        return Failure(
            GenerationError(
                stage="routing",
                error_type="MissingOutcomeError",
                message=(
                    "`ok` and `err` need a `Result[T, E]` return"
                    " annotation"
                ),
                span=spec.spans.for_return(),
                context={"function": spec.qualname},
            ),
        )
    return Success(spec)


def _generate_glue(plan: CommandPlan, emitter: CodeEmitter) -> None:
    keyword = "if"
    with emitter.block(f"def {ROUTE}(world, outcome):"):
        if plan.options.ok_handler is not None:
            success = emitter.bind("Success", Success)
            handler = emitter.bind("ok", plan.options.ok_handler)
            with emitter.block(f"{keyword} isinstance(outcome, {success}):"):
                emitter.line(
                    f"world.run_system_once_with({handler}, outcome.unwrap())",
                )
            keyword = "elif"
        if plan.options.err_handler is not None:
            failure = emitter.bind("Failure", Failure)
            handler = emitter.bind("err", plan.options.err_handler)
            with emitter.block(f"{keyword} isinstance(outcome, {failure}):"):
                emitter.line(
                    f"world.run_system_once_with({handler}, outcome.failure())",
                )
    emitter.line()


def _generate_public(
    plan: CommandPlan,
    fields: tuple[RecordField, ...],
    emitter: CodeEmitter,
) -> None:
    classification = plan.classification
    if plan.mode is Mode.EXCLUSIVE and classification.context is not None:
        world = classification.context.name
        entity = classification.entity.name if classification.entity else ""
        signature = render_signature(emitter, plan.spec.parameters)
        with emitter.block(f"def {ROUTINE}({signature}):"):
            call = body_call(
                plan,
                emitter,
                world=world,
                entity=entity,
                value=lambda name: name,
            )
            emitter.line(f"{ROUTE}({world}, {call})")
        return

    if plan.entity_command:
        leading = ("_cmdfy_world", "_cmdfy_entity")
        target = "_cmdfy_entity, _cmdfy_world"
    else:
        leading = ("_cmdfy_world",)
        target = "_cmdfy_world"
    params = parameter_list(emitter, fields, leading)
    with emitter.block(f"def {ROUTINE}({params}):"):
        emitter.line(f"{construct_record(fields)}.apply({target})")


def generate_routing(
    plan: CommandPlan,
    fields: tuple[RecordField, ...],
) -> Fragment:
    """Dispatch glue plus the public routine bound to the original name.

    Exclusive commands keep the original signature and call the shadow
    directly. Scheduled commands take ``(world, [entity,] *fields)``
    and run the shadow once through the host.
    """
    emitter = CodeEmitter()
    _generate_glue(plan, emitter)
    _generate_public(plan, fields, emitter)
    return emitter.fragment("routing")

"""Fragment generator: the record, its apply, and the extension trait.

Each generator returns a Fragment of Python source. Fragments refer to
one another only through the aliases in ``emitter`` (``_cmdfy_record``,
``_cmdfy_route``, ...), never through user-chosen names.
"""
from __future__ import annotations

import abc
import dataclasses
import functools
import inspect
import typing
from typing import TYPE_CHECKING

from commandify.codegen.emitter import (
    IMPLEMENTATIONS,
    METHOD,
    RECORD,
    ROUTE,
    TRAIT,
    CodeEmitter,
    Fragment,
)
from commandify.types import (
    CommandPlan,
    Mode,
    Parameter,
    ParameterRole,
    PipedInput,
    RecordField,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable


def unimplemented(target: object, method: str) -> NotImplementedError:
    """Error raised when a trait method is called on a foreign type."""
    return NotImplementedError(
        f"{type(target).__name__} does not implement `{method}`",
    )


def record_fields(plan: CommandPlan) -> tuple[RecordField, ...]:
    """Fields of the command record, in declaration order.

    Captured parameters keep their defaults and keyword-only-ness.
    Scheduled commands also carry the values threaded into ``In``,
    except an entity promoted out of it.
    """
    fields: list[RecordField] = []
    piped = plan.classification.piped
    for param, role in plan.classification.roles:
        if role is ParameterRole.CAPTURED_FIELD:
            fields.append(
                RecordField(
                    name=param.name,
                    annotation=_annotation(param.annotation),
                    default=param.default,
                    kw_only=param.is_keyword_only,
                ),
            )
        elif role is ParameterRole.PIPED_INPUT and piped is not None:
            defaults = _input_defaults(piped)
            fields.extend(
                RecordField(
                    name=name,
                    annotation=_annotation(kind),
                    default=defaults.get(name, inspect.Parameter.empty),
                    kw_only=param.is_keyword_only,
                )
                for name, kind in piped.threaded()
            )
    return tuple(fields)


def _input_defaults(piped: PipedInput) -> dict[str, object]:
    param = piped.param
    if not param.has_default:
        return {}
    if piped.aggregate:
        return dict(zip(piped.names, param.default))
    return {name: param.default for name in piped.names}


def _annotation(annotation: object) -> object:
    if annotation is inspect.Parameter.empty:
        return typing.Any
    return annotation


def _default(emitter: CodeEmitter, name: str, value: object) -> str:
    return emitter.bind(f"default_{name}", value)


def _field_line(emitter: CodeEmitter, record_field: RecordField) -> str:
    annotation = emitter.bind(
        f"ann_{record_field.name}", record_field.annotation,
    )
    declaration = f"{record_field.name}: {annotation}"
    if not record_field.has_default and not record_field.kw_only:
        return declaration

    options = []
    if record_field.has_default:
        default = _default(emitter, record_field.name, record_field.default)
        # dataclasses reject unhashable defaults
        if type(record_field.default).__hash__ is None:
            options.append(f"default_factory=lambda: {default}")
        else:
            options.append(f"default={default}")
    if record_field.kw_only:
        options.append("kw_only=True")
    field_factory = emitter.bind("field", dataclasses.field)
    return f"{declaration} = {field_factory}({', '.join(options)})"


def parameter_list(
    emitter: CodeEmitter,
    fields: Iterable[RecordField],
    leading: Iterable[str] = (),
) -> str:
    """Render a parameter list taking one argument per record field."""
    fields = tuple(fields)
    parts = list(leading)

    def render(record_field: RecordField) -> str:
        if not record_field.has_default:
            return record_field.name
        default = _default(emitter, record_field.name, record_field.default)
        return f"{record_field.name}={default}"

    parts.extend(render(f) for f in fields if not f.kw_only)
    keyword_only = [render(f) for f in fields if f.kw_only]
    if keyword_only:
        parts.append("*")
        parts.extend(keyword_only)
    return ", ".join(parts)


def construct_record(fields: Iterable[RecordField]) -> str:
    """``_cmdfy_record(a=a, ...)`` from same-named locals."""
    arguments = ", ".join(f"{f.name}={f.name}" for f in fields)
    return f"{RECORD}({arguments})"


def _payload(
    piped: PipedInput,
    *,
    entity: str,
    value: Callable[[str], str],
) -> str:
    if piped.packed:
        return value(piped.names[0])
    elements = [
        entity if index == piped.entity_index else value(name)
        for index, name in enumerate(piped.names)
    ]
    if not piped.is_tuple:
        return elements[0]
    return f"({', '.join(elements)},)"


def _exclusive_call(
    plan: CommandPlan,
    body: str,
    *,
    world: str,
    entity: str,
    value: Callable[[str], str],
) -> str:
    arguments = []
    for param, role in plan.classification.roles:
        if role is ParameterRole.CONTEXT:
            expression = world
        elif role is ParameterRole.ENTITY:
            expression = entity
        else:
            expression = value(param.name)
        if param.is_keyword_only:
            expression = f"{param.name}={expression}"
        arguments.append(expression)
    return f"{body}({', '.join(arguments)})"


def _scheduled_call(
    plan: CommandPlan,
    emitter: CodeEmitter,
    body: str,
    *,
    world: str,
    entity: str,
    value: Callable[[str], str],
) -> str:
    keywords = []
    for param, role in plan.classification.roles:
        if role is ParameterRole.ENTITY:
            keywords.append(f"{param.name}={entity}")
        elif role is ParameterRole.CAPTURED_FIELD:
            keywords.append(f"{param.name}={value(param.name)}")
    system = body
    if keywords:
        partial = emitter.bind("partial", functools.partial)
        system = f"{partial}({body}, {', '.join(keywords)})"

    piped = plan.classification.piped
    if piped is None:
        return f"{world}.run_system_once({system})"
    payload = _payload(piped, entity=entity, value=value)
    return f"{world}.run_system_once_with({system}, {payload})"


def body_call(
    plan: CommandPlan,
    emitter: CodeEmitter,
    *,
    world: str,
    entity: str,
    value: Callable[[str], str],
) -> str:
    """Expression running the routine once, in the plan's mode.

    Exclusive: a direct call with the World, entity and field values
    at their declared positions. Scheduled: one run-once call on the
    host, with captured values bound by keyword.
    """
    body = emitter.bind("body", plan.body)
    if plan.mode is Mode.EXCLUSIVE:
        return _exclusive_call(
            plan, body, world=world, entity=entity, value=value,
        )
    return _scheduled_call(
        plan, emitter, body, world=world, entity=entity, value=value,
    )


def generate_apply(plan: CommandPlan, emitter: CodeEmitter) -> None:
    """Emit the execution-trait ``apply`` method of the record."""
    params = "self, entity, world" if plan.entity_command else "self, world"
    with emitter.block(f"def apply({params}):"):
        call = body_call(
            plan,
            emitter,
            world="world",
            entity="entity",
            value=lambda name: f"self.{name}",
        )
        if plan.routed:
            emitter.line(f"{ROUTE}(world, {call})")
        else:
            emitter.line(call)
        if plan.spec.chainable:
            emitter.line("return world")


def generate_record(
    plan: CommandPlan,
    fields: tuple[RecordField, ...],
) -> Fragment:
    """The command record: a dataclass implementing the host Command."""
    emitter = CodeEmitter()
    bases = [
        emitter.bind(
            "base",
            plan.host.command_base(entity_command=plan.entity_command),
        ),
    ]
    if plan.spec.generics:
        generic = emitter.bind("Generic", typing.Generic)
        type_params = ", ".join(
            emitter.bind(f"tp_{index}", type_param)
            for index, type_param in enumerate(plan.spec.generics)
        )
        bases.append(f"{generic}[{type_params}]")

    emitter.line(f"@{emitter.bind('dataclass', dataclasses.dataclass)}")
    name = plan.options.record_name
    with emitter.block(f"class {name}({', '.join(bases)}):"):
        emitter.docstring(plan.spec.doc)
        for record_field in fields:
            emitter.line(_field_line(emitter, record_field))
        if fields or plan.spec.doc:
            emitter.line()
        generate_apply(plan, emitter)
    emitter.line()
    emitter.line(f"{RECORD} = {name}")
    return emitter.fragment("record")


def _queued_impl(
    plan: CommandPlan,
    emitter: CodeEmitter,
    params: str,
    construct: str,
) -> tuple[str, str]:
    target = emitter.bind(
        "queued",
        plan.host.queued_target(entity_command=plan.entity_command),
    )
    emitter.line(f"@{METHOD}.register({target})")
    impl = "_cmdfy_queued_impl"
    with emitter.block(f"def {impl}({params}):"):
        emitter.line(f"self.add({construct})")
        if plan.spec.chainable:
            emitter.line("return self")
    emitter.line()
    return target, impl


def _direct_impl(
    plan: CommandPlan,
    emitter: CodeEmitter,
    params: str,
    construct: str,
) -> tuple[str, str]:
    target = emitter.bind(
        "direct",
        plan.host.direct_target(entity_command=plan.entity_command),
    )
    emitter.line(f"@{METHOD}.register({target})")
    impl = "_cmdfy_direct_impl"
    with emitter.block(f"def {impl}({params}):"):
        if plan.entity_command:
            emitter.line(f"_cmdfy_command = {construct}")
            emitter.line("_cmdfy_entity = self.id()")
            emitter.line(
                "self.world_scope(lambda _cmdfy_world:"
                " _cmdfy_command.apply(_cmdfy_entity, _cmdfy_world))",
            )
        else:
            emitter.line(f"{construct}.apply(self)")
        if plan.spec.chainable:
            emitter.line("return self")
    emitter.line()
    return target, impl


def generate_trait(
    plan: CommandPlan,
    fields: tuple[RecordField, ...],
) -> Fragment | None:
    """The extension trait and its implementations on the host types.

    Returns None when the trait is suppressed. The trait method is a
    single-dispatch function registered for the queued handle and,
    unless suppressed, the direct-context flavor; the host types are
    registered as virtual subclasses of the trait.
    """
    if plan.options.suppress_extension_trait:
        return None

    emitter = CodeEmitter()
    params = parameter_list(emitter, fields, ("self",))
    construct = construct_record(fields)
    method_name = plan.options.method_name

    dispatch = emitter.bind("singledispatch", functools.singledispatch)
    emitter.line(f"@{dispatch}")
    with emitter.block(f"def {METHOD}({params}):"):
        emitter.docstring(plan.spec.doc)
        failure = emitter.bind("unimplemented", unimplemented)
        emitter.line(f"raise {failure}(self, {method_name!r})")
    emitter.line()

    targets = [_queued_impl(plan, emitter, params, construct)]
    if not plan.options.suppress_context_impl:
        targets.append(_direct_impl(plan, emitter, params, construct))
    implementations = ", ".join(
        f"{target}: {impl}" for target, impl in targets
    )
    emitter.line(f"{IMPLEMENTATIONS} = {{{implementations}}}")
    emitter.line()

    name = plan.options.extension_trait_name
    with emitter.block(f"class {name}({emitter.bind('ABC', abc.ABC)}):"):
        emitter.docstring(plan.spec.doc)
        emitter.line("pass")
    emitter.line()
    # assigned outside the class body so `__` names are not mangled
    attach = emitter.bind("setattr", setattr)
    emitter.line(f"{attach}({name}, {method_name!r}, {METHOD})")
    # the method name may shadow ABC.register
    meta = emitter.bind("ABCMeta", abc.ABCMeta)
    for target, _ in targets:
        emitter.line(f"{meta}.register({name}, {target})")
    emitter.line(f"{TRAIT} = {name}")
    return emitter.fragment("trait")


def render_signature(
    emitter: CodeEmitter,
    parameters: Iterable[Parameter],
) -> str:
    """Re-render a declared signature, defaults bound by name."""
    parameters = tuple(parameters)
    parts: list[str] = []
    starred = False
    for index, param in enumerate(parameters):
        if param.is_keyword_only and not starred:
            parts.append("*")
            starred = True
        if param.default is inspect.Parameter.empty:
            parts.append(param.name)
        else:
            default = _default(emitter, param.name, param.default)
            parts.append(f"{param.name}={default}")
        last_positional = index + 1 == len(parameters) or (
            not parameters[index + 1].is_positional_only
        )
        if param.is_positional_only and last_positional:
            parts.append("/")
    return ", ".join(parts)

"""Tests for the record and trait fragment generators."""
from __future__ import annotations

import inspect
import typing
from typing import Annotated, Self, TypeVar

from commandify.codegen.emitter import CodeEmitter
from commandify.codegen.fragments import (
    generate_record,
    generate_trait,
    parameter_list,
    record_fields,
    render_signature,
    unimplemented,
)
from commandify.ecs import (
    Commands,
    Entity,
    EntityCommand,
    EntityCommands,
    EntityWorldMut,
    In,
    ResMut,
    World,
)
from commandify.signature import read_signature
from commandify.types import Bind, RecordField

T = TypeVar("T")


class Counter:
    value = 0


def sub(world: World, n: int, *, label: str = "x") -> None:
    """Subtract n."""


def bump(amount: int, counter: ResMut[Counter]) -> None:
    pass


def packed(pair: In[tuple[int, str]]) -> None:
    pass


def tag(pair: Annotated[In[tuple[int, Entity]], Bind("n", "target")]) -> None:
    pass


def listy(world: World, items: list = []) -> None:  # noqa: B006
    pass


def chain(world: World, n: int) -> Self:
    return world  # type: ignore[return-value]


def mark(target: Entity, world: World, n: int) -> None:
    pass


def generic(world: World, value: T) -> None:
    pass


def _lines(source: str) -> list[str]:
    return [line.strip() for line in source.splitlines()]


class TestRecordFields:
    """Which parameters become fields, with which defaults."""

    def test_captured_keep_defaults_and_keyword_only(self, make_plan) -> None:
        fields = record_fields(make_plan(sub))
        assert fields == (
            RecordField("n", int),
            RecordField("label", str, default="x", kw_only=True),
        )

    def test_scheduled_fields_skip_system_params(self, make_plan) -> None:
        assert record_fields(make_plan(bump)) == (RecordField("amount", int),)

    def test_packed_input_is_one_field(self, make_plan) -> None:
        assert record_fields(make_plan(packed)) == (
            RecordField("pair", tuple[int, str]),
        )

    def test_promoted_entity_is_not_a_field(self, make_plan) -> None:
        plan = make_plan(tag, entity_command=True)
        assert record_fields(plan) == (RecordField("n", int),)

    def test_unpacked_default_split_per_element(self, make_plan) -> None:
        def spread(
            bonus: int = 0,
            pair: Annotated[In[tuple[int, int]], Bind("a", "b")] = (1, 2),
        ) -> None:
            pass

        assert record_fields(make_plan(spread)) == (
            RecordField("bonus", int, default=0),
            RecordField("a", int, default=1),
            RecordField("b", int, default=2),
        )

    def test_unannotated_field_is_any(self, make_plan) -> None:
        def loose(world: World, n) -> None:  # type: ignore[no-untyped-def]
            pass

        assert record_fields(make_plan(loose))[0].annotation is typing.Any


class TestGenerateRecord:
    def test_exclusive_apply_calls_body_in_place(self, make_plan) -> None:
        plan = make_plan(sub)
        fragment = generate_record(plan, record_fields(plan))
        lines = _lines(fragment.source)
        assert "class SubCommand(_cmdfy_base):" in lines
        assert "'Subtract n.'" in lines
        assert "n: _cmdfy_ann_n" in lines
        assert (
            "label: _cmdfy_ann_label = _cmdfy_field("
            "default=_cmdfy_default_label, kw_only=True)"
        ) in lines
        assert "def apply(self, world):" in lines
        assert "_cmdfy_body(world, self.n, label=self.label)" in lines
        assert lines[-1] == "_cmdfy_record = SubCommand"
        assert fragment.bindings["_cmdfy_body"] is sub

    def test_scheduled_apply_runs_once(self, make_plan) -> None:
        plan = make_plan(bump)
        lines = _lines(generate_record(plan, record_fields(plan)).source)
        assert (
            "world.run_system_once("
            "_cmdfy_partial(_cmdfy_body, amount=self.amount))"
        ) in lines

    def test_packed_payload(self, make_plan) -> None:
        plan = make_plan(packed)
        lines = _lines(generate_record(plan, record_fields(plan)).source)
        assert "world.run_system_once_with(_cmdfy_body, self.pair)" in lines

    def test_entity_payload_keeps_its_position(self, make_plan) -> None:
        plan = make_plan(tag, entity_command=True)
        fragment = generate_record(plan, record_fields(plan))
        lines = _lines(fragment.source)
        assert fragment.bindings["_cmdfy_base"] is EntityCommand
        assert "def apply(self, entity, world):" in lines
        assert (
            "world.run_system_once_with(_cmdfy_body, (self.n, entity,))"
        ) in lines

    def test_entity_parameter_in_exclusive_mode(self, make_plan) -> None:
        plan = make_plan(mark, entity_command=True)
        lines = _lines(generate_record(plan, record_fields(plan)).source)
        assert "_cmdfy_body(entity, world, self.n)" in lines

    def test_unhashable_default_uses_factory(self, make_plan) -> None:
        plan = make_plan(listy)
        lines = _lines(generate_record(plan, record_fields(plan)).source)
        assert (
            "items: _cmdfy_ann_items = _cmdfy_field("
            "default_factory=lambda: _cmdfy_default_items)"
        ) in lines

    def test_chainable_apply_returns_world(self, make_plan) -> None:
        plan = make_plan(chain)
        lines = _lines(generate_record(plan, record_fields(plan)).source)
        assert lines[-3] == "return world"

    def test_generic_record(self, make_plan) -> None:
        plan = make_plan(generic)
        fragment = generate_record(plan, record_fields(plan))
        assert (
            "class GenericCommand(_cmdfy_base, _cmdfy_Generic[_cmdfy_tp_0]):"
        ) in _lines(fragment.source)
        assert fragment.bindings["_cmdfy_tp_0"] is T


class TestGenerateTrait:
    """The extension trait and its implementations."""

    def test_suppressed(self, make_plan) -> None:
        plan = make_plan(sub, {"no_trait": True})
        assert generate_trait(plan, record_fields(plan)) is None

    def test_queued_and_direct_impls(self, make_plan) -> None:
        plan = make_plan(sub)
        fragment = generate_trait(plan, record_fields(plan))
        assert fragment is not None
        lines = _lines(fragment.source)
        assert "def _cmdfy_method(self, n, *, label=_cmdfy_default_label):" in (
            lines
        )
        assert "raise _cmdfy_unimplemented(self, 'sub')" in lines
        assert "self.add(_cmdfy_record(n=n, label=label))" in lines
        assert "_cmdfy_record(n=n, label=label).apply(self)" in lines
        assert "class CommandsSubExt(_cmdfy_ABC):" in lines
        assert "_cmdfy_setattr(CommandsSubExt, 'sub', _cmdfy_method)" in lines
        assert fragment.bindings["_cmdfy_queued"] is Commands
        assert fragment.bindings["_cmdfy_direct"] is World

    def test_no_world_drops_direct_impl(self, make_plan) -> None:
        plan = make_plan(sub, {"no_world": True})
        fragment = generate_trait(plan, record_fields(plan))
        assert fragment is not None
        assert "_cmdfy_direct" not in fragment.source
        assert (
            "_cmdfy_implementations = {_cmdfy_queued: _cmdfy_queued_impl}"
        ) in _lines(fragment.source)

    def test_entity_targets(self, make_plan) -> None:
        plan = make_plan(mark, entity_command=True)
        fragment = generate_trait(plan, record_fields(plan))
        assert fragment is not None
        assert fragment.bindings["_cmdfy_queued"] is EntityCommands
        assert fragment.bindings["_cmdfy_direct"] is EntityWorldMut
        assert "_cmdfy_entity = self.id()" in _lines(fragment.source)

    def test_chainable_impls_return_self(self, make_plan) -> None:
        plan = make_plan(chain)
        fragment = generate_trait(plan, record_fields(plan))
        assert fragment is not None
        assert _lines(fragment.source).count("return self") == 2


def test_parameter_list_orders_keyword_only_last() -> None:
    emitter = CodeEmitter()
    fields = (
        RecordField("a", int),
        RecordField("b", int, default=2, kw_only=True),
        RecordField("c", int, default=3),
    )
    assert parameter_list(emitter, fields, ("self",)) == (
        "self, a, c=_cmdfy_default_c, *, b=_cmdfy_default_b"
    )


def test_render_signature_keeps_markers() -> None:
    def shape(a: int, /, b: int, *, c: int = 1) -> None:
        pass

    emitter = CodeEmitter()
    parameters = read_signature(shape).unwrap().parameters
    assert render_signature(emitter, parameters) == (
        "a, /, b, *, c=_cmdfy_default_c"
    )
    assert emitter.fragment("sig").bindings["_cmdfy_default_c"] == 1
    assert parameters[0].kind is inspect.Parameter.POSITIONAL_ONLY


def test_unimplemented_names_type_and_method() -> None:
    error = unimplemented(3, "sub")
    assert isinstance(error, NotImplementedError)
    assert str(error) == "int does not implement `sub`"

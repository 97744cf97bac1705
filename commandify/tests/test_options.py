"""Tests for the option resolver."""
from __future__ import annotations

import pytest
from returns.result import Failure, Success

import commandify.ecs
from commandify.options import MacroOptions, resolve_options, to_pascal_case
from commandify.types import SourceMap

SPANS = SourceMap(file="mod.py", line=1)


def _resolve(
    raw: dict[str, object],
    *,
    entity_command: bool = False,
) -> MacroOptions:
    result = resolve_options(
        raw, "do_sub", entity_command=entity_command, spans=SPANS,
    )
    assert isinstance(result, Success)
    return result.unwrap()


def _error_type(raw: dict[str, object]) -> str:
    result = resolve_options(
        raw, "do_sub", entity_command=False, spans=SPANS,
    )
    assert isinstance(result, Failure)
    return result.failure().error_type


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("foo", "Foo"),
        ("do_sub", "DoSub"),
        ("fooBar", "FooBar"),
        ("_private", "Private"),
        ("add_2", "Add2"),
    ],
)
def test_to_pascal_case(name: str, expected: str) -> None:
    assert to_pascal_case(name) == expected


class TestDefaults:
    """Derived names and the default host root."""

    def test_command_defaults(self) -> None:
        options = _resolve({})
        assert options.method_name == "do_sub"
        assert options.record_name == "DoSubCommand"
        assert options.extension_trait_name == "CommandsDoSubExt"
        assert options.host_root_path == "commandify.prelude"
        assert not options.suppress_extension_trait
        assert not options.suppress_context_impl
        assert not options.routes_outcome

    def test_entity_command_defaults(self) -> None:
        options = _resolve({}, entity_command=True)
        assert options.record_name == "DoSubEntityCommand"
        assert options.extension_trait_name == "EntityCommandsDoSubExt"

    def test_name_renames_derived_names(self) -> None:
        options = _resolve({"name": "take"})
        assert options.method_name == "take"
        assert options.record_name == "TakeCommand"
        assert options.extension_trait_name == "CommandsTakeExt"

    def test_struct_and_trait_names_are_independent(self) -> None:
        options = _resolve(
            {"name": "take", "struct_name": "Taking", "trait_name": "Taker"},
        )
        assert options.method_name == "take"
        assert options.record_name == "Taking"
        assert options.extension_trait_name == "Taker"

    def test_flags(self) -> None:
        options = _resolve({"no_trait": True, "no_world": True})
        assert options.suppress_extension_trait
        assert options.suppress_context_impl


class TestHostRoot:
    """``ecs`` and ``bevy_ecs`` select the host root."""

    def test_bevy_ecs_selects_standalone_host(self) -> None:
        assert _resolve({"bevy_ecs": True}).host_root_path == "commandify.ecs"

    def test_dotted_path_and_module_resolve_alike(self) -> None:
        by_path = _resolve({"ecs": "commandify.ecs"})
        by_module = _resolve({"ecs": commandify.ecs})
        assert by_path.host_root_path == by_module.host_root_path
        assert by_module.host_root is commandify.ecs

    def test_ecs_and_bevy_ecs_conflict(self) -> None:
        assert _error_type(
            {"ecs": "commandify.ecs", "bevy_ecs": True},
        ) == "InvalidOptionError"

    def test_invalid_dotted_path(self) -> None:
        assert _error_type({"ecs": "commandify..ecs"}) == "InvalidOptionError"


class TestRouting:
    def test_handlers_enable_routing(self) -> None:
        def on_ok(value: object) -> None:
            return None

        options = _resolve({"ok": on_ok})
        assert options.ok_handler is on_ok
        assert options.err_handler is None
        assert options.routes_outcome

    def test_handler_must_be_callable(self) -> None:
        assert _error_type({"err": "not callable"}) == "InvalidOptionError"


class TestValidation:
    """Unknown keys and malformed values are rejected with spans."""

    def test_unknown_key(self) -> None:
        result = resolve_options(
            {"foo": True}, "do_sub", entity_command=False, spans=SPANS,
        )
        assert isinstance(result, Failure)
        error = result.failure()
        assert error.error_type == "UnknownOptionError"
        assert error.message == "Unknown attribute `foo`"
        assert error.span is not None
        assert error.span.segment == "foo"

    @pytest.mark.parametrize(
        "raw",
        [
            {"no_trait": "yes"},
            {"name": 3},
            {"name": "not an identifier"},
            {"name": "class"},
            {"struct_name": "_cmdfy_record"},
            {"bevy_ecs": 1},
        ],
    )
    def test_invalid_values(self, raw: dict[str, object]) -> None:
        assert _error_type(raw) == "InvalidOptionError"

    def test_record_and_trait_names_must_differ(self) -> None:
        assert _error_type(
            {"struct_name": "Same", "trait_name": "Same"},
        ) == "InvalidOptionError"

    def test_same_names_allowed_without_trait(self) -> None:
        options = _resolve(
            {"struct_name": "Same", "trait_name": "Same", "no_trait": True},
        )
        assert options.record_name == "Same"

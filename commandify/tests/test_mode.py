"""Tests for the mode selector."""
from __future__ import annotations

import pytest
from returns.result import Failure, Success

from commandify.classify import classify_parameters
from commandify.ecs import Commands, Entity, In, Res, World
from commandify.host import load_host
from commandify.mode import select_mode
from commandify.signature import read_signature
from commandify.types import Mode


def _select(fn: object, *, entity_command: bool = False):  # type: ignore[no-untyped-def]
    host = load_host("commandify.ecs").unwrap()
    spec = read_signature(fn).unwrap()
    classification = classify_parameters(
        spec, host, entity_command=entity_command,
    ).unwrap()
    return select_mode(spec, classification)


def with_world(world: World, n: int) -> None:
    pass


def world_last(n: int, *, label: str, world: World) -> None:
    pass


def entity_and_world(target: Entity, world: World) -> None:
    pass


def no_world(n: int, res: Res[int]) -> None:
    pass


def piped_only(value: In[int]) -> None:
    pass


def nothing() -> None:
    pass


@pytest.mark.parametrize("fn", [with_world, world_last, entity_and_world])
def test_world_selects_exclusive(fn: object) -> None:
    """Taking the World is what makes a command exclusive."""
    result = _select(fn, entity_command=fn is entity_and_world)
    assert result == Success(Mode.EXCLUSIVE)


@pytest.mark.parametrize("fn", [no_world, piped_only, nothing])
def test_no_world_selects_scheduled(fn: object) -> None:
    assert _select(fn) == Success(Mode.SCHEDULED)


def test_input_and_world_conflict() -> None:
    def mixed(world: World, value: In[int]) -> None:
        pass

    result = _select(mixed)
    assert isinstance(result, Failure)
    error = result.failure()
    assert error.error_type == "InvalidRoleCombinationError"
    assert error.span is not None
    assert error.span.segment == "value"


def test_system_param_and_world_conflict() -> None:
    def mixed(commands: Commands, world: World) -> None:
        pass

    result = _select(mixed)
    assert isinstance(result, Failure)
    assert result.failure().error_type == "InvalidRoleCombinationError"
    assert result.failure().span.segment == "commands"  # type: ignore[union-attr]


def test_positional_only_capture_needs_world() -> None:
    """Scheduled bodies receive captured values by keyword."""

    def positional(n: int, /) -> None:
        pass

    result = _select(positional)
    assert isinstance(result, Failure)
    assert result.failure().error_type == "InvalidRoleCombinationError"


def test_positional_only_capture_with_world() -> None:
    def positional(world: World, n: int, /) -> None:
        pass

    assert _select(positional) == Success(Mode.EXCLUSIVE)

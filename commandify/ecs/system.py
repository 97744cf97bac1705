"""System parameters and the run-once injector.

A routine run through ``World.run_system_once`` declares what it needs
through its annotations; the injector resolves each parameter against
the World before calling it:

- ``In[T]`` receives the input value passed to ``run_system_once_with``
- ``World`` receives the World itself
- ``Commands`` receives a fresh command handle, flushed after the call
- ``Res[T]`` / ``ResMut[T]`` receive the resource of type ``T``
- ``Query[T]`` receives a query over component ``T``

Parameters already bound by ``functools.partial``, or carrying a
default, are left alone.
"""
from __future__ import annotations

import functools
import inspect
import typing
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING, Annotated, Generic, TypeVar

from commandify.ecs.command import CommandQueue, Commands
from commandify.ecs.errors import QueryEntityError, SystemParamError

if TYPE_CHECKING:
    from commandify.ecs.entity import Entity
    from commandify.ecs.world import World

T = TypeVar("T")

NO_INPUT = object()


class In(Generic[T]):
    """Marks the parameter that receives the run-once input value."""


class Res(Generic[T]):
    """Marks a parameter receiving the resource of type T."""


class ResMut(Generic[T]):
    """Marks a parameter receiving the resource of type T, for mutation."""


class Query(Generic[T]):
    """Read/write access to every component of one type."""

    def __init__(self, world: World, component: type[T]) -> None:
        self._world = world
        self._component = component

    def get(self, entity: Entity) -> T:
        value = self._world.get(entity, self._component)
        if value is None:
            msg = (
                f"{entity!r} has no component"
                f" {self._component.__name__}"
            )
            raise QueryEntityError(msg)
        return value

    get_mut = get

    def items(self) -> Iterator[tuple[Entity, T]]:
        for entity in self._world.entities():
            value = self._world.get(entity, self._component)
            if value is not None:
                yield entity, value

    def single(self) -> T:
        """Return the only matching component, or raise."""
        matches = [value for _, value in self.items()]
        if len(matches) != 1:
            msg = (
                f"expected exactly one {self._component.__name__},"
                f" found {len(matches)}"
            )
            raise QueryEntityError(msg)
        return matches[0]

    def __iter__(self) -> Iterator[T]:
        return (value for _, value in self.items())

    def __len__(self) -> int:
        return sum(1 for _ in self.items())


SYSTEM_PARAMS: tuple[type, ...] = (Commands, Res, ResMut, Query)


def _strip_annotated(annotation: object) -> object:
    if typing.get_origin(annotation) is Annotated:
        return typing.get_args(annotation)[0]
    return annotation


def _resolve_hints(system: Callable[..., object]) -> dict[str, object]:
    target = system
    while isinstance(target, functools.partial):
        target = target.func
    try:
        return typing.get_type_hints(target, include_extras=True)
    except (NameError, TypeError) as exc:
        msg = f"cannot resolve annotations of {target!r}: {exc}"
        raise SystemParamError(msg) from exc


def run_system(
    world: World,
    system: Callable[..., object],
    value: object = NO_INPUT,
) -> object:
    """Call ``system`` once with its parameters injected from ``world``.

    Returns whatever the routine returns. Commands issued through an
    injected ``Commands`` handle are applied before returning.
    """
    from commandify.ecs.world import World  # noqa: PLC0415

    hints = _resolve_hints(system)
    bound = (
        system.keywords if isinstance(system, functools.partial) else {}
    )
    args: list[object] = []
    kwargs: dict[str, object] = {}
    deferred: list[Commands] = []

    for param in inspect.signature(system).parameters.values():
        if param.name in bound:
            continue
        annotation = _strip_annotated(
            hints.get(param.name, inspect.Parameter.empty),
        )
        origin = typing.get_origin(annotation) or annotation
        if origin is In:
            if value is NO_INPUT:
                msg = (
                    f"parameter '{param.name}' expects an input value;"
                    f" use run_system_once_with"
                )
                raise SystemParamError(msg)
            arg: object = value
        elif annotation is World:
            arg = world
        elif annotation is Commands:
            arg = Commands(CommandQueue(), world)
            deferred.append(arg)
        elif origin in (Res, ResMut):
            arg = world.resource(typing.get_args(annotation)[0])
        elif origin is Query:
            arg = Query(world, typing.get_args(annotation)[0])
        elif param.default is not inspect.Parameter.empty:
            continue
        else:
            msg = (
                f"cannot inject parameter '{param.name}'"
                f" of {getattr(system, '__name__', system)!r}"
            )
            raise SystemParamError(msg)

        if param.kind is inspect.Parameter.POSITIONAL_ONLY:
            args.append(arg)
        else:
            kwargs[param.name] = arg

    output = system(*args, **kwargs)
    for commands in deferred:
        commands.apply(world)
    return output

"""The World: entities, their components, and global resources."""
from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import TypeVar

from commandify.ecs.entity import Entity
from commandify.ecs.errors import EntityNotFoundError, MissingResourceError
from commandify.ecs.system import NO_INPUT, Query, run_system

T = TypeVar("T")
R = TypeVar("R")


class World:
    """Central mutable state container.

    Components are stored per entity, keyed by their type; resources
    are singletons keyed by their type.
    """

    def __init__(self) -> None:
        self._next_index = 0
        self._entities: dict[Entity, dict[type, object]] = {}
        self._resources: dict[type, object] = {}

    # --- entities ---

    def reserve_entity(self) -> Entity:
        """Allocate a new, component-less entity."""
        entity = Entity(self._next_index)
        self._next_index += 1
        self._entities[entity] = {}
        return entity

    def spawn_empty(self) -> EntityWorldMut:
        return EntityWorldMut(self, self.reserve_entity())

    def spawn(self, *components: object) -> EntityWorldMut:
        return self.spawn_empty().insert(*components)

    def despawn(self, entity: Entity) -> bool:
        return self._entities.pop(entity, None) is not None

    def contains_entity(self, entity: Entity) -> bool:
        return entity in self._entities

    def entities(self) -> Iterator[Entity]:
        return iter(list(self._entities))

    def entity_mut(self, entity: Entity) -> EntityWorldMut:
        if entity not in self._entities:
            raise EntityNotFoundError(entity)
        return EntityWorldMut(self, entity)

    # --- components ---

    def insert(self, entity: Entity, *components: object) -> None:
        try:
            storage = self._entities[entity]
        except KeyError:
            raise EntityNotFoundError(entity) from None
        for component in components:
            storage[type(component)] = component

    def get(self, entity: Entity, component: type[T]) -> T | None:
        storage = self._entities.get(entity)
        if storage is None:
            return None
        return storage.get(component)  # type: ignore[return-value]

    def contains(self, entity: Entity, component: type) -> bool:
        return component in self._entities.get(entity, {})

    def query(self, component: type[T]) -> Query[T]:
        return Query(self, component)

    # --- resources ---

    def insert_resource(self, resource: object) -> None:
        self._resources[type(resource)] = resource

    def resource(self, kind: type[T]) -> T:
        """Return the resource of type ``kind``, raising when absent."""
        try:
            return self._resources[kind]  # type: ignore[return-value]
        except KeyError:
            msg = f"resource {kind.__name__} does not exist"
            raise MissingResourceError(msg) from None

    resource_mut = resource

    def get_resource(self, kind: type[T]) -> T | None:
        return self._resources.get(kind)  # type: ignore[return-value]

    def remove_resource(self, kind: type[T]) -> T | None:
        return self._resources.pop(kind, None)  # type: ignore[return-value]

    # --- run-once execution ---

    def run_system_once(self, system: Callable[..., R]) -> R:
        """Run ``system`` once, injecting its parameters."""
        return run_system(self, system)  # type: ignore[return-value]

    def run_system_once_with(
        self,
        system: Callable[..., R],
        value: object,
    ) -> R:
        """Run ``system`` once with ``value`` as its ``In`` parameter."""
        if value is NO_INPUT:
            msg = "run_system_once_with requires an input value"
            raise ValueError(msg)
        return run_system(self, system, value)  # type: ignore[return-value]


class EntityWorldMut:
    """Direct, mutable access to one entity of a World."""

    def __init__(self, world: World, entity: Entity) -> None:
        self._world = world
        self._entity = entity

    @property
    def world(self) -> World:
        return self._world

    def id(self) -> Entity:
        return self._entity

    def insert(self, *components: object) -> EntityWorldMut:
        self._world.insert(self._entity, *components)
        return self

    def get(self, component: type[T]) -> T | None:
        return self._world.get(self._entity, component)

    def contains(self, component: type) -> bool:
        return self._world.contains(self._entity, component)

    def world_scope(self, function: Callable[[World], R]) -> R:
        """Give ``function`` temporary access to the whole World."""
        return function(self._world)

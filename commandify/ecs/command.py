"""Deferred commands: the Command traits, the queue and its handles.

A CommandQueue is an ordered buffer of commands. Nothing touches the
World until the queue is applied, at which point every command runs
once, in the order it was pushed.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from commandify.ecs.entity import Entity
    from commandify.ecs.world import World


class Command(ABC):
    """A unit of work applied to the World."""

    @abstractmethod
    def apply(self, world: World) -> object:
        """Run the command against the World."""


class EntityCommand(ABC):
    """A unit of work applied to one entity of the World."""

    @abstractmethod
    def apply(self, entity: Entity, world: World) -> object:
        """Run the command against one entity."""

    def with_entity(self, entity: Entity) -> Command:
        """Bind this command to an entity, producing a plain Command."""
        return _EntityScoped(command=self, entity=entity)


@dataclass(frozen=True)
class _EntityScoped(Command):
    command: EntityCommand
    entity: Entity

    def apply(self, world: World) -> object:
        return self.command.apply(self.entity, world)


@dataclass(frozen=True)
class _Closure(Command):
    function: Callable[[World], object]

    def apply(self, world: World) -> object:
        return self.function(world)


@dataclass(frozen=True)
class _InsertResource(Command):
    resource: object

    def apply(self, world: World) -> None:
        world.insert_resource(self.resource)


@dataclass(frozen=True)
class _InsertComponents(EntityCommand):
    components: tuple[object, ...]

    def apply(self, entity: Entity, world: World) -> None:
        world.insert(entity, *self.components)


@dataclass(frozen=True)
class _Despawn(EntityCommand):
    def apply(self, entity: Entity, world: World) -> None:
        world.despawn(entity)


class CommandQueue:
    """FIFO buffer of commands waiting to be applied."""

    def __init__(self) -> None:
        self._commands: deque[Command] = deque()

    def push(self, command: Command) -> None:
        """Append a command to the end of the queue."""
        self._commands.append(command)

    def apply(self, world: World) -> None:
        """Apply and remove every queued command, oldest first.

        Commands pushed while the queue is draining run in the
        same flush, after everything queued before them.
        """
        while self._commands:
            self._commands.popleft().apply(world)

    def __len__(self) -> int:
        return len(self._commands)


class Commands:
    """Handle that records commands into a queue for later application."""

    def __init__(self, queue: CommandQueue, world: World) -> None:
        self._queue = queue
        self._world = world

    @property
    def queue(self) -> CommandQueue:
        return self._queue

    def add(self, command: Command | Callable[[World], object]) -> None:
        """Queue a command (or a plain callable taking the World)."""
        if not isinstance(command, Command):
            if not callable(command):
                msg = (
                    f"Commands.add expects a Command or callable,"
                    f" got {type(command).__name__}"
                )
                raise TypeError(msg)
            command = _Closure(function=command)
        self._queue.push(command)

    def entity(self, entity: Entity) -> EntityCommands:
        """Return a handle queuing commands for an existing entity."""
        return EntityCommands(self, entity)

    def spawn_empty(self) -> EntityCommands:
        """Reserve a new entity now and return its command handle."""
        return EntityCommands(self, self._world.reserve_entity())

    def spawn(self, *components: object) -> EntityCommands:
        """Reserve a new entity and queue insertion of its components."""
        entity_commands = self.spawn_empty()
        entity_commands.insert(*components)
        return entity_commands

    def insert_resource(self, resource: object) -> None:
        """Queue insertion (or replacement) of a resource."""
        self.add(_InsertResource(resource=resource))

    def apply(self, world: World) -> None:
        """Flush this handle's queue into the World."""
        self._queue.apply(world)


class EntityCommands:
    """Handle that queues commands scoped to one entity."""

    def __init__(self, commands: Commands, entity: Entity) -> None:
        self._commands = commands
        self._entity = entity

    @property
    def commands(self) -> Commands:
        return self._commands

    def id(self) -> Entity:
        return self._entity

    def add(self, command: EntityCommand) -> None:
        """Queue an entity command bound to this entity."""
        self._commands.add(command.with_entity(self._entity))

    def insert(self, *components: object) -> EntityCommands:
        """Queue insertion of components on this entity."""
        if components:
            self.add(_InsertComponents(components=components))
        return self

    def despawn(self) -> None:
        self.add(_Despawn())

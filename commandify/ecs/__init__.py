"""Reference host runtime targeted by generated commands.

Provides the World, entities, deferred command queues and the
run-once injector. Generated code reaches it through the names
exported here.
"""
from commandify.ecs.command import (
    Command,
    CommandQueue,
    Commands,
    EntityCommand,
    EntityCommands,
)
from commandify.ecs.entity import Entity
from commandify.ecs.errors import (
    EntityNotFoundError,
    MissingResourceError,
    QueryEntityError,
    SystemParamError,
)
from commandify.ecs.system import SYSTEM_PARAMS, In, Query, Res, ResMut
from commandify.ecs.world import EntityWorldMut, World

__all__ = [
    "SYSTEM_PARAMS",
    "Command",
    "CommandQueue",
    "Commands",
    "Entity",
    "EntityCommand",
    "EntityCommands",
    "EntityNotFoundError",
    "EntityWorldMut",
    "In",
    "MissingResourceError",
    "Query",
    "QueryEntityError",
    "Res",
    "ResMut",
    "SystemParamError",
    "World",
]

"""Default host root: the reference host plus the command decorators.

``from commandify.prelude import *`` brings in everything a module
defining commands usually needs.
"""
from commandify.decorators import artifacts, command, entity_command
from commandify.ecs import (
    SYSTEM_PARAMS,
    Command,
    CommandQueue,
    Commands,
    Entity,
    EntityCommand,
    EntityCommands,
    EntityWorldMut,
    In,
    Query,
    Res,
    ResMut,
    World,
)
from commandify.types import Bind

__all__ = [
    "SYSTEM_PARAMS",
    "Bind",
    "Command",
    "CommandQueue",
    "Commands",
    "Entity",
    "EntityCommand",
    "EntityCommands",
    "EntityWorldMut",
    "In",
    "Query",
    "Res",
    "ResMut",
    "World",
    "artifacts",
    "command",
    "entity_command",
]

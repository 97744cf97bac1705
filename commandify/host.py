"""Host capability registry: the closed set of markers roles resolve to.

The host root is the only place generated code learns about the
runtime it targets. Loading it is the single import boundary of the
pipeline; like every stage it returns a Result and never raises.
"""
from __future__ import annotations

import importlib
from dataclasses import dataclass
from types import MappingProxyType, ModuleType

from returns.result import Failure, Result, Success

from commandify.errors import GenerationError, Span

DEFAULT_HOST_ROOT = "commandify.prelude"
STANDALONE_HOST_ROOT = "commandify.ecs"

# Attribute a host root must export -> HostCapabilities field.
HOST_MARKERS: MappingProxyType[str, str] = MappingProxyType(
    {
        "World": "world",
        "Entity": "entity",
        "In": "input_marker",
        "Commands": "commands",
        "EntityCommands": "entity_commands",
        "EntityWorldMut": "entity_world",
        "Command": "command",
        "EntityCommand": "entity_command",
        "SYSTEM_PARAMS": "system_params",
    },
)

# Markers a parameter annotation can be mistaken for.
HANDLE_MARKERS = ("World", "Entity", "In")


@dataclass(frozen=True)
class HostCapabilities:
    """Markers and host types exported by one host root."""

    root: str
    world: type
    entity: type
    input_marker: type
    commands: type
    entity_commands: type
    entity_world: type
    command: type
    entity_command: type
    system_params: tuple[type, ...]

    def command_base(self, *, entity_command: bool) -> type:
        """Base class of generated records (the execution trait)."""
        return self.entity_command if entity_command else self.command

    def queued_target(self, *, entity_command: bool) -> type:
        """Host type exposing the deferred queue."""
        return self.entity_commands if entity_command else self.commands

    def direct_target(self, *, entity_command: bool) -> type:
        """Host type that applies a record immediately."""
        return self.entity_world if entity_command else self.world

    def marker(self, name: str) -> object:
        return getattr(self, HOST_MARKERS[name])


def _root_name(root: str | ModuleType) -> str:
    return root.__name__ if isinstance(root, ModuleType) else root


def load_host(
    root: str | ModuleType,
    span: Span | None = None,
) -> Result[HostCapabilities, GenerationError]:
    """Import a host root and collect its markers.

    Returns Failure(InvalidHostRootError) when the module cannot be
    imported or lacks one of HOST_MARKERS.
    """
    name = _root_name(root)
    if isinstance(root, ModuleType):
        module = root
    else:
        try:
            module = importlib.import_module(name)
        except ImportError as exc:
            return Failure(
                GenerationError(
                    stage="host",
                    error_type="InvalidHostRootError",
                    message=f"cannot import host root `{name}`: {exc}",
                    span=span,
                    context={"root": name},
                ),
            )

    missing = sorted(
        marker for marker in HOST_MARKERS if not hasattr(module, marker)
    )
    if missing:
        return Failure(
            GenerationError(
                stage="host",
                error_type="InvalidHostRootError",
                message=(
                    f"host root `{name}` does not export"
                    f" {', '.join(missing)}"
                ),
                span=span,
                context={"root": name, "missing": missing},
            ),
        )

    markers = {
        field_name: getattr(module, marker)
        for marker, field_name in HOST_MARKERS.items()
    }
    markers["system_params"] = tuple(markers["system_params"])
    return Success(HostCapabilities(root=name, **markers))

"""Turn plain functions into deferred command records.

``@command`` and ``@entity_command`` generate, at definition time, a
command record, its ``apply`` and an extension method on the host's
command queues. Host types and markers live in ``commandify.prelude``.
"""
from commandify.decorators import artifacts, command, entity_command, install
from commandify.errors import CommandGenerationError, GenerationError, Span
from commandify.pipeline import generate_command
from commandify.types import ArtifactSet, Bind

__all__ = [
    "ArtifactSet",
    "Bind",
    "CommandGenerationError",
    "GenerationError",
    "Span",
    "artifacts",
    "command",
    "entity_command",
    "generate_command",
    "install",
]

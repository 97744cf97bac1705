"""Runtime errors raised by the reference host."""
from __future__ import annotations


class EntityNotFoundError(KeyError):
    """The entity does not exist in this World."""


class MissingResourceError(KeyError):
    """No resource of the requested type is present."""


class QueryEntityError(LookupError):
    """A query could not produce a component for an entity."""


class SystemParamError(TypeError):
    """A routine parameter cannot be injected by the host."""

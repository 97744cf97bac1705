"""Shared test fixtures for the commandify test suite."""
from __future__ import annotations

import pytest

from commandify.ecs import CommandQueue, Commands, World


@pytest.fixture
def world() -> World:
    """Return an empty World."""
    return World()


@pytest.fixture
def queue() -> CommandQueue:
    """Return an empty CommandQueue."""
    return CommandQueue()


@pytest.fixture
def commands(queue: CommandQueue, world: World) -> Commands:
    """Return a Commands handle recording into ``queue``."""
    return Commands(queue, world)

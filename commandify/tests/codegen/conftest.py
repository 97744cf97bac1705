"""Fixtures building CommandPlans without running the full pipeline."""
from __future__ import annotations

from collections.abc import Callable, Mapping

import pytest

from commandify.classify import classify_parameters
from commandify.codegen.routing import rename_routine, shadow_name
from commandify.host import load_host
from commandify.mode import select_mode
from commandify.options import resolve_options
from commandify.signature import read_signature
from commandify.types import CommandPlan

PlanFactory = Callable[..., CommandPlan]


@pytest.fixture
def make_plan() -> PlanFactory:
    """Return a factory running every stage up to the CommandPlan."""

    def factory(
        fn: Callable[..., object],
        raw: Mapping[str, object] | None = None,
        *,
        entity_command: bool = False,
    ) -> CommandPlan:
        spec = read_signature(fn).unwrap()
        options = resolve_options(
            raw or {},
            spec.name,
            entity_command=entity_command,
            spans=spec.spans,
        ).unwrap()
        host = load_host(options.host_root).unwrap()
        classification = classify_parameters(
            spec, host, entity_command=entity_command,
        ).unwrap()
        mode = select_mode(spec, classification).unwrap()
        shadow = (
            rename_routine(fn, shadow_name(spec.name))  # type: ignore[arg-type]
            if options.routes_outcome
            else None
        )
        return CommandPlan(
            spec=spec,
            options=options,
            host=host,
            classification=classification,
            mode=mode,
            entity_command=entity_command,
            body=shadow or fn,
            shadow=shadow,
        )

    return factory

"""Generation pipeline: one decorated function in, one ArtifactSet out.

Every stage returns a ``Result``; the first ``Failure`` stops the run
and nothing is generated. The pipeline has no side effects beyond
importing the host root; installing and publishing the artifacts is
left to the decorators.
"""
from __future__ import annotations

import inspect
from typing import TYPE_CHECKING

from returns.result import Failure, Result

from commandify.classify import classify_parameters
from commandify.codegen.assemble import assemble
from commandify.codegen.fragments import (
    generate_record,
    generate_trait,
    record_fields,
)
from commandify.codegen.routing import (
    generate_routing,
    rename_routine,
    shadow_name,
    validate_routing,
)
from commandify.host import load_host
from commandify.mode import select_mode
from commandify.options import resolve_options
from commandify.signature import locate, read_signature
from commandify.types import CommandPlan

if TYPE_CHECKING:
    from collections.abc import Mapping

    from commandify.codegen.emitter import Fragment
    from commandify.errors import GenerationError
    from commandify.types import ArtifactSet


def _generate(plan: CommandPlan) -> Result[ArtifactSet, GenerationError]:
    fields = record_fields(plan)
    fragments: list[Fragment] = [generate_record(plan, fields)]
    if plan.routed:
        fragments.append(generate_routing(plan, fields))
    trait = generate_trait(plan, fields)
    if trait is not None:
        fragments.append(trait)
    return assemble(plan, fields, fragments)


def generate_command(
    fn: object,
    raw_options: Mapping[str, object] | None = None,
    *,
    entity_command: bool = False,
) -> Result[ArtifactSet, GenerationError]:
    """Run every stage for ``fn`` with the decorator keywords given.

    Returns Success(ArtifactSet) or the Failure of the first stage
    that rejected the definition.
    """
    spans = locate(fn) if inspect.isfunction(fn) else None
    read = read_signature(fn, spans)
    if isinstance(read, Failure):
        return read
    spec = read.unwrap()

    resolved = resolve_options(
        raw_options or {},
        spec.name,
        entity_command=entity_command,
        spans=spec.spans,
    )
    if isinstance(resolved, Failure):
        return resolved
    options = resolved.unwrap()

    root_key = "bevy_ecs" if "bevy_ecs" in (raw_options or {}) else "ecs"
    loaded = load_host(
        options.host_root, spec.spans.for_option(root_key),
    )
    if isinstance(loaded, Failure):
        return loaded
    host = loaded.unwrap()

    classified = classify_parameters(
        spec, host, entity_command=entity_command,
    )
    if isinstance(classified, Failure):
        return classified
    classification = classified.unwrap()

    selected = select_mode(spec, classification)
    if isinstance(selected, Failure):
        return selected

    def _plan(_: object) -> Result[ArtifactSet, GenerationError]:
        shadow = (
            rename_routine(spec.body, shadow_name(spec.name))
            if options.routes_outcome
            else None
        )
        return _generate(
            CommandPlan(
                spec=spec,
                options=options,
                host=host,
                classification=classification,
                mode=selected.unwrap(),
                entity_command=entity_command,
                body=shadow or spec.body,
                shadow=shadow,
            ),
        )

    return validate_routing(spec, options).bind(_plan)

"""Entry points: the ``@command`` and ``@entity_command`` decorators.

The decorators are the only place generation failures become
exceptions and the only place with side effects: after a successful
run they install the extension method on the host types and publish
the record and trait into the defining module.
"""
from __future__ import annotations

import functools
import logging
import sys
from typing import TYPE_CHECKING

from returns.result import Failure, Result, Success

from commandify.codegen.assemble import GENERATED_MARKER, TRAIT_MARKER
from commandify.errors import CommandGenerationError, GenerationError
from commandify.pipeline import generate_command

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from commandify.types import ArtifactSet

logger = logging.getLogger(__name__)

ARTIFACTS_ATTRIBUTE = "__commandify__"


def _is_generated(obj: object) -> bool:
    return bool(getattr(obj, "__dict__", {}).get(GENERATED_MARKER))


def _install_error(
    generated: ArtifactSet,
    error_type: str,
    message: str,
    key: str,
    **context: object,
) -> GenerationError:
    spans = generated.spec.spans
    return GenerationError(
        stage="install",
        error_type=error_type,
        message=message,
        span=spans.for_option(key),
        context={"function": generated.spec.qualname, **context},
    )


def _check_conflicts(
    generated: ArtifactSet,
) -> Result[ArtifactSet, GenerationError]:
    method_name = generated.options.method_name
    for host_type in generated.implementations:
        existing = getattr(host_type, method_name, None)
        generated_before = getattr(existing, TRAIT_MARKER, None) is not None
        if existing is not None and not generated_before:
            return Failure(
                _install_error(
                    generated,
                    "ExtensionConflictError",
                    f"`{host_type.__name__}` already has an attribute"
                    f" `{method_name}`",
                    "name",
                    host_type=host_type.__name__,
                ),
            )

    module = sys.modules.get(generated.spec.module)
    for name in _published_names(generated):
        key = (
            "struct_name"
            if name == generated.record.__name__
            else "trait_name"
        )
        if name == generated.spec.name:
            return Failure(
                _install_error(
                    generated,
                    "NameCollisionError",
                    f"`{name}` would be rebound to the decorated routine",
                    key,
                    name=name,
                ),
            )
        existing = getattr(module, name, None) if module else None
        if existing is not None and not _is_generated(existing):
            return Failure(
                _install_error(
                    generated,
                    "NameCollisionError",
                    f"module `{generated.spec.module}` already defines"
                    f" `{name}`",
                    key,
                    name=name,
                ),
            )
    return Success(generated)


def _published_names(generated: ArtifactSet) -> dict[str, type]:
    names: dict[str, type] = {generated.record.__name__: generated.record}
    if generated.trait is not None:
        names[generated.trait.__name__] = generated.trait
    return names


def install(generated: ArtifactSet) -> Result[ArtifactSet, GenerationError]:
    """Install the extension method and publish the generated names.

    All conflicts are checked before anything is mutated, so a failed
    install leaves the host types and the module untouched.
    """
    checked = _check_conflicts(generated)
    if isinstance(checked, Failure):
        return checked

    method_name = generated.options.method_name
    for host_type in generated.implementations:
        previous = getattr(host_type, method_name, None)
        if previous is not None:
            logger.warning(
                "Replacing %s.%s from %s",
                host_type.__name__,
                method_name,
                getattr(previous, TRAIT_MARKER),
            )
        setattr(host_type, method_name, generated.method)

    module = sys.modules.get(generated.spec.module)
    if module is not None:
        for name, obj in _published_names(generated).items():
            setattr(module, name, obj)
    return Success(generated)


def _commandify(
    fn: Callable[..., object],
    raw_options: Mapping[str, object],
    *,
    entity_command: bool,
) -> Callable[..., object]:
    result = generate_command(
        fn, raw_options, entity_command=entity_command,
    ).bind(install)
    if isinstance(result, Failure):
        error = result.failure()
        logger.debug("Generation failed: %s", error.to_dict())
        raise CommandGenerationError(error)

    generated = result.unwrap()
    logger.debug(
        "Generated %s for %s (%s mode, trait %s)",
        generated.record.__name__,
        generated.spec.qualname,
        generated.mode.value,
        generated.trait.__name__ if generated.trait else None,
    )
    setattr(generated.routine, ARTIFACTS_ATTRIBUTE, generated)
    return generated.routine


def command(
    fn: Callable[..., object] | None = None,
    /,
    **options: object,
) -> Callable[..., object]:
    """Promote a function to a Command record plus a Commands method.

    Usable bare (``@command``) or with keywords (``@command(name=...)``):

    - ``no_trait``: do not generate the extension trait
    - ``no_world``: do not implement the trait for ``World``
    - ``name``: method name, and base of the derived names
    - ``struct_name`` / ``trait_name``: record / trait names
    - ``ecs`` / ``bevy_ecs``: host root to generate against
    - ``ok`` / ``err``: routines receiving a ``Result`` outcome

    Raises CommandGenerationError when the definition is rejected.
    """
    if fn is None:
        return functools.partial(
            _commandify, raw_options=options, entity_command=False,
        )
    return _commandify(fn, options, entity_command=False)


def entity_command(
    fn: Callable[..., object] | None = None,
    /,
    **options: object,
) -> Callable[..., object]:
    """Promote a function to an EntityCommand plus an EntityCommands method.

    Takes the same keywords as ``command``. The function must take an
    ``Entity``, as a parameter or inside its ``In`` input.
    """
    if fn is None:
        return functools.partial(
            _commandify, raw_options=options, entity_command=True,
        )
    return _commandify(fn, options, entity_command=True)


def artifacts(routine: Callable[..., object]) -> ArtifactSet:
    """Return the ArtifactSet generated for a decorated routine."""
    try:
        return getattr(routine, ARTIFACTS_ATTRIBUTE)
    except AttributeError:
        msg = f"{routine!r} was not generated by commandify"
        raise TypeError(msg) from None

"""Mode selector: how the generated apply reaches the original body."""
from __future__ import annotations

from returns.result import Failure, Result, Success

from commandify.errors import GenerationError
from commandify.types import (
    Classification,
    CommandSpec,
    Mode,
    Parameter,
    ParameterRole,
)


def _conflict(
    spec: CommandSpec,
    param: Parameter,
    message: str,
) -> GenerationError:
    return GenerationError(
        stage="mode",
        error_type="InvalidRoleCombinationError",
        message=message,
        span=spec.spans.for_parameter(param.name),
        context={"function": spec.qualname, "parameter": param.name},
    )


def select_mode(
    spec: CommandSpec,
    classification: Classification,
) -> Result[Mode, GenerationError]:
    """EXCLUSIVE iff the command takes the World, else SCHEDULED.

    Exclusive bodies are called directly, so nothing may need host
    injection. Scheduled bodies run through the host's run-once
    primitive with captured values bound by keyword.
    """
    if classification.context is not None:
        for param, role in classification.roles:
            if role is ParameterRole.PIPED_INPUT:
                return Failure(
                    _conflict(
                        spec, param,
                        "an `In` parameter cannot be combined with"
                        " `World`",
                    ),
                )
            if role is ParameterRole.SYSTEM_PARAM:
                return Failure(
                    _conflict(
                        spec, param,
                        "system parameters cannot be combined with"
                        " `World`",
                    ),
                )
        return Success(Mode.EXCLUSIVE)

    for param, role in classification.roles:
        bound_by_keyword = role in (
            ParameterRole.CAPTURED_FIELD,
            ParameterRole.ENTITY,
        )
        if bound_by_keyword and param.is_positional_only:
            return Failure(
                _conflict(
                    spec, param,
                    "positional-only parameters can only be captured"
                    " by commands taking `World`",
                ),
            )
    return Success(Mode.SCHEDULED)

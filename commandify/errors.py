"""Generation error types for the commandify pipeline."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field


@dataclass(frozen=True)
class Span:
    """Source location of the token a diagnostic points at.

    ``segment`` names the token itself: a parameter, an option
    keyword, or the return annotation.
    """

    file: str
    line: int
    column: int = 0
    segment: str = ""

    def __str__(self) -> str:
        location = f"{self.file}:{self.line}:{self.column}"
        if self.segment:
            return f"{location} (`{self.segment}`)"
        return location


@dataclass(frozen=True)
class GenerationError:
    """Structured diagnostic for a failed generation run."""

    stage: str
    error_type: str
    message: str
    span: Span | None = None
    context: dict[str, object] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        """Return plain dict suitable for JSON serialization.

        Non-serializable context values are converted to string representations.
        """
        data = asdict(self)

        def make_safe(obj: object) -> object:
            if isinstance(obj, (str, int, float, bool, type(None))):
                return obj
            if isinstance(obj, (list, tuple)):
                return [make_safe(x) for x in obj]
            if isinstance(obj, dict):
                return {str(k): make_safe(v) for k, v in obj.items()}
            return str(obj)

        data["context"] = make_safe(self.context)
        return data

    def __str__(self) -> str:
        """Human-readable diagnostic, prefixed with its location."""
        base = f"{self.error_type}[{self.stage}]: {self.message}"
        if self.span is not None:
            base = f"{self.span}: {base}"
        return base


class CommandGenerationError(Exception):
    """Raised by the decorators when generation fails.

    Module import halts here; nothing was generated or installed.
    """

    def __init__(self, error: GenerationError) -> None:
        super().__init__(str(error))
        self.error = error

    @property
    def error_type(self) -> str:
        return self.error.error_type

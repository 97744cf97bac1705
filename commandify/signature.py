"""Signature reader: turns a decorated function into a CommandSpec.

Annotations are resolved with ``typing.get_type_hints``; spans come
from re-parsing the function's source with ``ast`` so diagnostics can
point at the offending parameter, keyword or return annotation.
"""
from __future__ import annotations

import ast
import inspect
import textwrap
import typing
from typing import TYPE_CHECKING, Annotated, Self, TypeVar

from returns.result import Failure, Result, Success

from commandify.errors import GenerationError, Span
from commandify.types import Bind, CommandSpec, Parameter, SourceMap

if TYPE_CHECKING:
    from collections.abc import Callable


def locate(fn: Callable[..., object]) -> SourceMap:
    """Build the SourceMap of ``fn``.

    Falls back to a definition-line-only map when the source is not
    available (interactive sessions, generated functions).
    """
    code = getattr(fn, "__code__", None)
    file = code.co_filename if code is not None else "<unknown>"
    line = code.co_firstlineno if code is not None else 0
    fallback = SourceMap(file=file, line=line)
    try:
        lines, start = inspect.getsourcelines(fn)
        tree = ast.parse(textwrap.dedent("".join(lines)))
    except (OSError, TypeError, SyntaxError):
        return fallback
    if not tree.body or not isinstance(
        tree.body[0], (ast.FunctionDef, ast.AsyncFunctionDef),
    ):
        return fallback

    node = tree.body[0]
    indent = len(lines[0]) - len(lines[0].lstrip())

    def span(target: ast.AST, segment: str) -> Span:
        return Span(
            file,
            start + target.lineno - 1,
            target.col_offset + indent,
            segment,
        )

    arguments = node.args
    declared = [
        *arguments.posonlyargs,
        *arguments.args,
        *([arguments.vararg] if arguments.vararg else []),
        *arguments.kwonlyargs,
        *([arguments.kwarg] if arguments.kwarg else []),
    ]
    parameters = {arg.arg: span(arg, arg.arg) for arg in declared}
    returns = (
        span(node.returns, ast.unparse(node.returns))
        if node.returns is not None
        else None
    )
    keywords = {
        keyword.arg: span(keyword, keyword.arg)
        for decorator in node.decorator_list
        if isinstance(decorator, ast.Call)
        for keyword in decorator.keywords
        if keyword.arg is not None
    }
    return SourceMap(
        file=file,
        line=start,
        parameters=parameters,
        returns=returns,
        keywords=keywords,
    )


def _split_annotated(annotation: object) -> tuple[object, Bind | None]:
    if typing.get_origin(annotation) is not Annotated:
        return annotation, None
    base, *metadata = typing.get_args(annotation)
    binding = next((m for m in metadata if isinstance(m, Bind)), None)
    return base, binding


def _collect_typevars(annotation: object, found: list[object]) -> None:
    if isinstance(annotation, TypeVar):
        if annotation not in found:
            found.append(annotation)
        return
    for arg in typing.get_args(annotation):
        _collect_typevars(arg, found)


def _read_return(
    annotation: object,
    spans: SourceMap,
) -> Result[tuple[bool, tuple[object, object] | None], GenerationError]:
    """Classify the return annotation: plain, chainable or outcome."""
    if annotation in (inspect.Parameter.empty, None, type(None)):
        return Success((False, None))
    if annotation is Self:
        return Success((True, None))
    if typing.get_origin(annotation) is Result:
        args = typing.get_args(annotation)
        if len(args) == 2:  # noqa: PLR2004
            return Success((False, (args[0], args[1])))
    return Failure(
        GenerationError(
            stage="signature",
            error_type="InvalidReturnTypeError",
            message=(
                "command may not define a return type, except for"
                " `Self` or `Result[T, E]`"
            ),
            span=spans.for_return(),
            context={"annotation": repr(annotation)},
        ),
    )


def read_signature(
    fn: object,
    spans: SourceMap | None = None,
) -> Result[CommandSpec, GenerationError]:
    """Parse ``fn`` into a CommandSpec (pure apart from source lookup)."""
    if not inspect.isfunction(fn) or inspect.iscoroutinefunction(fn):
        kind = (
            "coroutine function"
            if inspect.iscoroutinefunction(fn)
            else type(fn).__name__
        )
        return Failure(
            GenerationError(
                stage="signature",
                error_type="InvalidTargetError",
                message=(
                    f"commands must be plain functions, got a {kind}"
                ),
                context={"target": repr(fn)},
            ),
        )

    spans = spans or locate(fn)
    try:
        hints = typing.get_type_hints(fn, include_extras=True)
    except (NameError, TypeError) as exc:
        return Failure(
            GenerationError(
                stage="signature",
                error_type="UnresolvedAnnotationError",
                message=f"cannot resolve annotations: {exc}",
                span=spans.definition(fn.__name__),
                context={"function": fn.__qualname__},
            ),
        )

    parameters: list[Parameter] = []
    generics: list[object] = list(getattr(fn, "__type_params__", ()))
    collect = not generics
    for param in inspect.signature(fn).parameters.values():
        annotation, binding = _split_annotated(
            hints.get(param.name, inspect.Parameter.empty),
        )
        if collect:
            _collect_typevars(annotation, generics)
        parameters.append(
            Parameter(
                name=param.name,
                annotation=annotation,
                kind=param.kind,
                default=param.default,
                binding=binding,
            ),
        )

    returned = _read_return(
        hints.get("return", inspect.Parameter.empty), spans,
    )
    if isinstance(returned, Failure):
        return returned
    chainable, outcome = returned.unwrap()

    return Success(
        CommandSpec(
            name=fn.__name__,
            qualname=fn.__qualname__,
            module=fn.__module__,
            body=fn,
            parameters=tuple(parameters),
            spans=spans,
            generics=tuple(generics),
            chainable=chainable,
            outcome=outcome,
            doc=inspect.getdoc(fn),
        ),
    )

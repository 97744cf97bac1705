"""Command-line inspection of generated commands.

``commandify list MODULE`` summarises every command a module defines;
``commandify expand MODULE [NAME]`` prints the generated source.
"""
from __future__ import annotations

import importlib
import logging

import click

from commandify.decorators import ARTIFACTS_ATTRIBUTE
from commandify.errors import CommandGenerationError
from commandify.types import ArtifactSet


def collect_artifacts(module_name: str) -> list[ArtifactSet]:
    """Import ``module_name`` and return its commands, in definition order.

    Raises click.ClickException when the module cannot be imported or
    one of its commands is rejected.
    """
    try:
        module = importlib.import_module(module_name)
    except CommandGenerationError as exc:
        msg = f"{module_name}: {exc}"
        raise click.ClickException(msg) from exc
    except ImportError as exc:
        msg = f"cannot import {module_name}: {exc}"
        raise click.ClickException(msg) from exc

    found: dict[int, ArtifactSet] = {}
    for value in vars(module).values():
        generated = getattr(value, ARTIFACTS_ATTRIBUTE, None)
        if (
            isinstance(generated, ArtifactSet)
            and generated.spec.module == module.__name__
        ):
            found.setdefault(id(generated), generated)
    return sorted(found.values(), key=lambda a: a.spec.spans.line)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def main(verbose: bool) -> None:
    """Inspect commands generated by commandify."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command("list")
@click.argument("module_name")
def list_commands(module_name: str) -> None:
    """List the commands defined in MODULE_NAME."""
    generated = collect_artifacts(module_name)
    if not generated:
        click.echo(f"No commands found in {module_name}")
        return
    for item in generated:
        trait = item.trait.__name__ if item.trait else "-"
        click.echo(
            f"{item.spec.name}\t{item.mode.value}"
            f"\t{item.record.__name__}\t{trait}",
        )


@main.command("expand")
@click.argument("module_name")
@click.argument("name", required=False)
def expand(module_name: str, name: str | None) -> None:
    """Print the generated source of every command, or only NAME."""
    generated = collect_artifacts(module_name)
    if name is not None:
        generated = [item for item in generated if item.spec.name == name]
        if not generated:
            msg = f"no command named {name} in {module_name}"
            raise click.ClickException(msg)
    for item in generated:
        click.echo(f"# {item.spec.qualname}")
        click.echo(item.source)


if __name__ == "__main__":
    main()

"""CLI entry point: dep-inspector.

Subcommands:
    dep-inspector inspect DEP VERSION                 # findings for one version
    dep-inspector compare DEP OLD NEW                 # what an upgrade changes
    dep-inspector compare DEP OLD NEW --recursive     # ...and every dependency it moves
"""

from __future__ import annotations

import asyncio
import dataclasses
import sys
from collections.abc import Awaitable, Callable
from typing import Any

import click

from dep_inspector import __version__
from dep_inspector.config import InspectorConfig
from dep_inspector.core.logging import setup_logging
from dep_inspector.exceptions import InspectorError
from dep_inspector.orchestrator import DepInspector
from dep_inspector.report import format_comparison, format_inspection, format_recursive, to_json


def _run(config: InspectorConfig, action: Callable[[DepInspector], Awaitable[Any]]) -> Any:
    """Run ``action`` against a fresh inspector; inspector errors exit with status 1."""
    inspector = DepInspector(config)
    try:
        return asyncio.run(action(inspector))
    except InspectorError as exc:
        click.echo(f"Error: {exc}", err=True)
        for note in getattr(exc, "__notes__", ()):
            click.echo(f"  {note}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(__version__, prog_name="dep-inspector")
@click.option("-v", "--verbose", is_flag=True, help="Log every command being run")
@click.option("--log-file", type=click.Path(dir_okay=False), default=None, help="Write logs to this file instead of stderr")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
@click.option("-a", "--all-packages", is_flag=True, help="Analyze every package of the dependency, not only the used ones")
@click.option("--match-columns", is_flag=True, help="Require lint issues to match on column too")
@click.option("-C", "--module-dir", type=click.Path(exists=True, file_okay=False), default=None, help="Directory of the Go module to inspect")
@click.pass_context
def main(
    ctx: click.Context,
    verbose: bool,
    log_file: str | None,
    as_json: bool,
    all_packages: bool,
    match_columns: bool,
    module_dir: str | None,
) -> None:
    """Dep Inspector: inspect what changes when a Go dependency is upgraded."""
    setup_logging(verbose=verbose, log_file=log_file)

    config = InspectorConfig.from_env()
    overrides: dict[str, Any] = {"verbose": verbose}
    if all_packages:
        overrides["inspect_all_packages"] = True
    if match_columns:
        overrides["match_lint_columns"] = True
    if module_dir is not None:
        overrides["module_dir"] = module_dir

    ctx.obj = {
        "config": dataclasses.replace(config, **overrides),
        "json": as_json,
    }


@main.command("inspect")
@click.argument("dep")
@click.argument("version")
@click.pass_obj
def inspect(obj: dict, dep: str, version: str) -> None:
    """Report the capabilities and lint issues of DEP at VERSION."""
    result = _run(obj["config"], lambda inspector: inspector.inspect_version(dep, version))
    click.echo(to_json(result) if obj["json"] else format_inspection(result))


@main.command("compare")
@click.argument("dep")
@click.argument("old_version")
@click.argument("new_version")
@click.option("-r", "--recursive", is_flag=True, help="Also compare every dependency the upgrade changes")
@click.pass_obj
def compare(obj: dict, dep: str, old_version: str, new_version: str, recursive: bool) -> None:
    """Report findings removed, kept and added between OLD_VERSION and NEW_VERSION of DEP."""
    if recursive:
        result = _run(
            obj["config"],
            lambda inspector: inspector.compare_versions_recursively(dep, old_version, new_version),
        )
        click.echo(to_json(result) if obj["json"] else format_recursive(result))
        for failure in result.failures:
            click.echo(f"Warning: {failure.dep.path} was not analyzed: {failure.error}", err=True)
        return

    result = _run(obj["config"], lambda inspector: inspector.compare_versions(dep, old_version, new_version))
    click.echo(to_json(result) if obj["json"] else format_comparison(result))

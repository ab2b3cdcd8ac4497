"""Package resolution: the consumer's package graph and analyzer scope."""

from __future__ import annotations

import json
from collections.abc import Mapping
from enum import Enum

import structlog
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_pascal

from dep_inspector.command import CommandRunner, iter_json_values
from dep_inspector.exceptions import ResolutionError
from dep_inspector.models import PackageRecord

log = structlog.get_logger("dep_inspector.packages")

# Pseudo-import of cgo; never listed as a package.
_CGO_PSEUDO_PACKAGE = "C"

PackageGraph = Mapping[str, PackageRecord]


class _ListedModule(BaseModel):
    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True)

    path: str = ""
    version: str = ""


class _ListedPackage(BaseModel):
    """One object of ``go list -deps -json`` output."""

    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True)

    dir: str = ""
    import_path: str
    name: str = ""
    module: _ListedModule | None = None
    standard: bool = False
    imports: list[str] = []
    deps: list[str] = []
    incomplete: bool = False

    def to_record(self) -> PackageRecord:
        return PackageRecord(
            import_path=self.import_path,
            dir=self.dir,
            name=self.name,
            module_path=self.module.path if self.module else "",
            module_version=self.module.version if self.module else "",
            standard=self.standard,
            imports=tuple(self.imports),
            deps=tuple(self.deps),
            incomplete=self.incomplete,
        )


class ScopeMode(Enum):
    """Which of a dependency's packages the analyzers are pointed at."""

    ALL = "all"  # every package of the dependency
    USED = "used"  # only packages the consumer imports


class PackageResolver:
    """List the package graph with the build tool."""

    def __init__(self, runner: CommandRunner, go_bin: str = "go") -> None:
        self.runner = runner
        self.go_bin = go_bin

    async def resolve(self, *patterns: str) -> dict[str, PackageRecord]:
        """Return every package reachable from ``patterns`` keyed by import path.

        ``-deps`` makes the listing include every indirect dependency.
        """
        result = await self.runner.run(self.go_bin, "list", "-deps", "-json", *patterns)
        try:
            packages = parse_package_list(result.text)
        except ValueError as exc:
            raise ResolutionError(f"decoding package list: {exc}") from exc
        log.debug("packages.resolved", count=len(packages), patterns=list(patterns))
        return packages


def parse_package_list(text: str) -> dict[str, PackageRecord]:
    """Decode the JSON stream written by ``go list -json``."""
    packages: dict[str, PackageRecord] = {}
    try:
        for value in iter_json_values(text):
            pkg = _ListedPackage.model_validate(value).to_record()
            packages[pkg.import_path] = pkg
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ValueError(str(exc)) from exc
    return packages


def dependency_packages(dep: str, packages: PackageGraph) -> list[PackageRecord]:
    """Packages of the graph that belong to module ``dep``, sorted by import path."""
    return sorted(
        (p for p in packages.values() if not p.standard and p.module_path == dep),
        key=lambda p: p.import_path,
    )


def used_packages(dep: str, consumer_module: str, packages: PackageGraph) -> set[str]:
    """Import paths of ``dep`` that the consumer module imports directly or transitively."""
    used: set[str] = set()
    consumers = [p for p in packages.values() if not p.standard and p.module_path == consumer_module]
    for pkg in consumers:
        for imp in (*pkg.imports, *pkg.deps):
            if imp == _CGO_PSEUDO_PACKAGE:
                continue
            record = packages.get(imp)
            if record is None:
                raise ResolutionError(
                    f"package {imp} imported by {pkg.import_path} is missing from the package graph"
                )
            if not record.standard and record.module_path == dep:
                used.add(imp)
    return used


def minimize_scope(import_paths: set[str], packages: PackageGraph) -> list[str]:
    """Drop every package that another package in the set already depends on.

    Analyzing a package covers its dependencies, so handing both to an
    analyzer would only produce duplicate findings.
    """
    for path in import_paths:
        if path not in packages:
            raise ResolutionError(f"could not find package {path}")
    kept = [
        path
        for path in import_paths
        if not any(path in packages[other].deps for other in import_paths if other != path)
    ]
    return sorted(kept)


def scope_to_dependency(
    dep: str,
    packages: PackageGraph,
    mode: ScopeMode,
    consumer_module: str | None = None,
) -> list[str]:
    """Import paths (or patterns) to hand to the analyzers for ``dep``."""
    if mode is ScopeMode.ALL:
        return [f"{dep}/..."]

    if not consumer_module:
        raise ResolutionError("consumer module path is required to find used packages")
    used = used_packages(dep, consumer_module, packages)
    if not used:
        raise ResolutionError(f"{dep} is not imported by {consumer_module}")
    scope = minimize_scope(used, packages)
    log.debug("packages.scope", dep=dep, used=len(used), scope=scope)
    return scope

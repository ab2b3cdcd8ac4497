"""Transitive change resolution: which other dependencies an upgrade moves."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Protocol

import structlog

from dep_inspector.exceptions import InspectorError, VersionMismatchError, is_fatal
from dep_inspector.manifest import ManifestSnapshot
from dep_inspector.models import (
    ChangedDependency,
    ComparisonResult,
    DependencyFailure,
    InspectionResult,
    RecursiveComparison,
)

log = structlog.get_logger("dep_inspector.changes")


class VersionInspector(Protocol):
    async def inspect_version(self, dep: str, version: str) -> InspectionResult: ...

    async def compare_versions(self, dep: str, old_version: str, new_version: str) -> ComparisonResult: ...


def validate_pinned_version(snapshot: ManifestSnapshot, dep: str, requested: str) -> None:
    """Check that pinning left ``dep`` at exactly ``requested`` in the manifest."""
    actual = snapshot.version_of(dep)
    if actual != requested:
        raise VersionMismatchError(dep, requested, actual)


def find_changed_dependencies(
    old_reqs: Mapping[str, str],
    new_reqs: Mapping[str, str],
    exclude: Iterable[str] = (),
) -> list[ChangedDependency]:
    """Every requirement of ``new_reqs`` that is absent from or differs in ``old_reqs``.

    Dependencies dropped by the new manifest are not reported; there is
    nothing left to inspect for them.
    """
    skip = set(exclude)
    changed = []
    for path, version in sorted(new_reqs.items()):
        if path in skip:
            continue
        old_version = old_reqs.get(path)
        if old_version == version:
            continue
        changed.append(ChangedDependency(path=path, new_version=version, old_version=old_version))
    return changed


class TransitiveChangeResolver:
    """Inspect or compare every dependency moved alongside the requested one."""

    def __init__(self, inspector: VersionInspector) -> None:
        self.inspector = inspector

    async def resolve(self, root: ComparisonResult, changed: list[ChangedDependency]) -> RecursiveComparison:
        """Analyze each of ``changed`` in turn.

        A failure on one dependency is logged and recorded; the remaining
        dependencies are still analyzed. Failures that leave the working
        tree in an unknown state abort the whole run.
        """
        result = RecursiveComparison(root=root, changed=list(changed))
        for change in changed:
            log.info(
                "recursive.dep_start",
                dep=change.path,
                old_version=change.old_version,
                new_version=change.new_version,
            )
            try:
                if change.is_new:
                    inspection = await self.inspector.inspect_version(change.path, change.new_version)
                    result.inspections.append(inspection)
                else:
                    comparison = await self.inspector.compare_versions(
                        change.path, change.old_version, change.new_version
                    )
                    result.comparisons.append(comparison)
            except InspectorError as exc:
                if is_fatal(exc):
                    raise
                log.warning("recursive.dep_failed", dep=change.path, error=str(exc))
                result.failures.append(DependencyFailure(dep=change, error=str(exc)))
        return result

"""Inspection orchestrator — pin, resolve, analyze, diff."""

from __future__ import annotations

import functools
from pathlib import Path

import structlog

from dep_inspector.analyzers import AnalysisTarget, CapabilityAnalyzer, LintAnalyzer
from dep_inspector.changes import (
    TransitiveChangeResolver,
    find_changed_dependencies,
    validate_pinned_version,
)
from dep_inspector.command import CommandRunner
from dep_inspector.config import InspectorConfig
from dep_inspector.diff import caps_equal, diff_findings, lint_equality
from dep_inspector.exceptions import CommandError, InspectorError, PinError, SetupError
from dep_inspector.manifest import ManifestSnapshot, ManifestTransaction, locate_manifest
from dep_inspector.models import ComparisonResult, InspectionResult, RecursiveComparison
from dep_inspector.modpath import version_str
from dep_inspector.packages import PackageResolver, ScopeMode, dependency_packages, scope_to_dependency
from dep_inspector.tasks import gather_joined
from dep_inspector.totals import calculate_totals, combine_totals

log = structlog.get_logger("dep_inspector.orchestrator")

# Every package of the consumer module, plus everything they import.
CONSUMER_PATTERN = "./..."


class DepInspector:
    """
    Inspect and compare versions of one dependency of a Go module.

    Per version, inside one manifest transaction:
        go get dep@version + go mod tidy -> validate pinned version
            (go get dep/...@version, no tidy, for a dep the module does not use)
            -> go list -deps -json -> analyzer scope + package dirs
            -> capslock || golangci-lint + staticcheck
            -> InspectionResult
    The live go.mod / go.sum are restored after every version, so the old
    and new versions of a comparison are inspected one after the other.
    """

    def __init__(
        self,
        config: InspectorConfig,
        runner: CommandRunner | None = None,
        capability_analyzer: CapabilityAnalyzer | None = None,
        lint_analyzer: LintAnalyzer | None = None,
        resolver: PackageResolver | None = None,
    ) -> None:
        self.config = config
        self.runner = runner or CommandRunner(
            config.module_dir,
            env=config.subprocess_env(),
            verbose=config.verbose,
        )
        self.capability_analyzer = capability_analyzer or CapabilityAnalyzer(
            self.runner, config.capslock_bin
        )
        self.lint_analyzer = lint_analyzer or LintAnalyzer(
            self.runner,
            golangci_lint_bin=config.golangci_lint_bin,
            staticcheck_bin=config.staticcheck_bin,
            staticcheck_checks=config.staticcheck_checks,
        )
        self.resolver = resolver or PackageResolver(self.runner, config.go_bin)

        self.module_cache = ""
        self.module_path = ""
        self.manifest: ManifestTransaction | None = None
        self.baseline: ManifestSnapshot | None = None

    async def setup(self) -> None:
        """Locate the module cache and manifest and take the baseline snapshot. Idempotent."""
        if self.manifest is not None:
            return

        try:
            result = await self.runner.run(self.config.go_bin, "env", "GOMODCACHE")
            manifest_path = await locate_manifest(self.runner, self.config.go_bin)
        except CommandError as exc:
            raise SetupError(f"querying the go environment: {exc}") from exc

        module_cache = result.text.strip()
        if not module_cache:
            raise SetupError("GOMODCACHE is empty")

        manifest = ManifestTransaction(manifest_path)
        baseline = manifest.current()
        module_path = baseline.module_path
        if not module_path:
            raise SetupError(f"{manifest_path} does not declare a module path")

        self.module_cache = module_cache
        self.module_path = module_path
        self.manifest = manifest
        self.baseline = baseline
        log.info(
            "inspector.setup",
            module=module_path,
            manifest=str(manifest_path),
            module_cache=module_cache,
        )

    @property
    def work_dir(self) -> str:
        if self.manifest is not None:
            return str(self.manifest.manifest_path.parent)
        return str(Path(self.config.module_dir))

    # ── Single version ──────────────────────────────────────────────────

    async def _pin(self, dep: str, version: str, unused: bool = False) -> None:
        vs = version_str(dep, version)
        go = self.config.go_bin
        # go mod tidy drops requirements no package imports, so an unused
        # dep is fetched with every one of its packages and left untidied
        pattern = version_str(f"{dep}/...", version) if unused else vs
        try:
            await self.runner.run(go, "get", pattern)
        except CommandError as exc:
            raise PinError(f"downloading {vs}: {exc}") from exc
        if unused:
            return
        try:
            await self.runner.run(go, "mod", "tidy")
        except CommandError as exc:
            raise PinError(f"tidying modules for {vs}: {exc}") from exc

    def _is_unused(self, dep: str) -> bool:
        return self.baseline is not None and self.baseline.version_of(dep) is None

    def _scope_mode(self, dep: str, unused: bool) -> ScopeMode:
        if unused:
            log.info("inspect.dep_unused", dep=dep)
            return ScopeMode.ALL
        if self.config.inspect_all_packages:
            return ScopeMode.ALL
        return ScopeMode.USED

    async def _inspect(self, dep: str, version: str) -> tuple[InspectionResult, ManifestSnapshot]:
        """Inspect one version; also returns the manifest as pinned for it."""
        await self.setup()
        assert self.manifest is not None
        vs = version_str(dep, version)
        unused = self._is_unused(dep)
        mode = self._scope_mode(dep, unused)
        log.info("inspect.start", dep=vs, mode=mode.value)

        try:
            async with self.manifest.transaction():
                pinned = await self.manifest.mutate(functools.partial(self._pin, dep, version, unused))
                validate_pinned_version(pinned, dep, version)

                patterns = [CONSUMER_PATTERN]
                if mode is ScopeMode.ALL:
                    patterns.append(f"{dep}/...")
                packages = await self.resolver.resolve(*patterns)
                scope = scope_to_dependency(dep, packages, mode, self.module_path)
                dirs = sorted({p.dir for p in dependency_packages(dep, packages) if p.dir})

                target = AnalysisTarget(
                    dep=dep,
                    version=version,
                    scope=scope,
                    dirs=dirs,
                    module_cache=self.module_cache,
                    work_dir=self.work_dir,
                )
                report, issues = await gather_joined(
                    self.capability_analyzer.run(target),
                    self.lint_analyzer.run(target),
                )
        except InspectorError as exc:
            exc.add_note(f"while inspecting {vs}")
            raise

        result = InspectionResult(
            dep=dep,
            version=version,
            capabilities=tuple(report.capabilities),
            issues=tuple(issues),
            cap_modules=tuple(report.modules),
            totals=calculate_totals(report.capabilities, issues),
        )
        log.info(
            "inspect.done",
            dep=vs,
            capabilities=result.totals.total_caps,
            issues=result.totals.total_issues,
        )
        return result, pinned

    async def inspect_version(self, dep: str, version: str) -> InspectionResult:
        """Capabilities and lint issues of ``dep`` at ``version``."""
        result, _ = await self._inspect(dep, version)
        return result

    # ── Two versions ────────────────────────────────────────────────────

    async def _compare(
        self, dep: str, old_version: str, new_version: str
    ) -> tuple[ComparisonResult, ManifestSnapshot, ManifestSnapshot]:
        # both versions pin the same live manifest: never run these concurrently
        old_result, old_pinned = await self._inspect(dep, old_version)
        new_result, new_pinned = await self._inspect(dep, new_version)
        comparison = build_comparison(
            dep, old_result, new_result, match_column=self.config.match_lint_columns
        )
        return comparison, old_pinned, new_pinned

    async def compare_versions(self, dep: str, old_version: str, new_version: str) -> ComparisonResult:
        """Findings removed, kept and added by moving ``dep`` from ``old_version`` to ``new_version``."""
        comparison, _, _ = await self._compare(dep, old_version, new_version)
        return comparison

    async def compare_versions_recursively(
        self, dep: str, old_version: str, new_version: str
    ) -> RecursiveComparison:
        """Compare ``dep`` and every other dependency whose version the upgrade changes.

        Dependencies the new version introduces are inspected on their
        own; dependencies it bumps are compared. A failure on one of them
        is recorded in :attr:`RecursiveComparison.failures`.
        """
        root, old_pinned, new_pinned = await self._compare(dep, old_version, new_version)
        changed = find_changed_dependencies(
            old_pinned.requirements(), new_pinned.requirements(), exclude=[dep]
        )
        log.info("recursive.changed", dep=dep, changed=len(changed))
        result = await TransitiveChangeResolver(self).resolve(root, changed)
        if result.failures:
            log.warning("recursive.incomplete", dep=dep, failed=len(result.failures))
        return result


def build_comparison(
    dep: str,
    old: InspectionResult,
    new: InspectionResult,
    match_column: bool = False,
) -> ComparisonResult:
    """Diff two inspections of ``dep`` and total every partition."""
    caps = diff_findings(old.capabilities, new.capabilities, caps_equal)
    issues = diff_findings(old.issues, new.issues, lint_equality(dep, match_column=match_column))

    removed = calculate_totals(caps.removed, issues.removed)
    stale = calculate_totals(caps.stale, issues.stale)
    added = calculate_totals(caps.added, issues.added)
    return ComparisonResult(
        dep=dep,
        old_version=old.version,
        new_version=new.version,
        capabilities=caps,
        issues=issues,
        old_cap_modules=old.cap_modules,
        new_cap_modules=new.cap_modules,
        removed_totals=removed,
        stale_totals=stale,
        added_totals=added,
        totals=combine_totals(removed, stale, added),
    )

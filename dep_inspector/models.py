"""Canonical records shared by the resolver, analyzers, diff engine and reports.

Analyzer-specific wire formats are decoded into these types at the adapter
boundary; nothing downstream sees analyzer JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class CapabilityKind(Enum):
    """Capability taxonomy reported by the capability analyzer."""

    UNSPECIFIED = "CAPABILITY_UNSPECIFIED"
    SAFE = "CAPABILITY_SAFE"
    FILES = "CAPABILITY_FILES"
    NETWORK = "CAPABILITY_NETWORK"
    RUNTIME = "CAPABILITY_RUNTIME"
    READ_SYSTEM_STATE = "CAPABILITY_READ_SYSTEM_STATE"
    MODIFY_SYSTEM_STATE = "CAPABILITY_MODIFY_SYSTEM_STATE"
    OPERATING_SYSTEM = "CAPABILITY_OPERATING_SYSTEM"
    SYSTEM_CALLS = "CAPABILITY_SYSTEM_CALLS"
    ARBITRARY_EXECUTION = "CAPABILITY_ARBITRARY_EXECUTION"
    CGO = "CAPABILITY_CGO"
    UNANALYZED = "CAPABILITY_UNANALYZED"
    UNSAFE_POINTER = "CAPABILITY_UNSAFE_POINTER"
    REFLECT = "CAPABILITY_REFLECT"
    EXEC = "CAPABILITY_EXEC"

    @property
    def display_name(self) -> str:
        """``CAPABILITY_UNSAFE_POINTER`` -> ``Unsafe Pointer``."""
        return self.value.removeprefix("CAPABILITY_").replace("_", " ").title()


class CapabilityType(Enum):
    """Whether the capability is exercised by the package itself or through a dependency."""

    UNSPECIFIED = "CAPABILITY_TYPE_UNSPECIFIED"
    DIRECT = "CAPABILITY_TYPE_DIRECT"
    TRANSITIVE = "CAPABILITY_TYPE_TRANSITIVE"


# ── Packages ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PackageRecord:
    """One node of the consumer module's package graph."""

    import_path: str
    dir: str = ""
    name: str = ""
    module_path: str = ""
    module_version: str = ""
    standard: bool = False
    imports: tuple[str, ...] = ()
    deps: tuple[str, ...] = ()  # every transitive import path
    incomplete: bool = False


# ── Findings ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CallSite:
    filename: str
    line: int | None = None
    column: int | None = None

    def __str__(self) -> str:
        parts = [self.filename]
        if self.line is not None:
            parts.append(str(self.line))
            if self.column is not None:
                parts.append(str(self.column))
        return ":".join(parts)


@dataclass(frozen=True)
class FunctionCall:
    """One hop of a call path."""

    name: str
    site: CallSite | None = None


@dataclass(frozen=True)
class Capability:
    """A call path from the dependency's code to a capability."""

    package_name: str
    package_dir: str
    capability: CapabilityKind
    capability_type: CapabilityType
    path: tuple[FunctionCall, ...]

    def __post_init__(self) -> None:
        if not self.path:
            raise ValueError("capability call path must not be empty")

    @property
    def direct(self) -> bool:
        return self.capability_type is CapabilityType.DIRECT

    @property
    def category(self) -> str:
        return self.capability.display_name


@dataclass(frozen=True)
class CapModule:
    """A module the capability analyzer loaded, with its resolved version."""

    path: str
    version: str = ""


@dataclass(frozen=True)
class LintPosition:
    filename: str
    line: int
    column: int = 0
    offset: int = 0


@dataclass(frozen=True)
class LintIssue:
    """A finding from one of the lint analyzers."""

    from_linter: str
    text: str
    pos: LintPosition
    source_lines: tuple[str, ...] = ()

    @property
    def category(self) -> str:
        if self.from_linter.startswith("staticcheck"):
            return "staticcheck"
        return self.from_linter


# ── Results ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FindingDiff(Generic[T]):
    """Three-way partition of two finding sets.

    ``stale`` holds the new-version record of every finding present in both.
    """

    removed: tuple[T, ...] = ()
    stale: tuple[T, ...] = ()
    added: tuple[T, ...] = ()


@dataclass
class FindingTotals:
    """Finding counts by category, optionally with deltas against an older version."""

    total_caps: int = 0
    caps: dict[str, int] = field(default_factory=dict)
    total_issues: int = 0
    issues: dict[str, int] = field(default_factory=dict)
    has_deltas: bool = False
    cap_deltas: dict[str, int] = field(default_factory=dict)
    issue_deltas: dict[str, int] = field(default_factory=dict)


@dataclass
class InspectionResult:
    """Findings for a single dependency version."""

    dep: str
    version: str
    capabilities: tuple[Capability, ...]
    issues: tuple[LintIssue, ...]
    cap_modules: tuple[CapModule, ...] = ()
    totals: FindingTotals = field(default_factory=FindingTotals)


@dataclass
class ComparisonResult:
    """Differences in findings between two versions of a dependency."""

    dep: str
    old_version: str
    new_version: str
    capabilities: FindingDiff[Capability]
    issues: FindingDiff[LintIssue]
    old_cap_modules: tuple[CapModule, ...] = ()
    new_cap_modules: tuple[CapModule, ...] = ()
    removed_totals: FindingTotals = field(default_factory=FindingTotals)
    stale_totals: FindingTotals = field(default_factory=FindingTotals)
    added_totals: FindingTotals = field(default_factory=FindingTotals)
    totals: FindingTotals = field(default_factory=FindingTotals)


@dataclass(frozen=True)
class ChangedDependency:
    """A dependency whose required version differs between two manifests."""

    path: str
    new_version: str
    old_version: str | None = None  # None: newly introduced

    @property
    def is_new(self) -> bool:
        return self.old_version is None


@dataclass(frozen=True)
class DependencyFailure:
    dep: ChangedDependency
    error: str


@dataclass
class RecursiveComparison:
    """A comparison of the requested dependency plus every dependency it moved."""

    root: ComparisonResult
    changed: list[ChangedDependency] = field(default_factory=list)
    comparisons: list[ComparisonResult] = field(default_factory=list)
    inspections: list[InspectionResult] = field(default_factory=list)
    failures: list[DependencyFailure] = field(default_factory=list)

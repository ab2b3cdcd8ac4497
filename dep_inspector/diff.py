"""Semantic diff of finding sets between two versions of a dependency.

Findings from different analyzer runs are never the same objects, so
every comparison goes through a content equality predicate.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from typing import TypeVar

from dep_inspector.models import Capability, FindingDiff, LintIssue
from dep_inspector.modpath import dep_relative_path

T = TypeVar("T")

EqualityPredicate = Callable[[T, T], bool]


def diff_findings(old: Sequence[T], new: Sequence[T], equals: EqualityPredicate) -> FindingDiff[T]:
    """Partition ``old`` and ``new`` into removed, stale and added findings.

    Every old finding is looked up in ``new``: unmatched ones are removed,
    matched ones are stale and represented by the *new* record. A second,
    independent pass finds the new findings with no match in ``old``. Each
    list keeps the order of the sequence it came from.
    """
    removed: list[T] = []
    stale: list[T] = []
    for old_finding in old:
        for new_finding in new:
            if equals(old_finding, new_finding):
                stale.append(new_finding)
                break
        else:
            removed.append(old_finding)

    added = [n for n in new if not any(equals(o, n) for o in old)]
    return FindingDiff(removed=tuple(removed), stale=tuple(stale), added=tuple(added))


# ── Capabilities ────────────────────────────────────────────────────────


def caps_equal(a: Capability, b: Capability) -> bool:
    """Same package, capability and type, and an identical call path hop for hop."""
    if a.package_dir != b.package_dir:
        return False
    if a.package_name != b.package_name:
        return False
    if a.capability != b.capability:
        return False
    if a.capability_type != b.capability_type:
        return False
    if len(a.path) != len(b.path):
        return False

    for call_a, call_b in zip(a.path, b.path):
        if call_a.name != call_b.name:
            return False
        if call_a.site != call_b.site:
            return False
    return True


def capability_sort_key(cap: Capability) -> tuple:
    hops = tuple(
        (
            call.name,
            call.site.filename if call.site else "",
            call.site.line if call.site and call.site.line is not None else -1,
            call.site.column if call.site and call.site.column is not None else -1,
        )
        for call in cap.path
    )
    return (
        len(cap.path),
        cap.capability.value,
        cap.package_dir,
        cap.capability_type.value,
        hops,
    )


def sort_capabilities(caps: Iterable[Capability]) -> list[Capability]:
    """Shortest call paths first, then by capability, package and call sites."""
    return sorted(caps, key=capability_sort_key)


# ── Lint issues ─────────────────────────────────────────────────────────


def issues_equal(dep: str, a: LintIssue, b: LintIssue, match_column: bool = False) -> bool:
    """Whether two lint issues report the same problem in the same code.

    File names are compared below the dependency's versioned directory and
    source lines are compared with surrounding whitespace removed, so a
    version bump that only moves the cache path or re-indents code still
    matches. The column is ignored unless ``match_column`` is set.
    """
    if a.from_linter != b.from_linter or a.text != b.text:
        return False
    if a.pos.line != b.pos.line:
        return False
    if match_column and a.pos.column != b.pos.column:
        return False
    if len(a.source_lines) != len(b.source_lines):
        return False

    if dep_relative_path(dep, a.pos.filename) != dep_relative_path(dep, b.pos.filename):
        return False

    for line_a, line_b in zip(a.source_lines, b.source_lines):
        if line_a.strip() != line_b.strip():
            return False
    return True


def lint_equality(dep: str, match_column: bool = False) -> EqualityPredicate[LintIssue]:
    """Bind :func:`issues_equal` to one dependency."""

    def equals(a: LintIssue, b: LintIssue) -> bool:
        return issues_equal(dep, a, b, match_column=match_column)

    return equals


def lint_sort_key(issue: LintIssue) -> tuple:
    return (issue.from_linter, issue.pos.filename, issue.pos.line, issue.pos.column)


def sort_issues(issues: Iterable[LintIssue]) -> list[LintIssue]:
    """Order by linter, then file, line and column."""
    return sorted(issues, key=lint_sort_key)

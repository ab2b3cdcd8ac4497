"""Finding counts by category, and deltas between versions."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping

from dep_inspector.models import Capability, FindingTotals, LintIssue


def count_by_category(findings: Iterable[Capability] | Iterable[LintIssue]) -> dict[str, int]:
    counts = Counter(f.category for f in findings)
    return dict(sorted(counts.items()))


def calculate_totals(caps: Iterable[Capability], issues: Iterable[LintIssue]) -> FindingTotals:
    """Count capabilities by kind and lint issues by linter."""
    caps = list(caps)
    issues = list(issues)
    return FindingTotals(
        total_caps=len(caps),
        caps=count_by_category(caps),
        total_issues=len(issues),
        issues=count_by_category(issues),
    )


def current_totals(
    removed: Mapping[str, int],
    stale: Mapping[str, int],
    added: Mapping[str, int],
) -> tuple[int, dict[str, int], dict[str, int]]:
    """Counts after an upgrade and the change per category.

    For every category in any input: ``current = stale + added`` and
    ``delta = added - removed``, missing entries counting as zero.

    Returns:
        (grand_total, current, delta)
    """
    names = sorted(set(removed) | set(stale) | set(added))
    current: dict[str, int] = {}
    delta: dict[str, int] = {}
    grand_total = 0
    for name in names:
        total = stale.get(name, 0) + added.get(name, 0)
        current[name] = total
        delta[name] = added.get(name, 0) - removed.get(name, 0)
        grand_total += total
    return grand_total, current, delta


def combine_totals(removed: FindingTotals, stale: FindingTotals, added: FindingTotals) -> FindingTotals:
    """Merge the totals of the three diff partitions into one total with deltas."""
    total_caps, caps, cap_deltas = current_totals(removed.caps, stale.caps, added.caps)
    total_issues, issues, issue_deltas = current_totals(removed.issues, stale.issues, added.issues)
    return FindingTotals(
        total_caps=total_caps,
        caps=caps,
        total_issues=total_issues,
        issues=issues,
        has_deltas=True,
        cap_deltas=cap_deltas,
        issue_deltas=issue_deltas,
    )

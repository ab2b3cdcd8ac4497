"""Plain-text and JSON rendering of inspection and comparison results."""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Iterable
from enum import Enum
from typing import Any

from dep_inspector.models import (
    Capability,
    ComparisonResult,
    FindingTotals,
    InspectionResult,
    LintIssue,
    RecursiveComparison,
)
from dep_inspector.modpath import version_str


def format_capability(cap: Capability) -> str:
    """Capability kind and type, then the call path one hop per line."""
    lines = [f"{cap.category} ({cap.capability_type.value.removeprefix('CAPABILITY_TYPE_').lower()})"]
    for i, call in enumerate(cap.path):
        if i == 0:
            lines.append(call.name)
        elif call.site is not None:
            lines.append(f"  {call.name} {call.site}")
        else:
            lines.append(f"  {call.name}")
    return "\n".join(lines)


def format_issue(issue: LintIssue) -> str:
    header = f"({issue.from_linter}) {issue.text}: {issue.pos.filename}:{issue.pos.line}:{issue.pos.column}:"
    return "\n".join([header, *issue.source_lines])


def _section(title: str, blocks: Iterable[str]) -> list[str]:
    blocks = list(blocks)
    if not blocks:
        return []
    out = [f"{title}:"]
    for block in blocks:
        out.append(block)
        out.append("")
    return out


def _count_lines(counts: dict[str, int], deltas: dict[str, int] | None) -> list[str]:
    out = []
    for name, count in counts.items():
        if deltas is not None:
            out.append(f"  {name}: {count} ({deltas.get(name, 0):+d})")
        else:
            out.append(f"  {name}: {count}")
    return out


def format_totals(totals: FindingTotals) -> str:
    cap_deltas = totals.cap_deltas if totals.has_deltas else None
    issue_deltas = totals.issue_deltas if totals.has_deltas else None
    lines = ["total:", f"capabilities: {totals.total_caps}"]
    lines += _count_lines(totals.caps, cap_deltas)
    lines.append(f"issues: {totals.total_issues}")
    lines += _count_lines(totals.issues, issue_deltas)
    return "\n".join(lines)


def format_inspection(result: InspectionResult) -> str:
    lines = [version_str(result.dep, result.version), ""]
    lines += _section("capabilities", (format_capability(c) for c in result.capabilities))
    lines += _section("issues", (format_issue(i) for i in result.issues))
    lines.append(format_totals(result.totals))
    return "\n".join(lines)


def format_comparison(result: ComparisonResult) -> str:
    caps = result.capabilities
    issues = result.issues
    lines = [f"{result.dep} {result.old_version} -> {result.new_version}", ""]
    lines += _section("removed capabilities", (format_capability(c) for c in caps.removed))
    lines += _section("stale capabilities", (format_capability(c) for c in caps.stale))
    lines += _section("added capabilities", (format_capability(c) for c in caps.added))
    lines += _section("fixed issues", (format_issue(i) for i in issues.removed))
    lines += _section("stale issues", (format_issue(i) for i in issues.stale))
    lines += _section("new issues", (format_issue(i) for i in issues.added))
    lines.append(format_totals(result.totals))
    return "\n".join(lines)


def format_recursive(result: RecursiveComparison) -> str:
    parts = [format_comparison(result.root)]
    for comparison in result.comparisons:
        parts.append(format_comparison(comparison))
    for inspection in result.inspections:
        parts.append(format_inspection(inspection))
    if result.failures:
        lines = ["failed dependencies:"]
        for failure in result.failures:
            lines.append(f"  {version_str(failure.dep.path, failure.dep.new_version)}: {failure.error}")
        parts.append("\n".join(lines))
    return "\n\n".join(parts)


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    raise TypeError(f"{type(obj).__name__} is not JSON serializable")


def to_json(result: InspectionResult | ComparisonResult | RecursiveComparison) -> str:
    return json.dumps(dataclasses.asdict(result), default=_json_default, indent=2)

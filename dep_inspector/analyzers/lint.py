"""Lint adapter: golangci-lint and staticcheck over a dependency's package directories."""

from __future__ import annotations

import asyncio
import json
import os
from itertools import islice
from typing import Any

import structlog
from pydantic import ValidationError

from dep_inspector.analyzers.base import (
    AnalysisTarget,
    Analyzer,
    WireModel,
    private_tempdir,
    read_embedded_configs,
)
from dep_inspector.command import CommandRunner, iter_json_values
from dep_inspector.config import DEFAULT_STATICCHECK_CHECKS
from dep_inspector.diff import sort_issues
from dep_inspector.exceptions import AnalyzerError, CommandError
from dep_inspector.models import LintIssue, LintPosition
from dep_inspector.modpath import relative_to_root
from dep_inspector.tasks import gather_joined

log = structlog.get_logger("dep_inspector.analyzers.lint")

GOLANGCI_CONFIG_NAME = ".golangci.yml"

# Both linters exit 1 when they report issues; only other codes are failures.
ISSUES_FOUND_EXIT_CODES = (0, 1)


# ── golangci-lint wire format ───────────────────────────────────────────


class _GolangciPosition(WireModel):
    filename: str = ""
    offset: int = 0
    line: int = 0
    column: int = 0


class _GolangciIssue(WireModel):
    from_linter: str
    text: str = ""
    source_lines: list[str] | None = None
    pos: _GolangciPosition


class _GolangciOutput(WireModel):
    issues: list[_GolangciIssue] | None = None


# ── staticcheck wire format (one object per line) ───────────────────────


class _StaticcheckPosition(WireModel):
    file: str = ""
    line: int = 0
    column: int = 0


class _StaticcheckIssue(WireModel):
    code: str
    severity: str = ""
    location: _StaticcheckPosition
    end: _StaticcheckPosition | None = None
    message: str = ""


def read_source_lines(path: str, start: int, end: int = 0) -> list[str]:
    """Return lines ``start``..``end`` (1-based, inclusive) of ``path``.

    An ``end`` before ``start`` (staticcheck reports 0 when it has no end
    position) selects the start line only.
    """
    if start < 1:
        return []
    end = max(start, end)
    with open(path, encoding="utf-8", errors="replace") as f:
        return [line.rstrip("\r\n") for line in islice(f, start - 1, end)]


def trim_linter_message(msg: str) -> str:
    """Strip whitespace and a single trailing period."""
    msg = msg.strip()
    if msg.endswith("."):
        msg = msg[:-1]
    return msg


def normalize_source_lines(lines: list[str] | tuple[str, ...]) -> tuple[str, ...]:
    """Give every source line the same indentation: one tab."""
    return tuple("\t" + line.strip() for line in lines)


def decode_golangci_output(data: str | bytes, module_cache: str = "", work_dir: str | None = None) -> list[LintIssue]:
    try:
        raw: Any = json.loads(data)
        output = _GolangciOutput.model_validate(raw)
    except (json.JSONDecodeError, ValidationError) as exc:
        raise AnalyzerError("golangci-lint", f"decoding results: {exc}") from exc

    return [
        LintIssue(
            from_linter=issue.from_linter,
            text=issue.text,
            pos=LintPosition(
                filename=relative_to_root(issue.pos.filename, module_cache, work_dir),
                line=issue.pos.line,
                column=issue.pos.column,
                offset=issue.pos.offset,
            ),
            source_lines=normalize_source_lines(issue.source_lines or []),
        )
        for issue in output.issues or []
    ]


def decode_staticcheck_output(data: str | bytes, module_cache: str = "", work_dir: str | None = None) -> list[LintIssue]:
    """Decode staticcheck's line-delimited JSON, reading the flagged source lines from disk."""
    text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
    try:
        records = [_StaticcheckIssue.model_validate(v) for v in iter_json_values(text)]
    except (json.JSONDecodeError, ValidationError) as exc:
        raise AnalyzerError("staticcheck", f"decoding results: {exc}") from exc

    issues = []
    for rec in records:
        src_path = rec.location.file
        if work_dir and src_path and not os.path.isabs(src_path):
            src_path = os.path.join(work_dir, src_path)
        end_line = rec.end.line if rec.end is not None else 0
        try:
            source_lines = read_source_lines(src_path, rec.location.line, end_line) if src_path else []
        except OSError as exc:
            raise AnalyzerError("staticcheck", f"reading source file {src_path}: {exc}") from exc

        issues.append(
            LintIssue(
                from_linter=f"staticcheck {rec.code}",
                text=trim_linter_message(rec.message),
                pos=LintPosition(
                    filename=relative_to_root(rec.location.file, module_cache, work_dir),
                    line=rec.location.line,
                    column=rec.location.column,
                    offset=rec.end.column if rec.end is not None else 0,
                ),
                source_lines=normalize_source_lines(source_lines),
            )
        )
    return issues


class LintAnalyzer(Analyzer[list[LintIssue]]):
    """
    Run both linters over the dependency's package directories.

    golangci-lint is driven by the embedded configs/golangci-lint config;
    staticcheck runs a fixed set of correctness checks. The two run
    concurrently and their issues are merged and sorted.
    """

    def __init__(
        self,
        runner: CommandRunner,
        golangci_lint_bin: str = "golangci-lint",
        staticcheck_bin: str = "staticcheck",
        staticcheck_checks: str = DEFAULT_STATICCHECK_CHECKS,
    ) -> None:
        super().__init__(runner)
        self.golangci_lint_bin = golangci_lint_bin
        self.staticcheck_bin = staticcheck_bin
        self.staticcheck_checks = staticcheck_checks

    @property
    def name(self) -> str:
        return "lint"

    async def run(self, target: AnalysisTarget, **kwargs: Any) -> list[LintIssue]:
        if not target.dirs:
            log.warning("lint.no_package_dirs", dep=target.version_str)
            return []

        golangci, staticcheck = await gather_joined(
            self._golangci_lint(target),
            self._staticcheck(target),
        )
        issues = sort_issues(golangci + staticcheck)
        log.info("lint.done", dep=target.version_str, issues=len(issues))
        return issues

    async def _golangci_lint(self, target: AnalysisTarget) -> list[LintIssue]:
        configs = dict(read_embedded_configs("golangci-lint"))
        with private_tempdir() as tmpdir:
            cfg_path = tmpdir / GOLANGCI_CONFIG_NAME
            try:
                cfg_path.write_bytes(configs["golangci.yml"])
            except OSError as exc:
                raise AnalyzerError("golangci-lint", f"writing config file: {exc}") from exc

            log.info("lint.golangci_start", dep=target.version_str, dirs=len(target.dirs))
            try:
                result = await self.runner.run(
                    self.golangci_lint_bin,
                    "run",
                    "-c",
                    str(cfg_path),
                    "--out-format=json",
                    *target.dirs,
                    ok_codes=ISSUES_FOUND_EXIT_CODES,
                    cwd=target.work_dir,
                )
            except CommandError as exc:
                raise AnalyzerError("golangci-lint", str(exc)) from exc

        return decode_golangci_output(result.stdout, target.module_cache, target.work_dir)

    async def _staticcheck(self, target: AnalysisTarget) -> list[LintIssue]:
        log.info("lint.staticcheck_start", dep=target.version_str, dirs=len(target.dirs))
        try:
            result = await self.runner.run(
                self.staticcheck_bin,
                f"-checks={self.staticcheck_checks}",
                "-f=json",
                "-tests=false",
                *target.dirs,
                ok_codes=ISSUES_FOUND_EXIT_CODES,
                cwd=target.work_dir,
            )
        except CommandError as exc:
            raise AnalyzerError("staticcheck", str(exc)) from exc

        # reads every flagged source file
        return await asyncio.to_thread(
            decode_staticcheck_output, result.stdout, target.module_cache, target.work_dir
        )

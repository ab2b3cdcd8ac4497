"""Tests for configuration, error joining and concurrent fan-in."""

from __future__ import annotations

import asyncio

import pytest

from dep_inspector.config import DEFAULT_STATICCHECK_CHECKS, InspectorConfig
from dep_inspector.exceptions import (
    AnalyzerError,
    JoinedError,
    ManifestRestoreError,
    ResolutionError,
    SetupError,
    VersionMismatchError,
    is_fatal,
    join_errors,
)
from dep_inspector.tasks import gather_joined


# ── InspectorConfig ──────────────────────────────────────────────────────


class TestInspectorConfig:
    def test_defaults(self, monkeypatch):
        for key in (
            "DEP_INSPECTOR_MODULE_DIR",
            "DEP_INSPECTOR_ALL_PACKAGES",
            "DEP_INSPECTOR_MATCH_COLUMNS",
            "DEP_INSPECTOR_FORWARD_ENV",
            "DEP_INSPECTOR_GO",
            "DEP_INSPECTOR_STATICCHECK_CHECKS",
        ):
            monkeypatch.delenv(key, raising=False)
        cfg = InspectorConfig.from_env()
        assert cfg.module_dir == "."
        assert not cfg.inspect_all_packages
        assert not cfg.match_lint_columns
        assert cfg.forward_env == ("HOME", "PATH")
        assert cfg.go_bin == "go"
        assert cfg.staticcheck_checks == DEFAULT_STATICCHECK_CHECKS

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("DEP_INSPECTOR_MODULE_DIR", "/src/app")
        monkeypatch.setenv("DEP_INSPECTOR_ALL_PACKAGES", "Yes")
        monkeypatch.setenv("DEP_INSPECTOR_MATCH_COLUMNS", "0")
        monkeypatch.setenv("DEP_INSPECTOR_FORWARD_ENV", "GOPROXY, PATH,GOFLAGS")
        monkeypatch.setenv("DEP_INSPECTOR_CAPSLOCK", "/opt/capslock")
        cfg = InspectorConfig.from_env()
        assert cfg.module_dir == "/src/app"
        assert cfg.inspect_all_packages
        assert not cfg.match_lint_columns
        assert cfg.forward_env == ("HOME", "PATH", "GOPROXY", "GOFLAGS")
        assert cfg.capslock_bin == "/opt/capslock"

    def test_subprocess_env_allow_list(self, monkeypatch):
        monkeypatch.setenv("HOME", "/home/u")
        monkeypatch.setenv("PATH", "/usr/bin")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "nope")
        monkeypatch.delenv("GOPROXY", raising=False)
        cfg = InspectorConfig(forward_env=("HOME", "PATH", "GOPROXY"))
        assert cfg.subprocess_env() == {"HOME": "/home/u", "PATH": "/usr/bin"}


# ── Error joining ────────────────────────────────────────────────────────


class TestJoinErrors:
    def test_none(self):
        assert join_errors() is None
        assert join_errors(None, None) is None

    def test_single(self):
        err = ResolutionError("x")
        assert join_errors(None, err) is err

    def test_flattens(self):
        a, b, c = AnalyzerError("capslock", "a"), AnalyzerError("staticcheck", "b"), SetupError("c")
        joined = join_errors(JoinedError([a, b]), c)
        assert isinstance(joined, JoinedError)
        assert joined.errors == [a, b, c]
        assert "capslock: a" in str(joined)
        assert "staticcheck: b" in str(joined)


class TestIsFatal:
    @pytest.mark.parametrize(
        "exc, fatal",
        [
            (SetupError("no go.mod"), True),
            (ManifestRestoreError("go.mod", "eio"), True),
            (ResolutionError("unused"), False),
            (AnalyzerError("capslock", "x"), False),
            (VersionMismatchError("d", "v1", "v2"), False),
            (JoinedError([AnalyzerError("capslock", "x"), ManifestRestoreError("go.sum", "eio")]), True),
            (JoinedError([AnalyzerError("capslock", "x"), ResolutionError("y")]), False),
        ],
    )
    def test_is_fatal(self, exc, fatal):
        assert is_fatal(exc) is fatal


# ── Fan-in ───────────────────────────────────────────────────────────────


class TestGatherJoined:
    @pytest.mark.asyncio
    async def test_results_in_order(self):
        async def value(v, delay):
            await asyncio.sleep(delay)
            return v

        assert await gather_joined(value(1, 0.02), value(2, 0)) == [1, 2]

    @pytest.mark.asyncio
    async def test_waits_for_sibling_after_failure(self):
        finished = []

        async def fail():
            raise AnalyzerError("capslock", "boom")

        async def slow():
            await asyncio.sleep(0.02)
            finished.append("slow")
            return "ok"

        with pytest.raises(AnalyzerError, match="boom"):
            await gather_joined(fail(), slow())
        assert finished == ["slow"]

    @pytest.mark.asyncio
    async def test_joins_all_failures(self):
        async def fail(name):
            raise AnalyzerError(name, "boom")

        with pytest.raises(JoinedError) as exc_info:
            await gather_joined(fail("capslock"), fail("lint"))
        assert [e.analyzer for e in exc_info.value.errors] == ["capslock", "lint"]

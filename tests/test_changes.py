"""Tests for transitive change detection and recursion."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from dep_inspector.changes import (
    TransitiveChangeResolver,
    find_changed_dependencies,
    validate_pinned_version,
)
from dep_inspector.exceptions import (
    AnalyzerError,
    ManifestRestoreError,
    ResolutionError,
    VersionMismatchError,
)
from dep_inspector.manifest import ManifestSnapshot
from dep_inspector.models import ChangedDependency


def _snapshot(tmp_path, version: str) -> ManifestSnapshot:
    (tmp_path / "go.mod").write_text(f"module m\n\nrequire github.com/foo/bar {version}\n")
    (tmp_path / "go.sum").write_text("")
    return ManifestSnapshot.read(tmp_path / "go.mod")


class TestValidatePinnedVersion:
    def test_match(self, tmp_path):
        validate_pinned_version(_snapshot(tmp_path, "v1.2.3"), "github.com/foo/bar", "v1.2.3")

    def test_mismatch(self, tmp_path):
        with pytest.raises(VersionMismatchError) as exc_info:
            validate_pinned_version(_snapshot(tmp_path, "v1.2.4"), "github.com/foo/bar", "v1.2.3")
        assert exc_info.value.requested == "v1.2.3"
        assert exc_info.value.actual == "v1.2.4"

    def test_missing_dependency(self, tmp_path):
        with pytest.raises(VersionMismatchError, match="no version"):
            validate_pinned_version(_snapshot(tmp_path, "v1.2.3"), "github.com/other/dep", "v0.1.0")


class TestFindChangedDependencies:
    def test_bumped_and_new(self):
        old = {"a": "v1.0.0", "b": "v1.0.0", "root": "v1.0.0", "gone": "v0.1.0"}
        new = {"a": "v1.0.0", "b": "v1.1.0", "root": "v2.0.0", "c": "v0.3.0"}
        changed = find_changed_dependencies(old, new, exclude=["root"])
        assert changed == [
            ChangedDependency(path="b", new_version="v1.1.0", old_version="v1.0.0"),
            ChangedDependency(path="c", new_version="v0.3.0"),
        ]
        assert not changed[0].is_new
        assert changed[1].is_new

    def test_no_changes(self):
        assert find_changed_dependencies({"a": "v1"}, {"a": "v1"}) == []


class TestTransitiveChangeResolver:
    @pytest.fixture
    def inspector(self):
        insp = MagicMock()
        insp.inspect_version = AsyncMock(side_effect=lambda dep, ver: f"inspection:{dep}@{ver}")
        insp.compare_versions = AsyncMock(side_effect=lambda dep, old, new: f"comparison:{dep}:{old}->{new}")
        return insp

    @pytest.mark.asyncio
    async def test_inspects_new_and_compares_bumped(self, inspector):
        changed = [
            ChangedDependency(path="b", new_version="v1.1.0", old_version="v1.0.0"),
            ChangedDependency(path="c", new_version="v0.3.0"),
        ]
        result = await TransitiveChangeResolver(inspector).resolve("root", changed)

        assert result.root == "root"
        assert result.comparisons == ["comparison:b:v1.0.0->v1.1.0"]
        assert result.inspections == ["inspection:c@v0.3.0"]
        assert result.failures == []

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_siblings(self, inspector):
        inspector.compare_versions.side_effect = [
            AnalyzerError("capslock", "boom"),
            "comparison:c",
        ]
        changed = [
            ChangedDependency(path="b", new_version="v1.1.0", old_version="v1.0.0"),
            ChangedDependency(path="c", new_version="v2.0.0", old_version="v1.0.0"),
        ]
        result = await TransitiveChangeResolver(inspector).resolve("root", changed)

        assert result.comparisons == ["comparison:c"]
        assert len(result.failures) == 1
        assert result.failures[0].dep.path == "b"
        assert "boom" in result.failures[0].error

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            ResolutionError("not imported"),
            VersionMismatchError("b", "v1.1.0", "v1.2.0"),
        ],
    )
    async def test_per_dependency_errors_recorded(self, inspector, error):
        inspector.inspect_version.side_effect = error
        changed = [ChangedDependency(path="b", new_version="v1.1.0")]
        result = await TransitiveChangeResolver(inspector).resolve("root", changed)
        assert [f.dep.path for f in result.failures] == ["b"]

    @pytest.mark.asyncio
    async def test_restore_failure_aborts(self, inspector):
        inspector.compare_versions.side_effect = ManifestRestoreError("go.mod", "disk full")
        changed = [
            ChangedDependency(path="b", new_version="v1.1.0", old_version="v1.0.0"),
            ChangedDependency(path="c", new_version="v2.0.0", old_version="v1.0.0"),
        ]
        with pytest.raises(ManifestRestoreError):
            await TransitiveChangeResolver(inspector).resolve("root", changed)
        assert inspector.compare_versions.await_count == 1

"""Tests for the capslock capability adapter."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from dep_inspector.analyzers import AnalysisTarget, CapabilityAnalyzer
from dep_inspector.analyzers.capslock import CAPABILITY_MAP_NAME, decode_capslock_output
from dep_inspector.command import CommandResult
from dep_inspector.exceptions import AnalyzerError, CommandError
from dep_inspector.models import CallSite, CapabilityKind, CapabilityType, CapModule

CACHE = "/home/u/go/pkg/mod"


def _info(capability="CAPABILITY_NETWORK", hops=2, **overrides) -> dict:
    path = [{"name": "github.com/foo/bar.Dial"}]
    for i in range(1, hops):
        path.append(
            {
                "name": f"net.hop{i}",
                "site": {
                    "filename": f"{CACHE}/github.com/foo/bar@v1.2.3/dial.go",
                    "line": str(10 * i),
                    "column": "4",
                },
            }
        )
    info = {
        "packageName": "bar",
        "capability": capability,
        "path": path,
        "packageDir": "github.com/foo/bar",
        "capabilityType": "CAPABILITY_TYPE_DIRECT",
    }
    info.update(overrides)
    return info


def _output(*infos, modules=None) -> str:
    return json.dumps(
        {
            "capabilityInfo": list(infos),
            "moduleInfo": modules if modules is not None else [{"path": "github.com/foo/bar", "version": "v1.2.3"}],
        }
    )


class TestDecodeCapslockOutput:
    def test_decodes_protobuf_json(self):
        report = decode_capslock_output(_output(_info()), CACHE)

        assert report.modules == (CapModule(path="github.com/foo/bar", version="v1.2.3"),)
        (cap,) = report.capabilities
        assert cap.capability is CapabilityKind.NETWORK
        assert cap.capability_type is CapabilityType.DIRECT
        assert cap.direct
        assert cap.package_name == "bar"
        assert cap.path[0].site is None
        # int64 strings become ints, cache prefix removed
        assert cap.path[1].site == CallSite(filename="github.com/foo/bar@v1.2.3/dial.go", line=10, column=4)

    def test_pascal_case_keys(self):
        data = json.dumps(
            {
                "CapabilityInfo": [
                    {
                        "PackageName": "bar",
                        "Capability": "CAPABILITY_FILES",
                        "Path": [{"Name": "bar.Open"}],
                        "PackageDir": "github.com/foo/bar",
                        "CapabilityType": "CAPABILITY_TYPE_TRANSITIVE",
                    }
                ],
            }
        )
        report = decode_capslock_output(data)
        assert report.capabilities[0].capability is CapabilityKind.FILES
        assert not report.capabilities[0].direct
        assert report.modules == ()

    def test_sorted_by_path_length(self):
        long_ = _info(hops=3)
        short = _info(hops=1, capability="CAPABILITY_FILES")
        report = decode_capslock_output(_output(long_, short), CACHE)
        assert [len(c.path) for c in report.capabilities] == [1, 3]

    def test_empty_result(self):
        report = decode_capslock_output("{}")
        assert report.capabilities == ()

    def test_empty_call_path(self):
        with pytest.raises(AnalyzerError, match="empty call path"):
            decode_capslock_output(_output(_info(path=[])))

    def test_unknown_capability(self):
        with pytest.raises(AnalyzerError, match="decoding results"):
            decode_capslock_output(_output(_info(capability="CAPABILITY_TELEPATHY")))

    def test_invalid_json(self):
        with pytest.raises(AnalyzerError, match="capslock"):
            decode_capslock_output(b"capslock: panic")


class TestCapabilityAnalyzer:
    def _target(self, **overrides) -> AnalysisTarget:
        defaults = dict(
            dep="github.com/foo/bar",
            version="v1.2.3",
            scope=["github.com/foo/bar/a", "github.com/foo/bar/c"],
            module_cache=CACHE,
            work_dir="/work",
        )
        defaults.update(overrides)
        return AnalysisTarget(**defaults)

    @pytest.mark.asyncio
    async def test_run(self):
        seen = {}

        async def fake_run(*argv, **kwargs):
            cap_map = Path(argv[argv.index("-capability_map") + 1])
            seen["argv"] = argv
            seen["kwargs"] = kwargs
            seen["map_name"] = cap_map.name
            seen["map"] = cap_map.read_text()
            return CommandResult(list(argv), 0, _output(_info()).encode(), "")

        runner = MagicMock()
        runner.run = AsyncMock(side_effect=fake_run)

        report = await CapabilityAnalyzer(runner, capslock_bin="/bin/capslock").run(self._target())

        assert len(report.capabilities) == 1
        argv = seen["argv"]
        assert argv[0] == "/bin/capslock"
        assert argv[1:3] == ("-packages", "github.com/foo/bar/a,github.com/foo/bar/c")
        assert argv[-1] == "-output=json"
        assert seen["kwargs"]["cwd"] == "/work"
        assert seen["map_name"] == CAPABILITY_MAP_NAME
        assert "package os/signal CAPABILITY_MODIFY_SYSTEM_STATE" in seen["map"]

        # the temporary capability map is gone once the run finished
        assert not Path(argv[argv.index("-capability_map") + 1]).exists()

    @pytest.mark.asyncio
    async def test_command_failure(self):
        runner = MagicMock()
        runner.run = AsyncMock(side_effect=CommandError(["capslock"], 2, "bad flag"))
        with pytest.raises(AnalyzerError, match="bad flag") as exc_info:
            await CapabilityAnalyzer(runner).run(self._target())
        assert exc_info.value.analyzer == "capslock"

    @pytest.mark.asyncio
    async def test_empty_scope(self):
        runner = MagicMock()
        runner.run = AsyncMock()
        with pytest.raises(AnalyzerError, match="no packages"):
            await CapabilityAnalyzer(runner).run(self._target(scope=[]))
        runner.run.assert_not_awaited()

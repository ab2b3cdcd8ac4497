"""Capability adapter: runs capslock over a dependency's packages."""

from __future__ import annotations

import json
from dataclasses import dataclass
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
from dep_inspector.command import CommandRunner
from dep_inspector.diff import sort_capabilities
from dep_inspector.exceptions import AnalyzerError, CommandError
from dep_inspector.models import (
    CallSite,
    Capability,
    CapabilityKind,
    CapabilityType,
    CapModule,
    FunctionCall,
)
from dep_inspector.modpath import relative_to_root

log = structlog.get_logger("dep_inspector.analyzers.capslock")

CAPABILITY_MAP_NAME = "dep-inspector.cm"


# capslock writes protobuf JSON
class _CallSite(WireModel):
    filename: str = ""
    line: int | None = None  # int64 fields arrive as strings
    column: int | None = None


class _FunctionCall(WireModel):
    name: str
    site: _CallSite | None = None


class _CapabilityInfo(WireModel):
    package_name: str = ""
    capability: CapabilityKind
    path: list[_FunctionCall] = []
    package_dir: str = ""
    capability_type: CapabilityType = CapabilityType.UNSPECIFIED


class _ModuleInfo(WireModel):
    path: str
    version: str = ""


class _CapslockOutput(WireModel):
    capability_info: list[_CapabilityInfo] = []
    module_info: list[_ModuleInfo] = []


@dataclass(frozen=True)
class CapabilityReport:
    """Decoded capslock result, capabilities in deterministic order."""

    capabilities: tuple[Capability, ...]
    modules: tuple[CapModule, ...]


def decode_capslock_output(data: str | bytes, module_cache: str = "") -> CapabilityReport:
    """Decode capslock's JSON document into canonical records.

    Source file names inside ``module_cache`` are made relative to it so
    the same call site compares equal whichever cache holds the module.
    """
    try:
        raw: Any = json.loads(data)
        output = _CapslockOutput.model_validate(raw)
    except (json.JSONDecodeError, ValidationError) as exc:
        raise AnalyzerError("capslock", f"decoding results: {exc}") from exc

    caps = []
    for info in output.capability_info:
        if not info.path:
            raise AnalyzerError("capslock", f"capability {info.capability.value} has an empty call path")
        path = tuple(
            FunctionCall(
                name=call.name,
                site=(
                    CallSite(
                        filename=relative_to_root(call.site.filename, module_cache),
                        line=call.site.line,
                        column=call.site.column,
                    )
                    if call.site is not None and call.site.filename
                    else None
                ),
            )
            for call in info.path
        )
        caps.append(
            Capability(
                package_name=info.package_name,
                package_dir=info.package_dir,
                capability=info.capability,
                capability_type=info.capability_type,
                path=path,
            )
        )

    modules = tuple(CapModule(path=m.path, version=m.version) for m in output.module_info)
    return CapabilityReport(capabilities=tuple(sort_capabilities(caps)), modules=modules)


class CapabilityAnalyzer(Analyzer[CapabilityReport]):
    """
    Find the capabilities a dependency's packages can reach.

    Workflow:
        embedded configs/capslock/*.cm -> one temporary capability map
            -> capslock -packages <scope> -capability_map <map> -output=json
            -> decode_capslock_output() -> CapabilityReport
    """

    def __init__(self, runner: CommandRunner, capslock_bin: str = "capslock") -> None:
        super().__init__(runner)
        self.capslock_bin = capslock_bin

    @property
    def name(self) -> str:
        return "capslock"

    async def run(self, target: AnalysisTarget, **kwargs: Any) -> CapabilityReport:
        if not target.scope:
            raise AnalyzerError(self.name, f"no packages to analyze for {target.version_str}")

        with private_tempdir() as tmpdir:
            cap_map = tmpdir / CAPABILITY_MAP_NAME
            try:
                with open(cap_map, "wb") as f:
                    for _, content in read_embedded_configs("capslock"):
                        f.write(content)
                        if not content.endswith(b"\n"):
                            f.write(b"\n")
            except OSError as exc:
                raise AnalyzerError(self.name, f"writing capability map: {exc}") from exc

            log.info("capslock.start", dep=target.version_str, packages=len(target.scope))
            try:
                result = await self.runner.run(
                    self.capslock_bin,
                    "-packages",
                    ",".join(target.scope),
                    "-capability_map",
                    str(cap_map),
                    "-output=json",
                    cwd=target.work_dir,
                )
            except CommandError as exc:
                raise AnalyzerError(self.name, str(exc)) from exc

        report = decode_capslock_output(result.stdout, target.module_cache)
        log.info(
            "capslock.done",
            dep=target.version_str,
            capabilities=len(report.capabilities),
            modules=len(report.modules),
        )
        return report

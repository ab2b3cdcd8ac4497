"""Shared contract for analyzer adapters."""

from __future__ import annotations

import tempfile
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any, Generic, TypeVar

from pydantic import AliasChoices, AliasGenerator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel, to_pascal

from dep_inspector.command import CommandRunner

R = TypeVar("R")

TEMP_PREFIX = "dep-inspector-"


@dataclass
class AnalysisTarget:
    """What an analyzer run looks at.

    ``scope`` holds import paths (or a ``dep/...`` pattern) for analyzers
    that load packages themselves; ``dirs`` holds the on-disk package
    directories for analyzers that take paths.
    """

    dep: str
    version: str
    scope: list[str]
    dirs: list[str] = field(default_factory=list)
    module_cache: str = ""
    work_dir: str = "."

    @property
    def version_str(self) -> str:
        return f"{self.dep}@{self.version}"


class Analyzer(ABC, Generic[R]):
    """
    An external analyzer invoked as a subprocess.
    Each adapter decodes its tool's output into canonical records so
    nothing past the adapter sees tool-specific shapes.
    """

    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner

    @property
    @abstractmethod
    def name(self) -> str:
        """Analyzer identifier used in logs and errors."""
        ...

    @abstractmethod
    async def run(self, target: AnalysisTarget, **kwargs: Any) -> R:
        """Analyze ``target`` and return decoded findings."""
        ...


def read_embedded_configs(subdir: str) -> list[tuple[str, bytes]]:
    """Return ``(name, content)`` of every file shipped under ``configs/<subdir>``, sorted by name."""
    root = resources.files("dep_inspector").joinpath("configs", subdir)
    return sorted(
        (entry.name, entry.read_bytes()) for entry in root.iterdir() if entry.is_file()
    )


@contextmanager
def private_tempdir() -> Iterator[Path]:
    """A temporary directory owned by one analyzer invocation, removed on exit."""
    with tempfile.TemporaryDirectory(prefix=TEMP_PREFIX) as tmpdir:
        yield Path(tmpdir)


class WireModel(BaseModel):
    """Base for analyzer output schemas.

    Go's JSON decoder matches keys case-insensitively and the tools are
    not consistent about key case, so each field accepts its snake_case,
    camelCase and PascalCase spelling.
    """

    model_config = ConfigDict(
        alias_generator=AliasGenerator(
            validation_alias=lambda name: AliasChoices(name, to_camel(name), to_pascal(name)),
        ),
        extra="ignore",
    )

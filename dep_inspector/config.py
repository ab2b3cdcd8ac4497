"""Runtime configuration: environment defaults, overridable from the CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass

# Environment variables forwarded to build-tool subprocesses; everything
# else in the caller's environment is withheld.
DEFAULT_FORWARD_ENV = ("HOME", "PATH")

DEFAULT_STATICCHECK_CHECKS = "SA1*,SA2*,SA4*,SA5*,SA9*"

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(key: str, default: bool = False) -> bool:
    value = os.environ.get(key)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


def _env_list(key: str) -> tuple[str, ...]:
    value = os.environ.get(key, "")
    return tuple(v.strip() for v in value.split(",") if v.strip())


@dataclass
class InspectorConfig:
    """Settings shared by every stage of an inspection run."""

    module_dir: str = "."
    inspect_all_packages: bool = False
    match_lint_columns: bool = False
    forward_env: tuple[str, ...] = DEFAULT_FORWARD_ENV
    verbose: bool = False

    go_bin: str = "go"
    capslock_bin: str = "capslock"
    golangci_lint_bin: str = "golangci-lint"
    staticcheck_bin: str = "staticcheck"
    staticcheck_checks: str = DEFAULT_STATICCHECK_CHECKS

    @classmethod
    def from_env(cls) -> InspectorConfig:
        """Build a config from ``DEP_INSPECTOR_*`` environment variables."""
        forward = DEFAULT_FORWARD_ENV + tuple(
            v for v in _env_list("DEP_INSPECTOR_FORWARD_ENV") if v not in DEFAULT_FORWARD_ENV
        )
        return cls(
            module_dir=os.environ.get("DEP_INSPECTOR_MODULE_DIR", "."),
            inspect_all_packages=_env_flag("DEP_INSPECTOR_ALL_PACKAGES"),
            match_lint_columns=_env_flag("DEP_INSPECTOR_MATCH_COLUMNS"),
            forward_env=forward,
            go_bin=os.environ.get("DEP_INSPECTOR_GO", "go"),
            capslock_bin=os.environ.get("DEP_INSPECTOR_CAPSLOCK", "capslock"),
            golangci_lint_bin=os.environ.get("DEP_INSPECTOR_GOLANGCI_LINT", "golangci-lint"),
            staticcheck_bin=os.environ.get("DEP_INSPECTOR_STATICCHECK", "staticcheck"),
            staticcheck_checks=os.environ.get(
                "DEP_INSPECTOR_STATICCHECK_CHECKS", DEFAULT_STATICCHECK_CHECKS
            ),
        )

    def subprocess_env(self) -> dict[str, str]:
        """Environment for subprocesses: only allow-listed variables that are set."""
        return {key: os.environ[key] for key in self.forward_env if key in os.environ}

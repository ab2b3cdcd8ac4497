"""Custom exceptions for dep-inspector."""

from __future__ import annotations

from collections.abc import Sequence


class InspectorError(Exception):
    """Base exception for all inspector errors."""


class SetupError(InspectorError):
    """Raised when the working environment cannot be prepared (manifest, module cache)."""


class ManifestRestoreError(SetupError):
    """Raised when the live manifest files could not be restored from backup.

    The working tree is in an unknown state after this error.
    """

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"restoring {path} failed, working tree may be modified: {reason}")


class CommandError(InspectorError):
    """Raised when a subprocess exits with an unexpected status."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        msg = f"running {' '.join(self.argv)!r} failed (exit {returncode})"
        if stderr:
            msg += f": {stderr.strip()[-2000:]}"
        super().__init__(msg)


class PinError(InspectorError):
    """Raised when the build tool cannot fetch, pin or tidy the requested version."""


class ResolutionError(InspectorError):
    """Raised when the package graph is inconsistent or the dependency is not used."""


class AnalyzerError(InspectorError):
    """Raised when an external analyzer fails or its output cannot be decoded."""

    def __init__(self, analyzer: str, message: str):
        self.analyzer = analyzer
        super().__init__(f"{analyzer}: {message}")


class VersionMismatchError(InspectorError):
    """Raised when the build tool resolved a different version than requested."""

    def __init__(self, dep: str, requested: str, actual: str | None):
        self.dep = dep
        self.requested = requested
        self.actual = actual
        super().__init__(
            f"requested {dep}@{requested} but the manifest resolved "
            f"{actual if actual is not None else 'no version'}"
        )


class JoinedError(InspectorError):
    """Several independent failures reported together, in the order they occurred."""

    def __init__(self, errors: Sequence[BaseException]):
        self.errors = list(errors)
        super().__init__("; ".join(str(e) for e in self.errors))


def join_errors(*errors: BaseException | None) -> BaseException | None:
    """Combine errors, dropping ``None`` and flattening nested :class:`JoinedError`."""
    flat: list[BaseException] = []
    for err in errors:
        if err is None:
            continue
        if isinstance(err, JoinedError):
            flat.extend(err.errors)
        else:
            flat.append(err)
    if not flat:
        return None
    if len(flat) == 1:
        return flat[0]
    return JoinedError(flat)


def is_fatal(exc: BaseException) -> bool:
    """Whether ``exc`` (or any error joined into it) must abort the whole run."""
    if isinstance(exc, JoinedError):
        return any(is_fatal(e) for e in exc.errors)
    return isinstance(exc, SetupError)

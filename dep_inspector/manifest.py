"""Manifest transactions: snapshot, mutate and restore go.mod / go.sum.

Every inspection pins a dependency by running build-tool commands that
rewrite the consumer's manifest and lock file in place. The transaction
keeps an exact copy of both files (in memory and in a private temporary
directory) and writes it back afterwards, whether the inspection
succeeded or not.
"""

from __future__ import annotations

import asyncio
import os
import re
import shutil
import tempfile
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

import structlog

from dep_inspector.command import CommandRunner
from dep_inspector.exceptions import ManifestRestoreError, SetupError, join_errors

log = structlog.get_logger("dep_inspector.manifest")

LOCK_FILE_NAME = "go.sum"

# module example.com/m
_MODULE_RE = re.compile(r"^module\s+(\S+)")

# Single require: require github.com/foo/bar v1.2.3
_SINGLE_RE = re.compile(r"^require\s+(\S+)\s+(\S+)")

# Inside require block: github.com/foo/bar v1.2.3
_BLOCK_RE = re.compile(r"^(\S+)\s+(v\S+)")


def _unquote(token: str) -> str:
    if len(token) >= 2 and token[0] == token[-1] and token[0] in "\"`":
        return token[1:-1]
    return token


def parse_module_path(content: str) -> str | None:
    """Return the module path declared by a go.mod file."""
    for raw_line in content.splitlines():
        m = _MODULE_RE.match(raw_line.strip())
        if m:
            return _unquote(m.group(1))
    return None


def parse_requirements(content: str) -> dict[str, str]:
    """Return ``{module path: version}`` for every require directive.

    Indirect requirements are included: after tidying, go.mod lists the
    full set of modules the build needs.
    """
    reqs: dict[str, str] = {}
    in_require_block = False

    for raw_line in content.splitlines():
        # drop trailing comments such as "// indirect"
        line = raw_line.split("//", 1)[0].strip()
        if not line:
            continue

        if re.match(r"^require\s*\($", line):
            in_require_block = True
            continue
        if in_require_block and line == ")":
            in_require_block = False
            continue

        if in_require_block:
            m = _BLOCK_RE.match(line)
        else:
            m = _SINGLE_RE.match(line)
        if m:
            reqs[_unquote(m.group(1))] = m.group(2)

    return reqs


@dataclass(frozen=True)
class ManifestSnapshot:
    """Exact contents of the manifest and lock file at one point in time."""

    manifest_path: Path
    lock_path: Path
    manifest: bytes
    lock: bytes

    @classmethod
    def read(cls, manifest_path: str | os.PathLike, lock_path: str | os.PathLike | None = None) -> ManifestSnapshot:
        manifest_path = Path(manifest_path)
        lock_path = Path(lock_path) if lock_path else manifest_path.with_name(LOCK_FILE_NAME)
        try:
            manifest = manifest_path.read_bytes()
        except OSError as exc:
            raise SetupError(f"reading manifest {manifest_path}: {exc}") from exc
        try:
            lock = lock_path.read_bytes()
        except OSError as exc:
            raise SetupError(f"reading lock file {lock_path}: {exc}") from exc
        return cls(manifest_path=manifest_path, lock_path=lock_path, manifest=manifest, lock=lock)

    @property
    def module_path(self) -> str | None:
        return parse_module_path(self.manifest.decode("utf-8", errors="replace"))

    def requirements(self) -> dict[str, str]:
        return parse_requirements(self.manifest.decode("utf-8", errors="replace"))

    def version_of(self, dep: str) -> str | None:
        return self.requirements().get(dep)


@dataclass(frozen=True)
class BackupHandle:
    """Backup of one transaction; ``directory`` is private to it."""

    snapshot: ManifestSnapshot
    directory: Path

    @property
    def manifest_backup(self) -> Path:
        return self.directory / self.snapshot.manifest_path.name

    @property
    def lock_backup(self) -> Path:
        return self.directory / self.snapshot.lock_path.name


async def locate_manifest(runner: CommandRunner, go_bin: str = "go") -> Path:
    """Ask the build tool where the current module's go.mod lives."""
    result = await runner.run(go_bin, "env", "GOMOD")
    gomod = result.text.strip()
    if not gomod or gomod == os.devnull:
        raise SetupError(f"{runner.cwd} is not inside a Go module")
    return Path(gomod)


class ManifestTransaction:
    """Guard mutations of the live manifest and lock file.

    Only one transaction may be open at a time; :meth:`transaction` holds
    a lock for its whole duration so no other task reads the files while
    they are being rewritten.
    """

    def __init__(self, manifest_path: str | os.PathLike, lock_path: str | os.PathLike | None = None) -> None:
        self.manifest_path = Path(manifest_path)
        self.lock_path = Path(lock_path) if lock_path else self.manifest_path.with_name(LOCK_FILE_NAME)
        self._lock = asyncio.Lock()

    def current(self) -> ManifestSnapshot:
        """Read the live files."""
        return ManifestSnapshot.read(self.manifest_path, self.lock_path)

    def begin(self) -> BackupHandle:
        """Snapshot the live files and write a backup copy to a private temp directory."""
        snapshot = self.current()
        try:
            directory = Path(tempfile.mkdtemp(prefix="dep-inspector-"))
        except OSError as exc:
            raise SetupError(f"creating backup directory: {exc}") from exc
        handle = BackupHandle(snapshot=snapshot, directory=directory)
        try:
            handle.manifest_backup.write_bytes(snapshot.manifest)
            handle.lock_backup.write_bytes(snapshot.lock)
        except OSError as exc:
            shutil.rmtree(directory, ignore_errors=True)
            raise SetupError(f"writing manifest backup: {exc}") from exc
        log.debug("manifest.backed_up", manifest=str(self.manifest_path), backup_dir=str(directory))
        return handle

    async def mutate(self, mutation: Callable[[], Awaitable[None]]) -> ManifestSnapshot:
        """Apply ``mutation`` to the live files and return their new contents."""
        await mutation()
        return self.current()

    def restore(self, handle: BackupHandle) -> None:
        """Rewrite both live files from the backup and verify them byte for byte.

        Safe to call any number of times. Both files are always attempted;
        failures are raised together as :class:`ManifestRestoreError`.
        """
        errors = []
        for live, content in (
            (handle.snapshot.manifest_path, handle.snapshot.manifest),
            (handle.snapshot.lock_path, handle.snapshot.lock),
        ):
            try:
                with open(live, "wb") as f:
                    f.write(content)
                    f.flush()
                    os.fsync(f.fileno())
                if live.read_bytes() != content:
                    raise ManifestRestoreError(str(live), "contents differ from backup after write")
            except ManifestRestoreError as exc:
                errors.append(exc)
            except OSError as exc:
                errors.append(ManifestRestoreError(str(live), str(exc)))

        err = join_errors(*errors)
        if err is not None:
            log.error("manifest.restore_failed", backup_dir=str(handle.directory), error=str(err))
            raise err
        log.debug("manifest.restored", manifest=str(handle.snapshot.manifest_path))

    def close(self, handle: BackupHandle) -> None:
        shutil.rmtree(handle.directory, ignore_errors=True)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[BackupHandle]:
        """Open a transaction; the live files are restored when the block exits.

        A restore failure is joined with any error raised inside the block.
        The backup directory is kept when the restore fails so the files
        can be recovered by hand.
        """
        async with self._lock:
            handle = self.begin()
            restored = False
            try:
                yield handle
            except Exception as exc:
                try:
                    self.restore(handle)
                    restored = True
                except Exception as restore_exc:
                    raise join_errors(exc, restore_exc) from exc
                raise
            except BaseException as exc:
                # cancellation: still restore, but let the cancellation through
                try:
                    self.restore(handle)
                    restored = True
                except Exception as restore_exc:
                    exc.add_note(f"manifest restore also failed: {restore_exc}")
                raise
            else:
                self.restore(handle)
                restored = True
            finally:
                if restored:
                    self.close(handle)

"""Module path helpers: version strings, module cache escaping, path normalization."""

from __future__ import annotations

import os
from pathlib import PurePosixPath

import structlog

log = structlog.get_logger("dep_inspector.modpath")


def version_str(dep: str, version: str) -> str:
    """``github.com/foo/bar`` + ``v1.2.3`` -> ``github.com/foo/bar@v1.2.3``."""
    return f"{dep}@{version}"


def escape_module_path(path: str) -> str:
    """Escape a module path the way the module cache stores it on disk.

    Upper-case letters become ``!`` followed by the lower-case letter so
    that case-insensitive filesystems keep distinct modules apart.
    """
    out = []
    for ch in path:
        if "A" <= ch <= "Z":
            out.append("!" + ch.lower())
        else:
            out.append(ch)
    return "".join(out)


def dep_relative_path(dep: str, path: str) -> str:
    """Return the part of ``path`` after the dependency's versioned root directory.

    ``/cache/github.com/foo/bar@v1.2.3/sub/x.go`` -> ``/sub/x.go``. This lets
    the same file be matched across versions. Paths that do not contain the
    dependency are returned unchanged.
    """
    for needle in (escape_module_path(dep), dep):
        idx = path.find(needle)
        if idx != -1:
            break
    else:
        log.debug("modpath.dep_not_in_path", dep=dep, path=path)
        return path

    rest = path[idx + len(needle):]
    slash = rest.find("/")
    if slash == -1:
        log.debug("modpath.no_slash_after_dep", dep=dep, path=path)
        return path
    return rest[slash:]


def relative_to_root(path: str, root: str, base: str | None = None) -> str:
    """Make ``path`` relative to ``root`` when it lies inside it.

    Relative paths are first resolved against ``base`` (the directory the
    analyzer ran in). The result always uses forward slashes.
    """
    if not path:
        return path
    if not os.path.isabs(path):
        if base is None:
            return PurePosixPath(path).as_posix()
        path = os.path.join(base, path)
    path = os.path.normpath(path)
    root = os.path.normpath(root) if root else ""
    if root and (path == root or path.startswith(root.rstrip(os.sep) + os.sep)):
        return PurePosixPath(os.path.relpath(path, root).replace(os.sep, "/")).as_posix()
    return path.replace(os.sep, "/")

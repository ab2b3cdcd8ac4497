"""Subprocess execution for build-tool and analyzer commands."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

import structlog

from dep_inspector.exceptions import CommandError

log = structlog.get_logger("dep_inspector.command")


@dataclass
class CommandResult:
    """Captured output of a finished subprocess."""

    argv: list[str]
    returncode: int
    stdout: bytes
    stderr: str

    @property
    def text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")


class CommandRunner:
    """Run commands in one directory with an explicit environment.

    Only the variables in ``env`` reach the child process; nothing is
    inherited from the caller. When the awaiting task is cancelled the
    child is killed and reaped before the cancellation propagates.
    """

    def __init__(
        self,
        cwd: str,
        env: Mapping[str, str] | None = None,
        verbose: bool = False,
    ) -> None:
        self.cwd = cwd
        self.env = dict(env or {})
        self.verbose = verbose

    async def run(
        self,
        *argv: str,
        ok_codes: Iterable[int] = (0,),
        cwd: str | None = None,
    ) -> CommandResult:
        """Run ``argv`` and return its output.

        Raises :class:`CommandError` when the exit code is not in ``ok_codes``
        or the executable cannot be started.
        """
        args = [str(a) for a in argv]
        if self.verbose:
            log.info("command.run", argv=args, cwd=cwd or self.cwd)
        else:
            log.debug("command.run", argv=args, cwd=cwd or self.cwd)

        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                cwd=cwd or self.cwd,
                env=self.env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise CommandError(args, 127, str(exc)) from exc

        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            if proc.returncode is None:
                log.warning("command.killed", argv=args, pid=proc.pid)
                proc.kill()
            await proc.wait()
            raise

        result = CommandResult(
            argv=args,
            returncode=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout,
            stderr=stderr.decode("utf-8", errors="replace"),
        )
        if result.returncode not in set(ok_codes):
            raise CommandError(args, result.returncode, result.stderr)
        return result


def iter_json_values(text: str) -> Iterator[Any]:
    """Decode a stream of concatenated or newline-delimited JSON values."""
    decoder = json.JSONDecoder()
    idx = 0
    end = len(text)
    while True:
        while idx < end and text[idx].isspace():
            idx += 1
        if idx >= end:
            return
        value, idx = decoder.raw_decode(text, idx)
        yield value

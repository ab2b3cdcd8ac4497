"""Fan-out/fan-in helpers for running independent analyses together."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Any

from dep_inspector.exceptions import join_errors


async def gather_joined(*aws: Awaitable[Any]) -> list[Any]:
    """Run ``aws`` concurrently and wait for every one of them to finish.

    A failure does not cancel the others. When any fail, their errors are
    raised together (in argument order) and no results are returned.
    """
    results = await asyncio.gather(*aws, return_exceptions=True)
    errors = [r for r in results if isinstance(r, BaseException)]
    for err in errors:
        if not isinstance(err, Exception):
            raise err
    joined = join_errors(*errors)
    if joined is not None:
        raise joined
    return list(results)

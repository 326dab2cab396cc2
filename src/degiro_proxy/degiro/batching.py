"""Fan-out/fan-in helpers for id lists larger than one broker request."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Sequence, TypeVar

from degiro_proxy.exceptions import DegiroError, ErrorCode

PRODUCT_BATCH_SIZE = 50

T = TypeVar("T")


def chunks(values: Sequence[T], size: int) -> list[list[T]]:
    if size < 1:
        raise DegiroError(ErrorCode.INVALID_ARGS, "batch size must be at least 1", details={"batch_size": size})
    return [list(values[i : i + size]) for i in range(0, len(values), size)]


async def gather_or_cancel(*calls: Awaitable[Any]) -> list[Any]:
    """Run ``calls`` concurrently; on the first failure cancel and drain the rest, then re-raise."""

    tasks = [asyncio.ensure_future(call) for call in calls]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def batch_fetch(
    ids: Sequence[T],
    fetch_one: Callable[[list[T]], Awaitable[dict[str, Any]]],
    *,
    batch_size: int = PRODUCT_BATCH_SIZE,
) -> dict[str, Any]:
    """Fetch ``ids`` in contiguous batches concurrently and merge the partial maps.

    Any failing batch cancels the ones still in flight and its error propagates;
    no partial result is returned.
    """

    batches = chunks(ids, batch_size)
    if not batches:
        return {}

    merged: dict[str, Any] = {}
    for partial in await gather_or_cancel(*(fetch_one(batch) for batch in batches)):
        merged.update(partial)
    return merged

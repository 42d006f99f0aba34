# Batch execution — bounded-concurrency fan-out with per-item results.
# Created: 2026-10-19

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")
R = TypeVar("R")

# Keeps bursts under the Dida365 API rate limit
MAX_CONCURRENT = 5


@dataclass
class BatchResult(Generic[T, R]):
    index: int
    success: bool
    input: T
    result: R | None = None
    error: str | None = None


async def batch_execute(
    items: Sequence[T],
    executor: Callable[[T], Awaitable[R]],
    max_concurrent: int = MAX_CONCURRENT,
) -> list[BatchResult[T, R]]:
    """Run ``executor`` over ``items`` at most ``max_concurrent`` at a time.

    Items are processed in chunks; a failing item never affects the others.
    Results are returned in input order.
    """
    if max_concurrent < 1:
        raise ValueError("max_concurrent must be at least 1")

    async def run(index: int, item: T) -> BatchResult[T, R]:
        try:
            result = await executor(item)
        except Exception as e:
            return BatchResult(index=index, success=False, input=item, error=str(e) or repr(e))
        return BatchResult(index=index, success=True, input=item, result=result)

    results: list[BatchResult[T, R]] = []
    for start in range(0, len(items), max_concurrent):
        chunk = items[start : start + max_concurrent]
        results.extend(
            await asyncio.gather(*(run(start + offset, item) for offset, item in enumerate(chunk)))
        )
    return results


def _summary(results: Sequence[BatchResult]) -> dict[str, int]:
    succeeded = sum(1 for r in results if r.success)
    return {"total": len(results), "succeeded": succeeded, "failed": len(results) - succeeded}


def format_batch_results(results: Sequence[BatchResult[Any, Any]]) -> dict[str, Any]:
    """Format create/update results: successful entries carry the returned task."""
    response: dict[str, Any] = {
        "summary": _summary(results),
        "results": [
            {"index": r.index, "success": True, "task": r.result}
            if r.success
            else {"index": r.index, "success": False, "error": r.error, "input": r.input}
            for r in results
        ],
    }
    failed = [r.input for r in results if not r.success]
    if failed:
        response["failedItems"] = failed
    return response


def format_batch_results_simple(results: Sequence[BatchResult[dict[str, Any], Any]]) -> dict[str, Any]:
    """Format complete/delete results: successful entries carry the task/project IDs."""
    response: dict[str, Any] = {
        "summary": _summary(results),
        "results": [
            {
                "index": r.index,
                "success": True,
                "taskId": r.input.get("taskId"),
                "projectId": r.input.get("projectId"),
            }
            if r.success
            else {"index": r.index, "success": False, "error": r.error, "input": r.input}
            for r in results
        ],
    }
    failed = [r.input for r in results if not r.success]
    if failed:
        response["failedItems"] = failed
    return response

"""Bounded concurrent fan-out/fan-in for validations.

Items go onto a distribution queue consumed by a fixed pool of workers.
Workers push findings onto a results queue drained by one collector task.
Shutdown order:

    enqueue items -> one close marker per worker
    -> gather(workers)          (barrier: every check has finished)
    -> close marker on results  -> collector exits

Cancelling the caller cancels the workers and the collector; no new check
starts after that.
"""

import asyncio
from typing import Any, Awaitable, Callable, Iterable, List, Optional, TypeVar

from converge.protocols import LoggerProtocol, ValidationError

T = TypeVar("T")

CheckFunc = Callable[[T], Awaitable[Optional[ValidationError]]]

_CLOSED = object()


def _default_path(item: Any) -> str:
    return str(getattr(item, "path", item))


async def validate_concurrently(
    items: Iterable[T],
    check: CheckFunc[T],
    concurrency: int,
    logger: Optional[LoggerProtocol] = None,
    validation: str = "fanout",
    path_of: Callable[[T], str] = _default_path,
) -> List[ValidationError]:
    """Run check over items with at most ``concurrency`` checks in flight.

    Args:
        items: Items to check
        check: Coroutine returning None or one ValidationError per item
        concurrency: Number of workers, must be >= 1
        logger: Optional logger for per-item failures
        validation: Validation name used when a check raises
        path_of: Maps an item to the path reported when a check raises

    Returns:
        All ValidationErrors found, in no particular order

    Raises:
        ValueError: If concurrency < 1
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {concurrency}")

    pending = list(items)
    if not pending:
        return []

    work: asyncio.Queue = asyncio.Queue()
    results: asyncio.Queue = asyncio.Queue()
    collected: List[ValidationError] = []

    async def worker(worker_id: int) -> None:
        while True:
            item = await work.get()
            if item is _CLOSED:
                return
            try:
                finding = await check(item)
            except Exception as e:
                path = path_of(item)
                if logger:
                    logger.warning(
                        "validation_check_failed",
                        worker=worker_id,
                        path=path,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                finding = ValidationError(path=path, validation=validation, error=str(e))
            if finding is not None:
                await results.put(finding)

    async def collector() -> None:
        while True:
            finding = await results.get()
            if finding is _CLOSED:
                return
            collected.append(finding)

    for item in pending:
        work.put_nowait(item)
    for _ in range(concurrency):
        work.put_nowait(_CLOSED)

    collector_task = asyncio.create_task(collector())
    workers = [asyncio.create_task(worker(i)) for i in range(concurrency)]
    try:
        await asyncio.gather(*workers)
        await results.put(_CLOSED)
        await collector_task
    finally:
        for task in (*workers, collector_task):
            if not task.done():
                task.cancel()
        await asyncio.gather(*workers, collector_task, return_exceptions=True)

    if logger:
        logger.debug(
            "fanout_completed",
            items=len(pending),
            workers=concurrency,
            findings=len(collected),
        )
    return collected


__all__ = ["CheckFunc", "validate_concurrently"]

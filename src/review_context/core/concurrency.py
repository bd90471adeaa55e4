"""Structured fan-out / fan-in with per-task failure defaults.

Context gathering, embedding fallback and chunk-level review all follow the
same shape: start N independent coroutines, wait for every one of them, and
turn each failure into a default value instead of failing the whole join.
``gather_with_defaults`` is that shape in one place.

Results keep the order of the input awaitables regardless of completion
order, so callers can zip them back against their inputs.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Any, TypeVar

from loguru import logger

T = TypeVar("T")


async def gather_with_defaults(
    awaitables: Iterable[Awaitable[T]],
    *,
    default: Any = None,
    default_factory: Callable[[], Any] | None = None,
    labels: Sequence[str] | None = None,
    max_concurrency: int | None = None,
) -> list[Any]:
    """Run awaitables concurrently, substituting a default for each failure.

    Args:
        awaitables: Coroutines or futures to run
        default: Value used in place of a failed task's result
        default_factory: Callable producing a fresh default per failure
            (use this for mutable defaults such as lists)
        labels: Optional names for log messages, aligned with ``awaitables``
        max_concurrency: Bound on simultaneously running tasks (None = unbounded)

    Returns:
        One result per awaitable, in input order

    Raises:
        asyncio.CancelledError: Cancellation is never converted to a default
    """
    items = list(awaitables)
    if not items:
        return []

    if max_concurrency is not None and max_concurrency > 0:
        semaphore = asyncio.Semaphore(max_concurrency)

        async def bounded(aw: Awaitable[T]) -> T:
            async with semaphore:
                return await aw

        items = [bounded(aw) for aw in items]

    results = await asyncio.gather(*items, return_exceptions=True)

    resolved: list[Any] = []
    for index, result in enumerate(results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            label = (
                labels[index] if labels and index < len(labels) else f"task {index}"
            )
            logger.warning(f"{label} failed, using default: {result}")
            resolved.append(default_factory() if default_factory else default)
        else:
            resolved.append(result)

    return resolved


async def run_in_windows(
    factories: Sequence[Callable[[], Awaitable[T]]],
    window_size: int,
    *,
    default_factory: Callable[[], Any] | None = None,
    labels: Sequence[str] | None = None,
) -> list[Any]:
    """Run task factories in fixed-size sequential windows.

    Each window is fanned out with :func:`gather_with_defaults` and fully
    joined before the next window starts, which bounds the number of
    simultaneous outbound calls to ``window_size``.

    Args:
        factories: Zero-argument callables returning awaitables
        window_size: Number of tasks per window (must be positive)
        default_factory: Produces the value used for a failed task
        labels: Optional names for log messages

    Returns:
        Results in input order
    """
    if window_size <= 0:
        raise ValueError(f"window_size must be positive, got {window_size}")

    results: list[Any] = []
    total_windows = (len(factories) + window_size - 1) // window_size
    for start in range(0, len(factories), window_size):
        window = factories[start : start + window_size]
        window_labels = labels[start : start + window_size] if labels else None
        logger.debug(
            f"Processing window {start // window_size + 1}/{total_windows} "
            f"({len(window)} tasks)"
        )
        results.extend(
            await gather_with_defaults(
                (factory() for factory in window),
                default_factory=default_factory,
                labels=window_labels,
            )
        )
    return results

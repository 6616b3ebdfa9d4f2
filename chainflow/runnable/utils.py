"""Helpers shared by the runnable combinators"""

import asyncio
import inspect
from typing import Any, AsyncIterator, Callable, Dict, Hashable, Iterable, Optional

from chainflow.exceptions import CancellationError, ContractError
from chainflow.logger import logger
from chainflow.runnable.context import ExecutionContext


_NOTHING = object()


def add_chunks(left: Any, right: Any) -> Any:
    """Concatenate two streamed chunks

    Mappings are merged key by key (recursively), every other value is
    combined with ``+``.

    Raises:
        ContractError: If the chunks cannot be combined
    """
    if isinstance(left, dict) and isinstance(right, dict):
        merged = dict(left)
        for key, value in right.items():
            merged[key] = add_chunks(merged[key], value) if key in merged else value
        return merged
    try:
        return left + right
    except TypeError as e:
        raise ContractError(
            f"Cannot merge stream chunks of type {type(left).__name__} "
            f"and {type(right).__name__}"
        ) from e


async def collect_chunks(chunks: AsyncIterator[Any]) -> Any:
    """Drain a chunk stream and return the concatenated value (None if empty)"""
    final = _NOTHING
    async for chunk in chunks:
        final = chunk if final is _NOTHING else add_chunks(final, chunk)
    return None if final is _NOTHING else final


async def iterate_once(value: Any) -> AsyncIterator[Any]:
    """Single-chunk stream"""
    yield value


async def call_maybe_async(func: Callable[..., Any], *args, **kwargs) -> Any:
    """Call a sync or async callable and return its result"""
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


async def cancel_and_wait(tasks: Iterable[asyncio.Task]) -> None:
    """Cancel unfinished tasks and wait until every one of them has settled"""
    tasks = [t for t in tasks if t is not None]
    for task in tasks:
        if not task.done():
            task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)


def _settled(task: asyncio.Task) -> Any:
    """Result of a finished task, or the exception it raised"""
    error = task.exception()
    return error if error is not None else task.result()


async def gather_or_fail(
    tasks: Dict[Hashable, asyncio.Task],
    context: ExecutionContext,
    return_exceptions: bool = False,
) -> Dict[Hashable, Any]:
    """Wait for every task and return results under the same keys

    Structured concurrency for fan-out and batch:
    - the first failure (in key order among failures observed together)
      cancels every outstanding task and is re-raised once they settle,
      unless return_exceptions is set
    - the caller's cancel_event cancels every outstanding task and raises
      CancellationError (with completed results when return_partial is set)
    - cancelling the waiting coroutine itself cancels every task

    Args:
        tasks: Mapping from key to running task
        context: Current execution context
        return_exceptions: Keep a failed task's exception under its key
            instead of raising it

    Returns:
        Mapping from key to task result (or exception), in the order of ``tasks``
    """
    waiter: Optional[asyncio.Task] = None
    if context.cancel_event is not None:
        waiter = asyncio.create_task(context.cancel_event.wait())

    pending = set(tasks.values())
    try:
        while pending:
            watched = pending | {waiter} if waiter is not None else pending
            done, _ = await asyncio.wait(watched, return_when=asyncio.FIRST_COMPLETED)
            pending -= done

            if waiter is not None and waiter in done:
                completed = {
                    key: _settled(task)
                    for key, task in tasks.items()
                    if task.done() and not task.cancelled()
                    and (return_exceptions or task.exception() is None)
                }
                logger.debug(
                    f"Cancellation requested with {len(pending)} task(s) outstanding"
                )
                raise CancellationError(
                    f"Execution cancelled at {' > '.join(context.execution_path) or 'root'}",
                    partial=completed if context.return_partial else None,
                )

            if return_exceptions:
                continue
            for key, task in tasks.items():
                if task in done and not task.cancelled() and task.exception() is not None:
                    logger.debug(
                        f"Task '{key}' failed, cancelling {len(pending)} outstanding task(s)"
                    )
                    raise task.exception()
    finally:
        await cancel_and_wait([*pending, waiter])

    return {key: _settled(task) for key, task in tasks.items()}

"""Parallel - Concurrent fan-out of one input to named Runnables

A RunnableParallel runs every step on the same input and merges their
outputs into a mapping keyed by step name.
"""

import asyncio
import copy
from typing import Any, AsyncIterator, Dict, Mapping, Optional, Union

from pydantic import Field, field_validator

from chainflow.logger import logger
from chainflow.runnable.base import Runnable, TypeContract, coerce_to_runnable
from chainflow.runnable.context import ExecutionContext
from chainflow.runnable.utils import add_chunks, cancel_and_wait, gather_or_fail


class _Done:
    """Completion marker for one step's stream"""

    def __init__(self, key: str):
        self.key = key


class _Failed:
    """Failure marker for one step's stream"""

    def __init__(self, key: str, error: BaseException):
        self.key = key
        self.error = error


_CANCELLED = object()


class RunnableParallel(Runnable):
    """Parallel group for concurrent execution of named Runnables

    All steps receive the same input (a shallow copy for dicts and lists,
    which branches must still treat as read-only). The output is a mapping
    with the same keys, in declaration order, whatever order the steps
    finish in.

    Example:
        RunnableParallel.from_steps(
            context=retriever,
            question=RunnablePassthrough(),
        )

    Attributes:
        steps: Mapping from output key to Runnable
    """

    steps: Dict[str, Runnable] = Field(
        default_factory=dict,
        description="Runnables to execute in parallel, by output key"
    )

    @field_validator("steps", mode="before")
    @classmethod
    def coerce_steps(cls, value: Any) -> Any:
        """Accept callables and nested mappings as steps"""
        if isinstance(value, Mapping):
            return {key: coerce_to_runnable(step) for key, step in value.items()}
        return value

    @classmethod
    def from_steps(
        cls, steps: Optional[Mapping[str, Any]] = None, **kwargs: Any
    ) -> "RunnableParallel":
        """Build from a mapping and/or keyword arguments of steps"""
        return cls(steps={**(steps or {}), **kwargs})

    def get_default_name(self) -> str:
        return "{" + ", ".join(self.steps) + "}"

    @property
    def output_type(self) -> TypeContract:
        return dict

    @property
    def accepts_parameters(self) -> bool:
        return False

    @staticmethod
    def _branch_input(input: Any) -> Any:
        if isinstance(input, (dict, list)):
            return copy.copy(input)
        return input

    def _semaphore(self, context: ExecutionContext) -> Optional[asyncio.Semaphore]:
        if context.max_concurrency:
            return asyncio.Semaphore(context.max_concurrency)
        return None

    async def _ainvoke(self, input: Any, context: ExecutionContext, **kwargs) -> Dict[str, Any]:
        """Execute all steps concurrently and wait for every one of them

        The first failure cancels the outstanding steps and is raised once
        they have settled.
        """
        if not self.steps:
            return {}
        semaphore = self._semaphore(context)

        async def run_step(key: str, step: Runnable) -> Any:
            branch_context = context.child(key)
            if semaphore is None:
                return await step.invoke(self._branch_input(input), branch_context)
            async with semaphore:
                return await step.invoke(self._branch_input(input), branch_context)

        tasks = {
            key: asyncio.create_task(run_step(key, step), name=f"parallel-{key}")
            for key, step in self.steps.items()
        }
        results = await gather_or_fail(tasks, context)
        logger.debug(f"{self.name} all {len(tasks)} steps completed")
        return results

    async def _astream(
        self, input: Any, context: ExecutionContext, **kwargs
    ) -> AsyncIterator[Dict[str, Any]]:
        """Stream all steps concurrently

        Yields:
            Single-key mappings {key: chunk}, interleaved in arrival order.
            Merging them gives the invoke() output.
        """
        if not self.steps:
            yield {}
            return

        queue: asyncio.Queue = asyncio.Queue()
        semaphore = self._semaphore(context)

        async def run_to_queue(key: str, step: Runnable) -> None:
            """Run a single step and put its chunks in the queue"""
            try:
                if semaphore is None:
                    await self._feed(queue, key, step, input, context)
                else:
                    async with semaphore:
                        await self._feed(queue, key, step, input, context)
                await queue.put(_Done(key))
            except asyncio.CancelledError:
                logger.debug(f"Parallel step '{key}' cancelled")
                raise
            except Exception as e:
                await queue.put(_Failed(key, e))

        async def watch_cancellation() -> None:
            await context.cancel_event.wait()
            await queue.put(_CANCELLED)

        tasks = [
            asyncio.create_task(run_to_queue(key, step), name=f"parallel-{key}")
            for key, step in self.steps.items()
        ]
        watcher = (
            asyncio.create_task(watch_cancellation())
            if context.cancel_event is not None
            else None
        )

        seen: Dict[str, Any] = {}
        done_count = 0
        total_count = len(tasks)
        try:
            while done_count < total_count:
                item = await queue.get()
                if isinstance(item, _Done):
                    done_count += 1
                    logger.debug(f"Parallel step '{item.key}' completed ({done_count}/{total_count})")
                elif isinstance(item, _Failed):
                    logger.debug(f"Parallel step '{item.key}' failed, cancelling the others")
                    raise item.error
                elif item is _CANCELLED:
                    context.raise_if_cancelled(partial=seen)
                else:
                    if context.return_partial:
                        seen = add_chunks(seen, item)
                    yield item
        finally:
            await cancel_and_wait([*tasks, watcher])

    async def _feed(
        self,
        queue: asyncio.Queue,
        key: str,
        step: Runnable,
        input: Any,
        context: ExecutionContext,
    ) -> None:
        produced = False
        async for chunk in step.stream(self._branch_input(input), context.child(key)):
            produced = True
            await queue.put({key: chunk})
        if not produced:
            await queue.put({key: None})

    def __and__(self, other: Union[Runnable, Mapping[str, Any]]) -> "RunnableParallel":
        """Merge another parallel group (or mapping of steps) into a new one"""
        if isinstance(other, RunnableParallel):
            return RunnableParallel(steps={**self.steps, **other.steps})
        if isinstance(other, Mapping):
            return RunnableParallel(steps={**self.steps, **other})
        return NotImplemented

"""Runnable - Core abstraction for composable units of work

This module defines the Runnable base class, which is the fundamental
abstraction for every unit in an execution graph: prompt templates, model
backends, output parsers, retrievers, plain functions and the composites
built from them.

A Runnable can:
1. Be executed in three modes: invoke, stream and batch
2. Consume a stream of input chunks (transform)
3. Be composed with other Runnables into a new Runnable

The public execution methods are the dispatch engine shared by every unit:
they check the input contract, honour cancellation, emit execution events,
log, and wrap failures of the unit's own work in ExecutionError. Subclasses
only implement _ainvoke and, when they can do better than the defaults,
_astream and _atransform.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncIterator,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Tuple,
    Type,
    Union,
)

from pydantic import BaseModel, Field, model_validator

from chainflow.exceptions import ChainError, ContractError, ExecutionError
from chainflow.logger import logger
from chainflow.runnable.context import ExecutionContext, ensure_context
from chainflow.runnable.utils import _NOTHING, add_chunks, cancel_and_wait, collect_chunks, gather_or_fail
from chainflow.schema import ExecutionEvent

if TYPE_CHECKING:
    from chainflow.runnable.binding import RunnableBinding
    from chainflow.runnable.passthrough import RunnableAssign
    from chainflow.runnable.retry import RunnableRetry
    from chainflow.runnable.sequence import RunnableSequence


TypeContract = Optional[Union[type, Tuple[type, ...]]]

_STREAM_END = object()


def describe_type(contract: TypeContract) -> str:
    if contract is None:
        return "any"
    if isinstance(contract, tuple):
        return " | ".join(t.__name__ for t in contract)
    return contract.__name__


def types_compatible(output_type: TypeContract, input_type: TypeContract) -> bool:
    """Whether a value of output_type can be consumed as input_type

    Opaque contracts (None) are always compatible; the mismatch, if any,
    surfaces at the first invocation.
    """
    if output_type is None or input_type is None:
        return True
    outputs = output_type if isinstance(output_type, tuple) else (output_type,)
    inputs = input_type if isinstance(input_type, tuple) else (input_type,)
    return any(issubclass(o, i) for o in outputs for i in inputs)


class Runnable(BaseModel, ABC):
    """Abstract base class for all composable units

    Runnables are immutable once constructed; composition always returns a
    new Runnable, so the same unit can be embedded in many graphs.

    Subclasses must implement:
    - _ainvoke(): The unit's own work on one whole input value

    Subclasses may override:
    - _astream(): Produce output incrementally (default: one chunk)
    - _atransform(): Consume input incrementally (default: buffer it)
    - input_type / output_type: Declare the unit's contract

    Attributes:
        id: Unique identifier for this Runnable instance
        name: Human-readable name (defaults to the class name)
    """

    id: Optional[str] = Field(default=None, description="Unique identifier (auto-generated if not provided)")
    name: Optional[str] = Field(default=None, description="Human-readable name")

    class Config:
        arbitrary_types_allowed = True
        frozen = True

    @model_validator(mode="after")
    def generate_id(self) -> "Runnable":
        """Fill in name and id if not provided"""
        if not self.name:
            object.__setattr__(self, "name", self.get_default_name())
        if not self.id:
            class_name = self.__class__.__name__.lower()
            short_uuid = uuid.uuid4().hex[:8]
            object.__setattr__(self, "id", f"{class_name}-{self.name}-{short_uuid}")
        return self

    def get_default_name(self) -> str:
        return self.__class__.__name__

    # =========================================================================
    # Contract
    # =========================================================================

    @property
    def input_type(self) -> TypeContract:
        """Accepted input type(s), None if opaque"""
        return None

    @property
    def output_type(self) -> TypeContract:
        """Produced output type(s), None if opaque"""
        return None

    @property
    def supports_incremental_input(self) -> bool:
        """Whether this unit consumes input chunks as they arrive"""
        return type(self)._atransform is not Runnable._atransform

    @property
    def accepts_parameters(self) -> bool:
        """Whether invocation parameters reach this unit's own work

        Composites have no work of their own to configure; parameters must be
        bound to the step that uses them.
        """
        return True

    def check_parameters(self, kwargs: Dict[str, Any]) -> None:
        """Raise ContractError if parameters are passed to a unit that ignores them"""
        if kwargs and not self.accepts_parameters:
            raise ContractError(
                f"'{self.name}' does not take invocation parameters "
                f"({', '.join(sorted(kwargs))}); bind them to the step that uses them"
            )

    def check_input(self, input: Any) -> None:
        """Raise ContractError if input does not satisfy input_type"""
        expected = self.input_type
        if expected is not None and not isinstance(input, expected):
            raise ContractError(
                f"'{self.name}' expects input of type {describe_type(expected)}, "
                f"got {type(input).__name__}"
            )

    # =========================================================================
    # Unit work (implemented by subclasses)
    # =========================================================================

    @abstractmethod
    async def _ainvoke(self, input: Any, context: ExecutionContext, **kwargs) -> Any:
        """Produce the whole output for one input value"""

    async def _astream(
        self, input: Any, context: ExecutionContext, **kwargs
    ) -> AsyncIterator[Any]:
        """Produce output chunks; without an incremental form, a single chunk"""
        yield await self._ainvoke(input, context, **kwargs)

    async def _atransform(
        self, chunks: AsyncIterator[Any], context: ExecutionContext, **kwargs
    ) -> AsyncIterator[Any]:
        """Consume input chunks; by default buffer them into one whole value"""
        final = await collect_chunks(chunks)
        self.check_input(final)
        async for chunk in self._astream(final, context, **kwargs):
            yield chunk

    # =========================================================================
    # Dispatch engine
    # =========================================================================

    async def invoke(
        self, input: Any, context: Optional[ExecutionContext] = None, **kwargs
    ) -> Any:
        """Execute on one input and return the fully materialized output

        Args:
            input: Input value
            context: Execution context (a default one is created if None)
            **kwargs: Invocation parameters for the unit's own work

        Returns:
            The unit's output

        Raises:
            ContractError: If input does not satisfy the unit's contract
            ExecutionError: If the unit's work failed
            CancellationError: If the caller signalled cancellation
        """
        run_context = ensure_context(context).child(self.name)
        self.check_parameters(kwargs)
        self.check_input(input)
        run_context.raise_if_cancelled()
        await self._emit(run_context, ExecutionEvent.start, data=input)
        logger.debug(f"{self._where(run_context)} invoke started")
        try:
            output = await self._ainvoke(input, run_context, **kwargs)
        except Exception as e:
            raise await self._handle_error(run_context, e)
        await self._emit(run_context, ExecutionEvent.done, data=output)
        logger.debug(f"{self._where(run_context)} invoke finished")
        return output

    async def stream(
        self, input: Any, context: Optional[ExecutionContext] = None, **kwargs
    ) -> AsyncIterator[Any]:
        """Execute on one input and yield output chunks as they are produced

        Concatenating the chunks in order gives the value invoke() returns.
        """
        run_context = ensure_context(context).child(self.name)
        self.check_parameters(kwargs)
        self.check_input(input)
        run_context.raise_if_cancelled()
        await self._emit(run_context, ExecutionEvent.start, data=input)
        logger.debug(f"{self._where(run_context)} stream started")
        async for chunk in self._guard_stream(
            self._astream(input, run_context, **kwargs), run_context
        ):
            yield chunk

    async def transform(
        self,
        chunks: AsyncIterator[Any],
        context: Optional[ExecutionContext] = None,
        **kwargs,
    ) -> AsyncIterator[Any]:
        """Execute on a stream of input chunks and yield output chunks

        Units that support incremental input start producing output before
        the input stream ends; every other unit buffers the whole input first.
        """
        run_context = ensure_context(context).child(self.name)
        self.check_parameters(kwargs)
        run_context.raise_if_cancelled()
        await self._emit(run_context, ExecutionEvent.start)
        logger.debug(
            f"{self._where(run_context)} transform started "
            f"({'incremental' if self.supports_incremental_input else 'buffered'})"
        )
        async for chunk in self._guard_stream(
            self._atransform(chunks, run_context, **kwargs), run_context
        ):
            yield chunk

    async def batch(
        self,
        inputs: Iterable[Any],
        context: Optional[ExecutionContext] = None,
        return_exceptions: bool = False,
        **kwargs,
    ) -> List[Any]:
        """Execute on many inputs concurrently, preserving input order

        Each item is invoked independently. Concurrency is bounded by
        context.max_concurrency.

        Args:
            inputs: Input values
            context: Execution context
            return_exceptions: If True, a failed item's exception is returned
                in its slot instead of being raised
            **kwargs: Invocation parameters for every item

        Returns:
            Outputs (or exceptions) aligned with inputs

        Raises:
            ChainError: The first item failure, after the remaining items have
                been cancelled (only when return_exceptions is False)
            CancellationError: If the caller signalled cancellation, in
                either mode
        """
        inputs = list(inputs)
        self.check_parameters(kwargs)
        if not inputs:
            return []
        context = ensure_context(context)
        semaphore = (
            asyncio.Semaphore(context.max_concurrency) if context.max_concurrency else None
        )

        async def invoke_one(item: Any) -> Any:
            if semaphore is None:
                return await self.invoke(item, context, **kwargs)
            async with semaphore:
                return await self.invoke(item, context, **kwargs)

        logger.debug(
            f"{self.name} batch of {len(inputs)} "
            f"(max_concurrency={context.max_concurrency}, return_exceptions={return_exceptions})"
        )
        tasks = {
            index: asyncio.create_task(invoke_one(item), name=f"{self.name}-batch-{index}")
            for index, item in enumerate(inputs)
        }
        results = await gather_or_fail(tasks, context, return_exceptions=return_exceptions)
        return [results[index] for index in range(len(inputs))]

    async def stream_events(
        self, input: Any, context: Optional[ExecutionContext] = None, **kwargs
    ) -> AsyncIterator[ExecutionEvent]:
        """Stream the execution events of this unit and every nested unit

        The unit's stream runs in a background task feeding a queue; errors
        are re-raised after the error events have been yielded.

        Yields:
            ExecutionEvent: START / CHUNK / DONE / ERROR events in emission order
        """
        queue: asyncio.Queue = asyncio.Queue()
        context = ensure_context(context).merge(event_queue=queue)

        async def drive() -> None:
            try:
                async for _ in self.stream(input, context, **kwargs):
                    pass
            finally:
                queue.put_nowait(_STREAM_END)

        task = asyncio.create_task(drive(), name=f"{self.name}-events")
        try:
            while True:
                item = await queue.get()
                if item is _STREAM_END:
                    break
                yield item
            await task
        finally:
            await cancel_and_wait([task])

    async def _guard_stream(
        self, chunks: AsyncIterator[Any], context: ExecutionContext
    ) -> AsyncIterator[Any]:
        """Wrap a chunk stream with cancellation checks, events and error handling"""
        tracing = context.event_queue is not None
        collecting = tracing or context.return_partial
        final = _NOTHING
        try:
            async for chunk in chunks:
                context.raise_if_cancelled(partial=None if final is _NOTHING else final)
                if collecting:
                    final = chunk if final is _NOTHING else add_chunks(final, chunk)
                if tracing:
                    await self._emit(context, ExecutionEvent.chunk, data=chunk)
                yield chunk
        except Exception as e:
            raise await self._handle_error(context, e)
        finally:
            aclose = getattr(chunks, "aclose", None)
            if aclose is not None:
                await aclose()
        await self._emit(context, ExecutionEvent.done, data=None if final is _NOTHING else final)
        logger.debug(f"{self._where(context)} stream finished")

    async def _handle_error(self, context: ExecutionContext, error: Exception) -> ChainError:
        """Emit an error event and return the exception to raise

        ChainErrors propagate unchanged; anything else is wrapped once in
        ExecutionError with the original as its cause.
        """
        if isinstance(error, ChainError):
            logger.debug(f"{self._where(context)} propagating {type(error).__name__}: {error}")
            result = error
        else:
            result = ExecutionError(self.name, error)
            result.__cause__ = error
            logger.error(f"{self._where(context)} {result}")
        await self._emit(context, ExecutionEvent.failed, error=str(result))
        return result

    async def _emit(self, context: ExecutionContext, factory: Callable[..., ExecutionEvent], **kwargs) -> None:
        if context.event_queue is None:
            return
        await context.emit(
            factory(
                self.name,
                run_id=self.id,
                execution_path=list(context.execution_path),
                tags=list(context.tags),
                **kwargs,
            )
        )

    @staticmethod
    def _where(context: ExecutionContext) -> str:
        return " > ".join(context.execution_path)

    # =========================================================================
    # Composition
    # =========================================================================

    def __or__(self, other: Any) -> "RunnableSequence":
        """Support pipe operator: runnable1 | runnable2

        The output of this Runnable becomes the input of the other. Dicts
        and callables are coerced into Runnables.
        """
        from chainflow.runnable.sequence import RunnableSequence
        try:
            other = coerce_to_runnable(other)
        except TypeError:
            return NotImplemented
        return RunnableSequence.from_pair(self, other)

    def __ror__(self, other: Any) -> "RunnableSequence":
        """Support pipe operator with a dict or callable on the left"""
        from chainflow.runnable.sequence import RunnableSequence
        try:
            other = coerce_to_runnable(other)
        except TypeError:
            return NotImplemented
        return RunnableSequence.from_pair(other, self)

    def pipe(self, *others: Any) -> "Runnable":
        """Chain several Runnables after this one"""
        result: Runnable = self
        for other in others:
            result = result | other
        return result

    def bind(self, **kwargs) -> "RunnableBinding":
        """Return a new Runnable that always passes kwargs to this one

        Example:
            model.bind(stop=["Ronaldo"])
        """
        from chainflow.runnable.binding import RunnableBinding
        return RunnableBinding(bound=self, kwargs=kwargs)

    def with_config(self, **context_fields) -> "RunnableBinding":
        """Return a new Runnable that always runs with these context fields

        Example:
            chain.with_config(max_concurrency=2, tags=["tutorial"])
        """
        from chainflow.runnable.binding import RunnableBinding
        unknown = set(context_fields) - set(ExecutionContext.model_fields)
        if unknown:
            raise ValueError(f"Unknown context field(s): {', '.join(sorted(unknown))}")
        return RunnableBinding(bound=self, context_overrides=context_fields)

    def with_retry(
        self,
        max_attempts: int = 3,
        retry_on: Tuple[Type[BaseException], ...] = (ExecutionError,),
        wait_min: float = 1,
        wait_max: float = 60,
    ) -> "RunnableRetry":
        """Return a new Runnable that retries this one on failure"""
        from chainflow.runnable.retry import RunnableRetry
        return RunnableRetry(
            bound=self,
            max_attempts=max_attempts,
            retry_on=retry_on,
            wait_min=wait_min,
            wait_max=wait_max,
        )

    def assign(self, **kwargs: Any) -> "RunnableSequence":
        """Pipe this Runnable's mapping output into an Assign of new fields"""
        from chainflow.runnable.passthrough import RunnableAssign
        return self | RunnableAssign.from_fields(**kwargs)


def coerce_to_runnable(thing: Any) -> Runnable:
    """Turn a Runnable, mapping of steps or callable into a Runnable

    Raises:
        TypeError: If the value cannot be used as a unit
    """
    if isinstance(thing, Runnable):
        return thing
    if isinstance(thing, dict):
        from chainflow.runnable.parallel import RunnableParallel
        return RunnableParallel.from_steps(thing)
    if callable(thing):
        from chainflow.runnable.function import RunnableLambda
        return RunnableLambda(func=thing)
    raise TypeError(f"Cannot use {type(thing).__name__} as a Runnable")

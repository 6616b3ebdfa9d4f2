"""Function adapters - Plain callables as Runnables

RunnableLambda wraps any sync or async function (or generator function)
that takes one input value. RunnableGenerator wraps a function that
consumes a stream of input chunks, which lets user code take part in
incremental pipelining.
"""

import inspect
from typing import Any, AsyncIterator, Callable, Dict

from pydantic import Field

from chainflow.exceptions import ContractError
from chainflow.runnable.base import Runnable
from chainflow.runnable.context import ExecutionContext
from chainflow.runnable.utils import collect_chunks, iterate_once


def _function_name(func: Callable[..., Any]) -> str:
    name = getattr(func, "__name__", None) or type(func).__name__
    return "lambda" if name == "<lambda>" else name


class RunnableLambda(Runnable):
    """Runnable wrapping a function of one argument

    - sync or async functions: one output value
    - sync or async generator functions: each yielded value is a chunk
    - a returned Runnable is invoked on the same input

    Parameters bound with bind() are passed as keyword arguments and must
    match the function's signature.

    Example:
        RunnableLambda(func=lambda name: f"{name}ovich")
    """

    func: Callable[..., Any] = Field(..., description="Function of the input value")

    def get_default_name(self) -> str:
        return _function_name(self.func)

    def _bound_arguments(self, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        if not kwargs:
            return {}
        try:
            parameters = inspect.signature(self.func).parameters.values()
        except (TypeError, ValueError):
            parameters = []
        if any(p.kind is inspect.Parameter.VAR_KEYWORD for p in parameters):
            return kwargs
        accepted = {p.name for p in parameters}
        unexpected = sorted(set(kwargs) - accepted)
        if unexpected:
            raise ContractError(
                f"'{self.name}' does not accept parameter(s): {', '.join(unexpected)}"
            )
        return kwargs

    async def _ainvoke(self, input: Any, context: ExecutionContext, **kwargs) -> Any:
        if inspect.isasyncgenfunction(self.func) or inspect.isgeneratorfunction(self.func):
            return await collect_chunks(self._astream(input, context, **kwargs))
        result = self.func(input, **self._bound_arguments(kwargs))
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, Runnable):
            return await result.invoke(input, context)
        return result

    async def _astream(
        self, input: Any, context: ExecutionContext, **kwargs
    ) -> AsyncIterator[Any]:
        arguments = self._bound_arguments(kwargs)
        if inspect.isasyncgenfunction(self.func):
            async for chunk in self.func(input, **arguments):
                yield chunk
        elif inspect.isgeneratorfunction(self.func):
            for chunk in self.func(input, **arguments):
                yield chunk
        else:
            result = self.func(input, **arguments)
            if inspect.isawaitable(result):
                result = await result
            if isinstance(result, Runnable):
                async for chunk in result.stream(input, context):
                    yield chunk
            else:
                yield result


class RunnableGenerator(Runnable):
    """Runnable wrapping an async generator over input chunks

    The function receives an async iterator of input chunks and yields
    output chunks, so a sequence feeds it each upstream chunk as soon as
    it arrives.

    Example:
        async def shout(chunks):
            async for chunk in chunks:
                yield chunk.upper()

        chain = model | StrOutputParser() | RunnableGenerator(transform_func=shout)
    """

    transform_func: Callable[[AsyncIterator[Any]], AsyncIterator[Any]] = Field(
        ..., description="Async generator function over input chunks"
    )

    def get_default_name(self) -> str:
        return _function_name(self.transform_func)

    async def _ainvoke(self, input: Any, context: ExecutionContext, **kwargs) -> Any:
        return await collect_chunks(self._atransform(iterate_once(input), context, **kwargs))

    async def _astream(
        self, input: Any, context: ExecutionContext, **kwargs
    ) -> AsyncIterator[Any]:
        async for chunk in self._atransform(iterate_once(input), context, **kwargs):
            yield chunk

    async def _atransform(
        self, chunks: AsyncIterator[Any], context: ExecutionContext, **kwargs
    ) -> AsyncIterator[Any]:
        async for chunk in self.transform_func(chunks, **kwargs):
            yield chunk

"""Binding - Static invocation parameters attached to a Runnable

A RunnableBinding injects fixed keyword arguments and/or context fields at
the boundary of the wrapped Runnable on every invoke, stream, transform
and batch. The wrapped Runnable is not touched and stays usable unbound.
"""

from typing import Any, AsyncIterator, Dict

from pydantic import Field

from chainflow.runnable.base import Runnable, TypeContract
from chainflow.runnable.context import ExecutionContext


class RunnableBinding(Runnable):
    """Runnable with bound parameters

    Bound keyword arguments take precedence over the caller's, so every
    invocation runs with the same bound values.

    Example:
        model.bind(stop=["Ronaldo"])
        chain.with_config(max_concurrency=4)

    Attributes:
        bound: The wrapped Runnable
        kwargs: Keyword arguments passed to the wrapped Runnable's work
        context_overrides: ExecutionContext fields merged into the caller's context
    """

    bound: Runnable = Field(..., description="The wrapped Runnable")
    kwargs: Dict[str, Any] = Field(
        default_factory=dict,
        description="Keyword arguments passed on every invocation"
    )
    context_overrides: Dict[str, Any] = Field(
        default_factory=dict,
        description="ExecutionContext fields applied on every invocation"
    )

    def get_default_name(self) -> str:
        return self.bound.name

    @property
    def input_type(self) -> TypeContract:
        return self.bound.input_type

    @property
    def output_type(self) -> TypeContract:
        return self.bound.output_type

    @property
    def supports_incremental_input(self) -> bool:
        return self.bound.supports_incremental_input

    def _context(self, context: ExecutionContext) -> ExecutionContext:
        return context.merge(**self.context_overrides)

    def _kwargs(self, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        return {**kwargs, **self.kwargs}

    async def _ainvoke(self, input: Any, context: ExecutionContext, **kwargs) -> Any:
        return await self.bound.invoke(input, self._context(context), **self._kwargs(kwargs))

    async def _astream(
        self, input: Any, context: ExecutionContext, **kwargs
    ) -> AsyncIterator[Any]:
        async for chunk in self.bound.stream(input, self._context(context), **self._kwargs(kwargs)):
            yield chunk

    async def _atransform(
        self, chunks: AsyncIterator[Any], context: ExecutionContext, **kwargs
    ) -> AsyncIterator[Any]:
        async for chunk in self.bound.transform(chunks, self._context(context), **self._kwargs(kwargs)):
            yield chunk

    def bind(self, **kwargs) -> "RunnableBinding":
        """Bind more parameters, returning a new binding of the same Runnable"""
        return RunnableBinding(
            bound=self.bound,
            kwargs={**self.kwargs, **kwargs},
            context_overrides=self.context_overrides,
        )

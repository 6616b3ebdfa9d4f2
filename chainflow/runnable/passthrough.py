"""Passthrough and Assign

RunnablePassthrough returns its input unchanged. RunnableAssign carries a
mapping input forward and adds fields computed from it.
"""

from typing import Any, AsyncIterator, Callable, Dict, Optional

from pydantic import Field

from chainflow.runnable.base import Runnable, TypeContract
from chainflow.runnable.context import ExecutionContext
from chainflow.runnable.parallel import RunnableParallel
from chainflow.runnable.utils import _NOTHING, add_chunks, call_maybe_async


class RunnablePassthrough(Runnable):
    """Identity Runnable

    Passes input chunks through as they arrive when streamed.

    Attributes:
        func: Optional observer called with the whole input (its result is ignored)
    """

    func: Optional[Callable[[Any], Any]] = Field(
        default=None,
        description="Observer called with the input; the input is still returned unchanged"
    )

    def get_default_name(self) -> str:
        return "passthrough"

    async def _ainvoke(self, input: Any, context: ExecutionContext, **kwargs) -> Any:
        if self.func is not None:
            await call_maybe_async(self.func, input)
        return input

    async def _atransform(
        self, chunks: AsyncIterator[Any], context: ExecutionContext, **kwargs
    ) -> AsyncIterator[Any]:
        final = _NOTHING
        async for chunk in chunks:
            if self.func is not None:
                final = chunk if final is _NOTHING else add_chunks(final, chunk)
            yield chunk
        if self.func is not None and final is not _NOTHING:
            await call_maybe_async(self.func, final)

    @classmethod
    def assign(cls, **kwargs: Any) -> "RunnableAssign":
        """Pass a mapping input through, adding the given computed fields

        Example:
            RunnablePassthrough.assign(lastname=lambda x: x["name"] + "OVICH")
        """
        return RunnableAssign.from_fields(**kwargs)


class RunnableAssign(Runnable):
    """Carry a mapping forward and add computed fields

    Every new field is computed concurrently from the original input; no
    field sees the value of a sibling computed in the same assign. On a key
    collision the computed field overwrites the original one.

    Attributes:
        mapper: Parallel group computing the new fields
    """

    mapper: RunnableParallel = Field(..., description="Computes the new fields")

    @classmethod
    def from_fields(cls, **kwargs: Any) -> "RunnableAssign":
        return cls(mapper=RunnableParallel.from_steps(kwargs))

    def get_default_name(self) -> str:
        return "assign(" + ", ".join(self.mapper.steps) + ")"

    @property
    def input_type(self) -> TypeContract:
        return dict

    @property
    def output_type(self) -> TypeContract:
        return dict

    @property
    def accepts_parameters(self) -> bool:
        return False

    async def _ainvoke(self, input: Dict[str, Any], context: ExecutionContext, **kwargs) -> Dict[str, Any]:
        computed = await self.mapper.invoke(input, context)
        return {**input, **computed}

    async def _astream(
        self, input: Dict[str, Any], context: ExecutionContext, **kwargs
    ) -> AsyncIterator[Dict[str, Any]]:
        """Yield the carried-over fields first, then the computed field chunks"""
        yield {key: value for key, value in input.items() if key not in self.mapper.steps}
        async for chunk in self.mapper.stream(input, context):
            yield chunk

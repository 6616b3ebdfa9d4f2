"""Sequence - Sequential composition of Runnables

A RunnableSequence feeds the output of each step into the next one.
Building one never alters its steps, so each step stays reusable on its own.
"""

from typing import Any, AsyncIterator, List

from pydantic import Field, model_validator

from chainflow.exceptions import ContractError
from chainflow.logger import logger
from chainflow.runnable.base import (
    Runnable,
    TypeContract,
    coerce_to_runnable,
    describe_type,
    types_compatible,
)
from chainflow.runnable.context import ExecutionContext


class RunnableSequence(Runnable):
    """Sequence for chaining Runnables

    Executes steps one after another, the output of each step becoming
    the input of the next one.

    Supports the | operator for chaining:
        chain = prompt | model | parser

    Streaming picks a strategy per step by capability: a step that
    consumes input incrementally receives the previous step's chunks as
    they arrive, any other step receives the buffered whole value.

    Attributes:
        steps: Runnables to execute in order (at least two)
    """

    steps: List[Runnable] = Field(
        ...,
        min_length=2,
        description="Runnables to execute in sequence"
    )

    @model_validator(mode="after")
    def check_contracts(self) -> "RunnableSequence":
        """Reject adjacent steps whose declared contracts cannot connect"""
        for first, second in zip(self.steps, self.steps[1:]):
            if not types_compatible(first.output_type, second.input_type):
                raise ContractError(
                    f"Cannot pipe '{first.name}' ({describe_type(first.output_type)}) "
                    f"into '{second.name}' ({describe_type(second.input_type)})"
                )
        return self

    @classmethod
    def from_pair(cls, first: Runnable, second: Runnable) -> "RunnableSequence":
        """Compose two Runnables, flattening nested sequences"""
        steps = [
            *(first.steps if isinstance(first, RunnableSequence) else [first]),
            *(second.steps if isinstance(second, RunnableSequence) else [second]),
        ]
        return cls(steps=steps)

    def get_default_name(self) -> str:
        return " | ".join(step.name for step in self.steps)

    @property
    def first(self) -> Runnable:
        return self.steps[0]

    @property
    def last(self) -> Runnable:
        return self.steps[-1]

    @property
    def input_type(self) -> TypeContract:
        return self.first.input_type

    @property
    def output_type(self) -> TypeContract:
        return self.last.output_type

    @property
    def supports_incremental_input(self) -> bool:
        return self.first.supports_incremental_input

    @property
    def accepts_parameters(self) -> bool:
        return False

    async def _ainvoke(self, input: Any, context: ExecutionContext, **kwargs) -> Any:
        """Execute all steps sequentially

        A failing step short-circuits the sequence; its error propagates
        unchanged and later steps never run.
        """
        value = input
        for step in self.steps:
            value = await step.invoke(value, context)
        return value

    async def _astream(
        self, input: Any, context: ExecutionContext, **kwargs
    ) -> AsyncIterator[Any]:
        async for chunk in self._pipeline(self.first.stream(input, context), context):
            yield chunk

    async def _atransform(
        self, chunks: AsyncIterator[Any], context: ExecutionContext, **kwargs
    ) -> AsyncIterator[Any]:
        async for chunk in self._pipeline(self.first.transform(chunks, context), context):
            yield chunk

    def _pipeline(
        self, head: AsyncIterator[Any], context: ExecutionContext
    ) -> AsyncIterator[Any]:
        """Chain the remaining steps onto the first step's chunk stream"""
        stream = head
        for step in self.steps[1:]:
            logger.debug(
                f"{self.name}: '{step.name}' "
                f"{'pipelines chunks' if step.supports_incremental_input else 'buffers input'}"
            )
            stream = step.transform(stream, context)
        return stream


def pipe(first: Any, second: Any, *rest: Any) -> RunnableSequence:
    """Compose units into a new sequence without altering any of them

    Example:
        chain = pipe(prompt, model, StrOutputParser())
    """
    return coerce_to_runnable(first).pipe(second, *rest)

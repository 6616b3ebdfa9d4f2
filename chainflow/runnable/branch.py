"""Branch - Conditional routing between Runnables

A RunnableBranch evaluates its conditions in declaration order against the
input and runs the Runnable paired with the first one that holds, or the
default Runnable when none does.
"""

from typing import Any, AsyncIterator, Callable, List, Optional, Tuple

from pydantic import Field

from chainflow.exceptions import ContractError, RoutingExhaustedError
from chainflow.logger import logger
from chainflow.runnable.base import Runnable, coerce_to_runnable
from chainflow.runnable.context import ExecutionContext
from chainflow.runnable.utils import call_maybe_async

Condition = Callable[[Any], Any]


class RunnableBranch(Runnable):
    """Ordered (condition, Runnable) pairs plus a default

    Conditions must be side-effect-free; they may be sync or async
    callables. The route is chosen once per input and kept for the whole
    invocation or stream.

    Example:
        RunnableBranch.from_branches(
            (lambda x: x["topic"] == "rock", rock_prompt),
            (lambda x: x["topic"] == "politics", politics_prompt),
            general_prompt,
        )

    Attributes:
        branches: (condition, Runnable) pairs, evaluated in order
        default: Runnable used when no condition holds
    """

    branches: List[Tuple[Condition, Runnable]] = Field(
        default_factory=list,
        description="(condition, Runnable) pairs evaluated in order"
    )
    default: Optional[Runnable] = Field(
        default=None,
        description="Runnable used when no condition holds"
    )

    @classmethod
    def from_branches(cls, *branches: Any, **kwargs: Any) -> "RunnableBranch":
        """Build from (condition, runnable) pairs followed by the default

        Raises:
            ContractError: If the default is missing or a pair is malformed
        """
        if not branches or isinstance(branches[-1], tuple):
            raise ContractError("RunnableBranch requires a default Runnable as its last argument")
        *pairs, default = branches
        coerced = []
        for pair in pairs:
            if not isinstance(pair, tuple) or len(pair) != 2 or not callable(pair[0]):
                raise ContractError(
                    f"RunnableBranch expects (condition, runnable) pairs, got {pair!r}"
                )
            condition, runnable = pair
            coerced.append((condition, coerce_to_runnable(runnable)))
        return cls(branches=coerced, default=coerce_to_runnable(default), **kwargs)

    def get_default_name(self) -> str:
        return "branch"

    @property
    def accepts_parameters(self) -> bool:
        return False

    async def route(self, input: Any) -> Runnable:
        """Select the Runnable for this input

        Raises:
            RoutingExhaustedError: If no condition holds and there is no default
        """
        for index, (condition, runnable) in enumerate(self.branches):
            if await call_maybe_async(condition, input):
                logger.debug(f"{self.name} routed to branch {index} '{runnable.name}'")
                return runnable
        if self.default is None:
            raise RoutingExhaustedError(
                f"'{self.name}': none of {len(self.branches)} conditions matched and no default is set"
            )
        logger.debug(f"{self.name} routed to default '{self.default.name}'")
        return self.default

    async def _ainvoke(self, input: Any, context: ExecutionContext, **kwargs) -> Any:
        runnable = await self.route(input)
        return await runnable.invoke(input, context)

    async def _astream(
        self, input: Any, context: ExecutionContext, **kwargs
    ) -> AsyncIterator[Any]:
        runnable = await self.route(input)
        async for chunk in runnable.stream(input, context):
            yield chunk

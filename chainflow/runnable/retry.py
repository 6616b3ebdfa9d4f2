"""Retry - Re-run a flaky Runnable

The composition engine itself never retries. RunnableRetry is an opt-in
wrapper for units backed by unreliable external work, built on tenacity.
"""

from typing import Any, Tuple, Type

from pydantic import Field
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from chainflow.exceptions import ExecutionError
from chainflow.logger import logger
from chainflow.runnable.base import Runnable, TypeContract
from chainflow.runnable.context import ExecutionContext


class RunnableRetry(Runnable):
    """Runnable that retries the wrapped Runnable's invocation

    Streaming is not retried chunk by chunk: a stream yields the retried
    invocation's output as one chunk.

    Attributes:
        bound: The wrapped Runnable
        max_attempts: Total attempts, including the first one
        retry_on: Exception types that trigger another attempt
        wait_min: Minimum wait between attempts, in seconds
        wait_max: Maximum wait between attempts, in seconds
    """

    bound: Runnable = Field(..., description="The wrapped Runnable")
    max_attempts: int = Field(default=3, ge=1, description="Total attempts")
    retry_on: Tuple[Type[BaseException], ...] = Field(
        default=(ExecutionError,),
        description="Exception types that trigger a retry"
    )
    wait_min: float = Field(default=1, ge=0, description="Minimum wait in seconds")
    wait_max: float = Field(default=60, ge=0, description="Maximum wait in seconds")

    def get_default_name(self) -> str:
        return self.bound.name

    @property
    def input_type(self) -> TypeContract:
        return self.bound.input_type

    @property
    def output_type(self) -> TypeContract:
        return self.bound.output_type

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"{self.name} attempt {retry_state.attempt_number}/{self.max_attempts} "
            f"failed: {error}; retrying"
        )

    async def _ainvoke(self, input: Any, context: ExecutionContext, **kwargs) -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_random_exponential(min=self.wait_min, max=self.wait_max),
            retry=retry_if_exception_type(self.retry_on),
            before_sleep=self._log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self.bound.invoke(input, context, **kwargs)

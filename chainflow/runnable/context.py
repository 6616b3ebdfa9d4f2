"""Execution Context - Per-call configuration passed between Runnables

The ExecutionContext carries everything a run needs besides its input:
tags and metadata, the concurrency bound, the caller's cancellation
signal and the sink for execution events. Composites hand it down to
their children, extending the execution path on the way.
"""

import asyncio
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pydantic import BaseModel, Field

from chainflow.exceptions import CancellationError
from chainflow.schema import ExecutionEvent

if TYPE_CHECKING:
    from chainflow.config import EngineSettings


class ExecutionContext(BaseModel):
    """Execution context passed between Runnables

    The context follows an immutable pattern - modifications return
    a new context instance rather than mutating the original.
    """

    run_name: Optional[str] = Field(
        default=None,
        description="Name of the root run"
    )
    tags: List[str] = Field(
        default_factory=list,
        description="Tags attached to every event of the run"
    )
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Arbitrary data shared with every unit of the run"
    )

    # Concurrency control
    max_concurrency: Optional[int] = Field(
        default=None,
        ge=1,
        description="Maximum concurrent branches / batch items (None = unbounded)"
    )

    # Tracing
    execution_path: List[str] = Field(
        default_factory=list,
        description="Names of the units from the root to the current one"
    )
    event_queue: Optional[asyncio.Queue] = Field(
        default=None,
        repr=False,
        description="Sink for ExecutionEvents (set by stream_events)"
    )

    # Cancellation
    cancel_event: Optional[asyncio.Event] = Field(
        default=None,
        repr=False,
        description="Cooperative cancellation signal set by the caller"
    )
    return_partial: bool = Field(
        default=False,
        description="Attach already completed results to CancellationError"
    )

    class Config:
        arbitrary_types_allowed = True
        frozen = True

    @classmethod
    def from_settings(cls, settings: "EngineSettings", **kwargs) -> "ExecutionContext":
        """Create a context from engine settings

        Args:
            settings: Engine settings (usually config.engine)
            **kwargs: Field overrides

        Returns:
            New ExecutionContext
        """
        values = {
            "max_concurrency": settings.max_concurrency,
            "return_partial": settings.return_partial,
            "tags": list(settings.tags),
        }
        values.update(kwargs)
        return cls(**values)

    def child(self, segment: str) -> "ExecutionContext":
        """Return a context one level deeper in the execution path"""
        return self.model_copy(update={"execution_path": [*self.execution_path, segment]})

    def merge(self, **kwargs) -> "ExecutionContext":
        """Merge field values and return new context

        Tags are appended and metadata is merged; every other field is
        replaced.

        Raises:
            ValueError: If a field name is unknown
        """
        if not kwargs:
            return self
        unknown = set(kwargs) - set(type(self).model_fields)
        if unknown:
            raise ValueError(f"Unknown context field(s): {', '.join(sorted(unknown))}")
        updates = dict(kwargs)
        if "tags" in updates:
            updates["tags"] = [*self.tags, *(t for t in updates["tags"] if t not in self.tags)]
        if "metadata" in updates:
            updates["metadata"] = {**self.metadata, **updates["metadata"]}
        return self.model_validate({**self._field_values(), **updates})

    def _field_values(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in type(self).model_fields}

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def raise_if_cancelled(self, partial: Any = None) -> None:
        """Raise CancellationError if the caller has signalled cancellation"""
        if self.cancelled:
            where = " > ".join(self.execution_path) or "root"
            raise CancellationError(
                f"Execution cancelled at {where}",
                partial=partial if self.return_partial else None,
            )

    async def emit(self, event: ExecutionEvent) -> None:
        """Put an event into the event sink, if any"""
        if self.event_queue is not None:
            await self.event_queue.put(event)


def ensure_context(context: Optional[ExecutionContext] = None) -> ExecutionContext:
    """Return the given context or a fresh default one"""
    return context if context is not None else ExecutionContext()

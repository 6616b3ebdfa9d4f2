"""Schema definitions for chainflow

This module contains the pydantic models and enums shared by runnables,
prompts, parsers and model backends.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Message Types
# =============================================================================

Role = Literal["system", "human", "ai"]

ROLE_ALIASES: Dict[str, str] = {
    "system": "system",
    "human": "human",
    "user": "human",
    "ai": "ai",
    "assistant": "ai",
}


def normalize_role(role: str) -> str:
    """Map a role name or alias ('user', 'assistant') to system/human/ai

    Raises:
        ValueError: If the role is unknown
    """
    try:
        return ROLE_ALIASES[role]
    except KeyError:
        raise ValueError(
            f"Invalid role: {role!r} (expected one of {', '.join(ROLE_ALIASES)})"
        ) from None


class ChatMessage(BaseModel):
    """A role-tagged chat message

    Streaming model backends emit ChatMessage chunks with the same role;
    adding two chunks concatenates their content.
    """

    role: Role = Field(...)
    content: str = Field(default="")

    class Config:
        frozen = True

    def __add__(self, other) -> "ChatMessage":
        """Concatenate two chunks of the same message"""
        if isinstance(other, ChatMessage):
            if other.role != self.role:
                raise TypeError(
                    f"Cannot concatenate '{self.role}' and '{other.role}' messages"
                )
            return ChatMessage(role=self.role, content=self.content + other.content)
        if isinstance(other, str):
            return ChatMessage(role=self.role, content=self.content + other)
        raise TypeError(
            f"unsupported operand type(s) for +: '{type(self).__name__}' and '{type(other).__name__}'"
        )

    def to_dict(self) -> dict:
        """Convert message to dictionary format"""
        return {"role": self.role, "content": self.content}

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        """Create a system message"""
        return cls(role="system", content=content)

    @classmethod
    def human(cls, content: str) -> "ChatMessage":
        """Create a human message"""
        return cls(role="human", content=content)

    @classmethod
    def ai(cls, content: str) -> "ChatMessage":
        """Create an ai message"""
        return cls(role="ai", content=content)


# =============================================================================
# Retrieval Types
# =============================================================================

class Document(BaseModel):
    """A retrieved passage"""

    page_content: str = Field(..., description="Passage text")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Source metadata")

    def __str__(self) -> str:
        return self.page_content


# =============================================================================
# Execution Events
# =============================================================================

class ExecutionEventType(str, Enum):
    """Event types emitted while a runnable executes"""
    START = "start"      # Unit started
    CHUNK = "chunk"      # Unit produced a streamed chunk
    DONE = "done"        # Unit completed
    ERROR = "error"      # Unit failed


class ExecutionEvent(BaseModel):
    """Streaming event for every unit in an execution graph

    Attributes:
        type: Event type
        name: Name of the unit that emitted the event
        run_id: Id of the unit that emitted the event
        execution_path: Names of the units from the root down to the emitter
        data: Input (START), chunk (CHUNK) or output (DONE)
        error: Error message (ERROR)
        tags: Tags of the run
    """

    type: ExecutionEventType = Field(..., description="Event type")
    name: str = Field(..., description="Emitting unit name")
    run_id: Optional[str] = Field(default=None, description="Emitting unit id")
    execution_path: List[str] = Field(
        default_factory=list,
        description="Path of execution (e.g., ['sequence', 'parallel', 'context', 'retriever'])"
    )
    data: Any = Field(default=None, description="Event payload")
    error: Optional[str] = Field(default=None, description="Error message")
    tags: List[str] = Field(default_factory=list, description="Run tags")

    @property
    def depth(self) -> int:
        """Nesting depth (0 for the root unit)"""
        return max(len(self.execution_path) - 1, 0)

    # =========================================================================
    # Factory methods
    # =========================================================================

    @classmethod
    def start(cls, name: str, data: Any = None, **kwargs) -> "ExecutionEvent":
        """Create a start event"""
        return cls(type=ExecutionEventType.START, name=name, data=data, **kwargs)

    @classmethod
    def chunk(cls, name: str, data: Any, **kwargs) -> "ExecutionEvent":
        """Create a chunk event"""
        return cls(type=ExecutionEventType.CHUNK, name=name, data=data, **kwargs)

    @classmethod
    def done(cls, name: str, data: Any = None, **kwargs) -> "ExecutionEvent":
        """Create a done event"""
        return cls(type=ExecutionEventType.DONE, name=name, data=data, **kwargs)

    @classmethod
    def failed(cls, name: str, error: str, **kwargs) -> "ExecutionEvent":
        """Create an error event"""
        return cls(type=ExecutionEventType.ERROR, name=name, error=error, **kwargs)

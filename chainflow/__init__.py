"""chainflow - Compose prompts, models, parsers and functions into runnable chains"""

from chainflow.exceptions import (
    CancellationError,
    ChainError,
    ContractError,
    ExecutionError,
    MissingVariableError,
    OutputParserError,
    ParseError,
    RoutingExhaustedError,
    SchemaMismatchError,
)
from chainflow.runnable import (
    ExecutionContext,
    Runnable,
    RunnableAssign,
    RunnableBinding,
    RunnableBranch,
    RunnableGenerator,
    RunnableLambda,
    RunnableParallel,
    RunnablePassthrough,
    RunnableRetry,
    RunnableSequence,
    pipe,
)
from chainflow.schema import ChatMessage, Document, ExecutionEvent, ExecutionEventType

__version__ = "0.1.0"

__all__ = [
    "Runnable",
    "ExecutionContext",
    "RunnableSequence",
    "RunnableParallel",
    "RunnableBranch",
    "RunnablePassthrough",
    "RunnableAssign",
    "RunnableLambda",
    "RunnableGenerator",
    "RunnableBinding",
    "RunnableRetry",
    "pipe",
    "ChatMessage",
    "Document",
    "ExecutionEvent",
    "ExecutionEventType",
    "ChainError",
    "ContractError",
    "MissingVariableError",
    "ExecutionError",
    "OutputParserError",
    "ParseError",
    "SchemaMismatchError",
    "RoutingExhaustedError",
    "CancellationError",
]

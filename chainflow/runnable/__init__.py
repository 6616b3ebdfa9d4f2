"""Runnable framework - Composition and dispatch of units of work

Every unit of work (prompt formatting, model invocation, output parsing,
retrieval, plain functions) is a Runnable. Runnables compose into new
Runnables, and every Runnable executes in three modes:

    output = await runnable.invoke(input)
    async for chunk in runnable.stream(input): ...
    outputs = await runnable.batch([input1, input2])

Key Components:
- Runnable: Abstract base class and dispatch engine for all units
- ExecutionContext: Per-call configuration passed down the graph

Combinators:
- RunnableSequence: a | b, pipe(a, b)
- RunnableParallel: fan-out to named units, merged into a mapping
- RunnableBranch: ordered (condition, unit) pairs plus a default
- RunnablePassthrough / RunnableAssign: identity, and identity plus new fields
- RunnableLambda / RunnableGenerator: functions as units
- RunnableBinding: unit.bind(**kwargs), unit.with_config(**fields)
- RunnableRetry: unit.with_retry(...)

Example Usage:
    from chainflow.runnable import RunnableParallel, RunnablePassthrough

    chain = (
        RunnableParallel.from_steps(context=retriever, question=RunnablePassthrough())
        | prompt
        | model
        | StrOutputParser()
    )
    answer = await chain.invoke("who are the alumni?")
"""

from chainflow.runnable.base import Runnable, coerce_to_runnable
from chainflow.runnable.binding import RunnableBinding
from chainflow.runnable.branch import RunnableBranch
from chainflow.runnable.context import ExecutionContext
from chainflow.runnable.function import RunnableGenerator, RunnableLambda
from chainflow.runnable.parallel import RunnableParallel
from chainflow.runnable.passthrough import RunnableAssign, RunnablePassthrough
from chainflow.runnable.retry import RunnableRetry
from chainflow.runnable.sequence import RunnableSequence, pipe
from chainflow.runnable.utils import add_chunks

__all__ = [
    # Core abstraction
    "Runnable",
    "coerce_to_runnable",
    # Context
    "ExecutionContext",
    # Composition
    "RunnableSequence",
    "pipe",
    "RunnableParallel",
    "RunnableBranch",
    "RunnablePassthrough",
    "RunnableAssign",
    "RunnableLambda",
    "RunnableGenerator",
    "RunnableBinding",
    "RunnableRetry",
    # Streaming
    "add_chunks",
]

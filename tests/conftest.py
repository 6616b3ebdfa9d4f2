from typing import Any, AsyncIterator, List

import pytest

from chainflow.prompts import PromptTemplate
from chainflow.runnable import RunnableLambda, add_chunks


async def collect(stream: AsyncIterator[Any]) -> List[Any]:
    """Drain an async iterator into a list"""
    return [chunk async for chunk in stream]


def merge(chunks: List[Any]) -> Any:
    """Concatenate stream chunks the way the engine does"""
    result = chunks[0]
    for chunk in chunks[1:]:
        result = add_chunks(result, chunk)
    return result


@pytest.fixture
def fact_prompt() -> PromptTemplate:
    return PromptTemplate.from_template("Tell me a {adjective} fact about {topic}.")


@pytest.fixture
def upper_model() -> RunnableLambda:
    """Stub model that uppercases its prompt"""
    return RunnableLambda(func=str.upper, name="upper_model")


@pytest.fixture
def fact_input() -> dict:
    return {"adjective": "curious", "topic": "cats"}

import pytest

from chainflow.exceptions import ExecutionError
from chainflow.models import FakeListChatModel
from chainflow.output_parsers import StrOutputParser
from chainflow.prompts import PromptTemplate
from chainflow.runnable import ExecutionContext, RunnableLambda, RunnableParallel
from chainflow.schema import ExecutionEventType


@pytest.mark.asyncio
async def test_events_cover_root_and_nested_units():
    prompt = PromptTemplate.from_template("Say {word}")
    model = FakeListChatModel(responses=["ok"])
    chain = prompt | model | StrOutputParser()

    events = [event async for event in chain.stream_events({"word": "ok"})]

    assert events[0].type == ExecutionEventType.START
    assert events[0].name == chain.name
    assert events[0].data == {"word": "ok"}
    assert events[-1].type == ExecutionEventType.DONE
    assert events[-1].name == chain.name
    assert events[-1].data == "ok"

    started = [e.name for e in events if e.type == ExecutionEventType.START]
    assert started[0] == chain.name
    assert sorted(started[1:]) == ["fake_chat_model", "prompt", "str_output_parser"]

    model_chunks = [
        e.data.content for e in events
        if e.type == ExecutionEventType.CHUNK and e.name == "fake_chat_model"
    ]
    assert model_chunks == ["o", "k"]


@pytest.mark.asyncio
async def test_event_paths_follow_nesting():
    parallel = RunnableParallel.from_steps(size=len)
    events = [event async for event in parallel.stream_events("abc")]

    size_events = [e for e in events if e.name == "len"]
    assert size_events
    assert all(e.execution_path == [parallel.name, "size", "len"] for e in size_events)
    assert all(e.depth == 2 for e in size_events)
    assert events[-1].data == {"size": 3}


@pytest.mark.asyncio
async def test_error_event_then_error_raised():
    def explode(x):
        raise RuntimeError("kaboom")

    chain = RunnableLambda(func=str.strip) | explode
    events = []

    with pytest.raises(ExecutionError, match="kaboom"):
        async for event in chain.stream_events(" x "):
            events.append(event)

    errors = [e for e in events if e.type == ExecutionEventType.ERROR]
    assert [e.name for e in errors] == ["explode", chain.name]
    assert "kaboom" in errors[0].error


@pytest.mark.asyncio
async def test_events_carry_run_tags():
    unit = RunnableLambda(func=str.upper)
    events = [
        event async for event in unit.stream_events("x", ExecutionContext(tags=["demo"]))
    ]
    assert {tuple(e.tags) for e in events} == {("demo",)}
    assert all(e.run_id == unit.id for e in events)


@pytest.mark.asyncio
async def test_no_events_without_sink():
    context = ExecutionContext()
    assert await RunnableLambda(func=str.upper).invoke("x", context) == "X"
    assert context.event_queue is None

import asyncio

import pytest

from chainflow.exceptions import CancellationError, ExecutionError
from chainflow.models import FakeListChatModel
from chainflow.output_parsers import StrOutputParser
from chainflow.runnable import ExecutionContext, RunnableLambda, RunnableParallel
from conftest import collect


def make_parallel(cancelled):
    async def slow(x):
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.append("slow")
            raise
        return x

    return RunnableParallel.from_steps(fast=lambda x: x + 1, slow=slow)


@pytest.mark.asyncio
async def test_cancel_signal_stops_running_branches():
    cancelled = []
    cancel = asyncio.Event()
    task = asyncio.create_task(make_parallel(cancelled).invoke(1, ExecutionContext(cancel_event=cancel)))

    await asyncio.sleep(0.05)
    cancel.set()

    with pytest.raises(CancellationError) as exc_info:
        await task

    assert exc_info.value.partial is None
    assert cancelled == ["slow"]


@pytest.mark.asyncio
async def test_partial_results_on_request():
    cancelled = []
    cancel = asyncio.Event()
    context = ExecutionContext(cancel_event=cancel, return_partial=True)
    task = asyncio.create_task(make_parallel(cancelled).invoke(1, context))

    await asyncio.sleep(0.05)
    cancel.set()

    with pytest.raises(CancellationError) as exc_info:
        await task

    assert exc_info.value.partial == {"fast": 2}


@pytest.mark.asyncio
async def test_already_cancelled_context_never_starts_work():
    calls = []
    cancel = asyncio.Event()
    cancel.set()

    with pytest.raises(CancellationError):
        await RunnableLambda(func=calls.append).invoke(1, ExecutionContext(cancel_event=cancel))
    assert calls == []


@pytest.mark.asyncio
async def test_cancel_signal_stops_sequence_stream():
    cancel = asyncio.Event()
    chain = FakeListChatModel(responses=["abcdef"]) | StrOutputParser()
    chunks = []

    with pytest.raises(CancellationError):
        async for chunk in chain.stream("go", ExecutionContext(cancel_event=cancel)):
            chunks.append(chunk)
            if len(chunks) == 2:
                cancel.set()

    assert chunks == ["a", "b"]


@pytest.mark.asyncio
async def test_cancel_signal_stops_parallel_stream():
    cancelled = []
    cancel = asyncio.Event()
    stream = make_parallel(cancelled).stream(1, ExecutionContext(cancel_event=cancel))

    first = await stream.__anext__()
    assert first == {"fast": 2}
    cancel.set()

    with pytest.raises(CancellationError):
        await collect(stream)
    assert cancelled == ["slow"]


@pytest.mark.asyncio
async def test_parallel_stream_partial_holds_chunks_seen():
    cancelled = []
    cancel = asyncio.Event()
    context = ExecutionContext(cancel_event=cancel, return_partial=True)
    stream = make_parallel(cancelled).stream(1, context)

    assert await stream.__anext__() == {"fast": 2}
    cancel.set()

    with pytest.raises(CancellationError) as exc_info:
        await collect(stream)

    assert exc_info.value.partial == {"fast": 2}
    assert cancelled == ["slow"]


@pytest.mark.asyncio
async def test_native_task_cancellation_reaches_branches():
    cancelled = []
    task = asyncio.create_task(make_parallel(cancelled).invoke(1))

    await asyncio.sleep(0.05)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert cancelled == ["slow"]


@pytest.mark.asyncio
async def test_cancel_signal_stops_batch():
    cancel = asyncio.Event()
    finished = []

    async def work(x):
        await asyncio.sleep(0.01 if x == 0 else 10)
        finished.append(x)
        return x

    context = ExecutionContext(cancel_event=cancel, return_partial=True)
    task = asyncio.create_task(RunnableLambda(func=work).batch([0, 1, 2], context))

    await asyncio.sleep(0.05)
    cancel.set()

    with pytest.raises(CancellationError) as exc_info:
        await task

    assert exc_info.value.partial == {0: 0}
    assert finished == [0]


@pytest.mark.asyncio
async def test_cancel_signal_stops_batch_collecting_exceptions():
    cancel = asyncio.Event()
    cancelled = []

    async def work(x):
        if x == 1:
            raise ValueError("item 1 is bad")
        if x == 2:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(x)
                raise
        return x

    context = ExecutionContext(cancel_event=cancel, return_partial=True)
    task = asyncio.create_task(
        RunnableLambda(func=work).batch([0, 1, 2], context, return_exceptions=True)
    )

    await asyncio.sleep(0.05)
    cancel.set()

    with pytest.raises(CancellationError) as exc_info:
        await asyncio.wait_for(task, timeout=1)

    partial = exc_info.value.partial
    assert partial[0] == 0
    assert isinstance(partial[1], ExecutionError)
    assert 2 not in partial
    assert cancelled == [2]

import pytest

from chainflow.exceptions import ExecutionError
from chainflow.runnable import RunnableGenerator, RunnableLambda, coerce_to_runnable
from conftest import collect


@pytest.mark.asyncio
async def test_sync_and_async_functions():
    async def shout(x):
        return x.upper() + "!"

    assert await RunnableLambda(func=len).invoke("four") == 4
    assert await RunnableLambda(func=shout).invoke("hey") == "HEY!"


def test_default_names():
    assert RunnableLambda(func=len).name == "len"
    assert RunnableLambda(func=lambda x: x).name == "lambda"
    assert RunnableLambda(func=len, name="size").name == "size"


@pytest.mark.asyncio
async def test_generator_function_streams_its_items():
    def count_up(n):
        for i in range(n):
            yield [i]

    runnable = RunnableLambda(func=count_up)

    assert await collect(runnable.stream(3)) == [[0], [1], [2]]
    assert await runnable.invoke(3) == [0, 1, 2]


@pytest.mark.asyncio
async def test_returned_runnable_is_invoked_on_same_input():
    upper = RunnableLambda(func=str.upper)
    lower = RunnableLambda(func=str.lower)
    router = RunnableLambda(func=lambda x: upper if x.startswith("!") else lower)

    assert await router.invoke("!Loud") == "!LOUD"
    assert await router.invoke("Quiet") == "quiet"
    assert await collect(router.stream("!go")) == ["!GO"]


@pytest.mark.asyncio
async def test_exception_wrapped_with_cause():
    def divide(x):
        return 1 / x

    with pytest.raises(ExecutionError) as exc_info:
        await RunnableLambda(func=divide).invoke(0)

    assert exc_info.value.unit == "divide"
    assert isinstance(exc_info.value.cause, ZeroDivisionError)


@pytest.mark.asyncio
async def test_generator_consumes_chunks_incrementally():
    order = []

    async def produce(x):
        for i in range(2):
            order.append(f"produce {i}")
            yield str(i)

    async def consume(chunks):
        async for chunk in chunks:
            order.append(f"consume {chunk}")
            yield chunk * 2

    chain = RunnableLambda(func=produce) | RunnableGenerator(transform_func=consume)

    assert await collect(chain.stream(None)) == ["00", "11"]
    assert order == ["produce 0", "consume 0", "produce 1", "consume 1"]
    assert chain.last.supports_incremental_input


@pytest.mark.asyncio
async def test_generator_invoked_on_whole_value():
    async def reverse(chunks):
        async for chunk in chunks:
            yield chunk[::-1]

    assert await RunnableGenerator(transform_func=reverse).invoke("abc") == "cba"


def test_coerce_rejects_non_callables():
    with pytest.raises(TypeError):
        coerce_to_runnable(42)

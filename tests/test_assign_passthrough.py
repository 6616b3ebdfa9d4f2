import pytest

from chainflow.exceptions import ContractError
from chainflow.runnable import RunnableAssign, RunnableLambda, RunnablePassthrough
from conftest import collect, merge


@pytest.mark.asyncio
async def test_assign_adds_computed_field():
    chain = RunnablePassthrough.assign(lastname=lambda x: x["name"] + "OVICH")

    assert await chain.invoke({"name": "Abram"}) == {"name": "Abram", "lastname": "AbramOVICH"}


@pytest.mark.asyncio
async def test_assigned_fields_do_not_see_each_other():
    chain = RunnablePassthrough.assign(
        lastname=lambda x: x["name"] + "OVICH",
        sees_lastname=lambda x: "lastname" in x,
    )

    result = await chain.invoke({"name": "Abram"})

    assert result["sees_lastname"] is False
    assert result["lastname"] == "AbramOVICH"


@pytest.mark.asyncio
async def test_new_field_overwrites_original():
    chain = RunnablePassthrough.assign(name=lambda x: x["name"].upper())

    assert await chain.invoke({"name": "Abram", "age": 3}) == {"name": "ABRAM", "age": 3}
    streamed = merge(await collect(chain.stream({"name": "Abram", "age": 3})))
    assert streamed == {"name": "ABRAM", "age": 3}


@pytest.mark.asyncio
async def test_assign_stream_yields_original_fields_first():
    chain = RunnablePassthrough.assign(lastname=lambda x: x["name"] + "OVICH")

    chunks = await collect(chain.stream({"name": "Abram"}))

    assert chunks[0] == {"name": "Abram"}
    assert merge(chunks) == await chain.invoke({"name": "Abram"})


@pytest.mark.asyncio
async def test_assign_after_unit_in_chain():
    chain = RunnableLambda(func=lambda name: {"name": name}).assign(greeting=lambda x: f"Hi {x['name']}")

    assert await chain.invoke("Ada") == {"name": "Ada", "greeting": "Hi Ada"}


@pytest.mark.asyncio
async def test_assign_requires_mapping_input():
    with pytest.raises(ContractError):
        await RunnableAssign.from_fields(a=len).invoke("not a mapping")


@pytest.mark.asyncio
async def test_passthrough_returns_input_unchanged():
    passthrough = RunnablePassthrough()
    value = {"num": 1}

    assert await passthrough.invoke(value) is value
    assert await collect(passthrough.stream("abc")) == ["abc"]


@pytest.mark.asyncio
async def test_passthrough_observer_sees_whole_input():
    seen = []
    passthrough = RunnablePassthrough(func=seen.append)

    assert await passthrough.invoke(5) == 5

    async def words(x):
        for word in ("a ", "b ", "c"):
            yield word

    chain = RunnableLambda(func=words) | passthrough
    assert await collect(chain.stream(None)) == ["a ", "b ", "c"]
    assert seen == [5, "a b c"]

from typing import List, Literal

import pytest
from pydantic import BaseModel

from chainflow.exceptions import OutputParserError, ParseError, SchemaMismatchError
from chainflow.models import FakeListChatModel
from chainflow.output_parsers import JsonOutputParser, PydanticOutputParser, StrOutputParser
from chainflow.schema import ChatMessage
from conftest import collect


class Joke(BaseModel):
    setup: str
    punchline: str
    rating: Literal["good", "bad"]


@pytest.mark.asyncio
async def test_str_parser_accepts_messages_and_strings():
    parser = StrOutputParser()
    assert await parser.invoke(ChatMessage.ai("hello")) == "hello"
    assert await parser.invoke("hello") == "hello"


@pytest.mark.asyncio
async def test_str_parser_transforms_chunks_one_by_one():
    async def chunks():
        yield ChatMessage.ai("he")
        yield "llo"

    assert await collect(StrOutputParser().transform(chunks())) == ["he", "llo"]


@pytest.mark.asyncio
async def test_json_parser_plain_and_fenced():
    parser = JsonOutputParser()
    assert await parser.invoke('{"answer": 42}') == {"answer": 42}
    fenced = 'Here you go:\n```json\n{"items": [1, 2]}\n```\nEnjoy!'
    assert await parser.invoke(ChatMessage.ai(fenced)) == {"items": [1, 2]}


@pytest.mark.asyncio
async def test_json_parser_malformed_output():
    with pytest.raises(ParseError) as exc_info:
        await JsonOutputParser().invoke("{'answer': 42")

    assert exc_info.value.text == "{'answer': 42"
    assert isinstance(exc_info.value, OutputParserError)


@pytest.mark.asyncio
async def test_pydantic_parser_valid_output():
    parser = PydanticOutputParser(pydantic_object=Joke)
    joke = await parser.invoke(
        '{"setup": "Why did the cat sit on the computer?", '
        '"punchline": "To keep an eye on the mouse.", "rating": "good"}'
    )
    assert joke == Joke(
        setup="Why did the cat sit on the computer?",
        punchline="To keep an eye on the mouse.",
        rating="good",
    )
    assert parser.output_type is Joke


@pytest.mark.asyncio
async def test_pydantic_parser_schema_mismatch_is_distinct_from_parse_error():
    parser = PydanticOutputParser(pydantic_object=Joke)

    with pytest.raises(SchemaMismatchError) as exc_info:
        await parser.invoke('{"setup": "Knock knock", "punchline": "Who?", "rating": "meh"}')
    assert not isinstance(exc_info.value, ParseError)
    assert exc_info.value.errors[0]["loc"] == ("rating",)

    with pytest.raises(ParseError):
        await parser.invoke("Knock knock")


def test_pydantic_format_instructions_describe_schema():
    instructions = PydanticOutputParser(pydantic_object=Joke).get_format_instructions()
    assert "JSON schema" in instructions
    assert '"punchline"' in instructions


@pytest.mark.asyncio
async def test_parser_in_chain_buffers_model_stream():
    class Names(BaseModel):
        names: List[str]

    chain = FakeListChatModel(responses=['{"names": ["Ada", "Alan"]}']) | PydanticOutputParser(
        pydantic_object=Names
    )

    assert await collect(chain.stream("list names")) == [Names(names=["Ada", "Alan"])]

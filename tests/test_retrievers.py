from typing import List

import pytest

from chainflow.exceptions import ContractError
from chainflow.retrievers import BaseRetriever, InMemoryRetriever
from chainflow.schema import Document


@pytest.fixture
def retriever() -> InMemoryRetriever:
    return InMemoryRetriever.from_texts(
        [
            "Rachel was an alumni of Stanford.",
            "Cats sleep most of the day.",
            "Stanford alumni include many founders.",
        ],
        k=2,
    )


@pytest.mark.asyncio
async def test_ranks_documents_by_matching_words(retriever):
    documents = await retriever.invoke("Who are the Stanford alumni?")

    assert [d.page_content for d in documents] == [
        "Rachel was an alumni of Stanford.",
        "Stanford alumni include many founders.",
    ]


@pytest.mark.asyncio
async def test_no_match_returns_empty_list(retriever):
    assert await retriever.invoke("quantum chromodynamics") == []


@pytest.mark.asyncio
async def test_retriever_requires_query_string(retriever):
    with pytest.raises(ContractError):
        await retriever.invoke({"query": "cats"})


@pytest.mark.asyncio
async def test_custom_retriever():
    class StaticRetriever(BaseRetriever):
        async def _get_relevant_documents(self, query: str) -> List[Document]:
            return [Document(page_content=query, metadata={"source": "static"})]

    documents = await StaticRetriever().invoke("echo")
    assert documents == [Document(page_content="echo", metadata={"source": "static"})]
    assert str(documents[0]) == "echo"

"""Retrievers - Query string in, relevant documents out"""

from abc import abstractmethod
from typing import List

from pydantic import Field

from chainflow.runnable.base import Runnable, TypeContract
from chainflow.runnable.context import ExecutionContext
from chainflow.schema import Document


class BaseRetriever(Runnable):
    """Runnable returning the documents relevant to a query

    Subclasses must implement:
    - _get_relevant_documents(): Documents for one query
    """

    @property
    def input_type(self) -> TypeContract:
        return str

    @property
    def output_type(self) -> TypeContract:
        return list

    @abstractmethod
    async def _get_relevant_documents(self, query: str) -> List[Document]:
        """Return documents relevant to the query, most relevant first"""

    async def _ainvoke(self, input: str, context: ExecutionContext, **kwargs) -> List[Document]:
        return await self._get_relevant_documents(input)


class InMemoryRetriever(BaseRetriever):
    """Keyword retriever over a fixed list of documents

    Documents are ranked by how many query words they contain; documents
    sharing no word with the query are left out.

    Attributes:
        documents: Searchable documents
        k: Maximum number of documents returned
    """

    documents: List[Document] = Field(default_factory=list, description="Searchable documents")
    k: int = Field(default=4, ge=1, description="Maximum documents returned")

    def get_default_name(self) -> str:
        return "retriever"

    @classmethod
    def from_texts(cls, texts: List[str], **kwargs) -> "InMemoryRetriever":
        return cls(documents=[Document(page_content=t) for t in texts], **kwargs)

    async def _get_relevant_documents(self, query: str) -> List[Document]:
        words = {w.strip(".,!?;:").lower() for w in query.split()} - {""}
        scored = []
        for position, document in enumerate(self.documents):
            text = document.page_content.lower()
            score = sum(1 for w in words if w in text)
            if score:
                scored.append((-score, position, document))
        scored.sort(key=lambda item: item[:2])
        return [document for _, _, document in scored[: self.k]]

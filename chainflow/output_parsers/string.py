from typing import AsyncIterator, Union

from chainflow.output_parsers.base import BaseOutputParser, output_text
from chainflow.runnable.base import TypeContract
from chainflow.runnable.context import ExecutionContext
from chainflow.schema import ChatMessage


class StrOutputParser(BaseOutputParser):
    """Extract the text of a model output

    Consumes input chunks as they arrive, so a streamed model reply flows
    through without being buffered.
    """

    def get_default_name(self) -> str:
        return "str_output_parser"

    @property
    def output_type(self) -> TypeContract:
        return str

    def parse(self, text: str) -> str:
        return text

    async def _atransform(
        self, chunks: AsyncIterator[Union[str, ChatMessage]], context: ExecutionContext, **kwargs
    ) -> AsyncIterator[str]:
        async for chunk in chunks:
            self.check_input(chunk)
            yield output_text(chunk)

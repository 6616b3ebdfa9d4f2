"""Output parser base - Turn model output into structured values"""

from abc import abstractmethod
from typing import Any, Union

from chainflow.runnable.base import Runnable, TypeContract
from chainflow.runnable.context import ExecutionContext
from chainflow.schema import ChatMessage


def output_text(output: Union[str, ChatMessage]) -> str:
    """Text of a model output (message content or the string itself)"""
    if isinstance(output, ChatMessage):
        return output.content
    return output


class BaseOutputParser(Runnable):
    """Runnable parsing the text of a chat message or completion

    Subclasses must implement:
    - parse(): Text to value, raising an OutputParserError subclass on failure
    """

    @property
    def input_type(self) -> TypeContract:
        return (str, ChatMessage)

    @abstractmethod
    def parse(self, text: str) -> Any:
        """Parse model output text"""

    def get_format_instructions(self) -> str:
        """Instructions to put in a prompt so the model output parses"""
        return ""

    async def _ainvoke(self, input: Union[str, ChatMessage], context: ExecutionContext, **kwargs) -> Any:
        return self.parse(output_text(input))

"""Model backends - Contracts for chat models and text completion models

A backend is a Runnable whose input is a prompt string or a list of
messages. Backends implement _generate (whole text) and may implement
_stream_text (text deltas); the base classes turn those into the unit
output type and apply stop sequences.
"""

from abc import abstractmethod
from typing import AsyncIterator, Dict, List, Optional, Sequence, Union

from chainflow.runnable.base import Runnable, TypeContract
from chainflow.runnable.context import ExecutionContext
from chainflow.schema import ChatMessage, normalize_role

ModelInput = Union[str, List[Union[ChatMessage, Dict[str, str]]]]


def format_messages(input: ModelInput) -> List[ChatMessage]:
    """Normalize a model input to a list of ChatMessages

    A plain string becomes a single human message.

    Raises:
        ValueError: If a message dict has no role or an unknown role
        TypeError: If unsupported message types are provided
    """
    if isinstance(input, str):
        return [ChatMessage.human(input)]

    messages = []
    for message in input:
        if isinstance(message, ChatMessage):
            messages.append(message)
        elif isinstance(message, dict):
            if "role" not in message:
                raise ValueError("Message dict must contain 'role' field")
            messages.append(
                ChatMessage(role=normalize_role(message["role"]), content=message.get("content", ""))
            )
        else:
            raise TypeError(f"Unsupported message type: {type(message)}")
    return messages


def enforce_stop_tokens(text: str, stop: Optional[Sequence[str]]) -> str:
    """Cut text at the first occurrence of any stop sequence"""
    if not stop:
        return text
    cut = len(text)
    for token in stop:
        if token:
            index = text.find(token)
            if index != -1:
                cut = min(cut, index)
    return text[:cut]


class BaseLanguageModel(Runnable):
    """Shared machinery of chat and completion backends

    Subclasses must implement:
    - _generate(): Whole completion text for the messages

    Subclasses may override:
    - _stream_text(): Completion text deltas (default: one delta)

    Stop sequences are passed as the ``stop`` invocation parameter, usually
    bound with ``model.bind(stop=[...])``. Output is cut before the first
    stop sequence, also when streaming.
    """

    @property
    def input_type(self) -> TypeContract:
        return (str, list)

    @abstractmethod
    async def _generate(self, messages: List[ChatMessage], stop: Optional[List[str]] = None) -> str:
        """Return the completion text"""

    async def _stream_text(
        self, messages: List[ChatMessage], stop: Optional[List[str]] = None
    ) -> AsyncIterator[str]:
        yield await self._generate(messages, stop=stop)

    async def _complete(self, input: ModelInput, stop: Optional[List[str]]) -> str:
        text = await self._generate(format_messages(input), stop=stop)
        return enforce_stop_tokens(text, stop)

    async def _deltas(self, input: ModelInput, stop: Optional[List[str]]) -> AsyncIterator[str]:
        """Stream text deltas, at least one ("" for an empty completion)"""
        produced = False
        stop = [token for token in stop or [] if token]
        async for delta in self._stop_aware_deltas(format_messages(input), stop):
            produced = True
            yield delta
        if not produced:
            yield ""

    async def _stop_aware_deltas(
        self, messages: List[ChatMessage], stop: List[str]
    ) -> AsyncIterator[str]:
        """Yield non-empty deltas, holding back text that may start a stop sequence"""
        if not stop:
            async for delta in self._stream_text(messages):
                if delta:
                    yield delta
            return

        longest = max(len(token) for token in stop)
        emitted = 0
        text = ""
        async for delta in self._stream_text(messages, stop=stop):
            text += delta
            cut = enforce_stop_tokens(text, stop)
            if len(cut) < len(text):
                if len(cut) > emitted:
                    yield cut[emitted:]
                return
            safe = max(len(text) - longest + 1, emitted)
            if safe > emitted:
                yield text[emitted:safe]
                emitted = safe
        if len(text) > emitted:
            yield text[emitted:]


class BaseChatModel(BaseLanguageModel):
    """Chat model backend: messages in, one ai ChatMessage out"""

    @property
    def output_type(self) -> TypeContract:
        return ChatMessage

    async def _ainvoke(
        self, input: ModelInput, context: ExecutionContext, stop: Optional[List[str]] = None, **kwargs
    ) -> ChatMessage:
        return ChatMessage.ai(await self._complete(input, stop))

    async def _astream(
        self, input: ModelInput, context: ExecutionContext, stop: Optional[List[str]] = None, **kwargs
    ) -> AsyncIterator[ChatMessage]:
        async for delta in self._deltas(input, stop):
            yield ChatMessage.ai(delta)


class BaseLLM(BaseLanguageModel):
    """Completion model backend: prompt in, text out"""

    @property
    def output_type(self) -> TypeContract:
        return str

    async def _ainvoke(
        self, input: ModelInput, context: ExecutionContext, stop: Optional[List[str]] = None, **kwargs
    ) -> str:
        return await self._complete(input, stop)

    async def _astream(
        self, input: ModelInput, context: ExecutionContext, stop: Optional[List[str]] = None, **kwargs
    ) -> AsyncIterator[str]:
        async for delta in self._deltas(input, stop):
            yield delta


def messages_to_prompt(messages: List[ChatMessage]) -> str:
    """Flatten messages into a single prompt string for completion models"""
    if len(messages) == 1 and messages[0].role == "human":
        return messages[0].content
    return "\n".join(f"{m.role.capitalize()}: {m.content}" for m in messages)

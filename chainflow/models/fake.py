"""Deterministic in-process model backends for tests and examples"""

import asyncio
from typing import AsyncIterator, List, Optional

from pydantic import Field, PrivateAttr

from chainflow.models.base import BaseChatModel, BaseLLM, messages_to_prompt
from chainflow.schema import ChatMessage


def _chunked(text: str, size: int) -> List[str]:
    return [text[i:i + size] for i in range(0, len(text), size)] or [""]


class FakeListChatModel(BaseChatModel):
    """Chat model that replies with the given responses in turn

    After the last response it starts over from the first one. When
    streamed, a response is emitted in pieces of ``chunk_size`` characters.

    Attributes:
        responses: Replies, cycled through
        chunk_size: Characters per streamed chunk
        delay: Seconds to sleep before replying (and between chunks)
    """

    responses: List[str] = Field(..., min_length=1, description="Replies in order")
    chunk_size: int = Field(default=1, ge=1, description="Characters per streamed chunk")
    delay: float = Field(default=0, ge=0, description="Simulated latency in seconds")

    _index: int = PrivateAttr(default=0)

    def get_default_name(self) -> str:
        return "fake_chat_model"

    def _next_response(self) -> str:
        response = self.responses[self._index % len(self.responses)]
        self._index += 1
        return response

    async def _generate(self, messages: List[ChatMessage], stop: Optional[List[str]] = None) -> str:
        response = self._next_response()
        if self.delay:
            await asyncio.sleep(self.delay)
        return response

    async def _stream_text(
        self, messages: List[ChatMessage], stop: Optional[List[str]] = None
    ) -> AsyncIterator[str]:
        response = self._next_response()
        for chunk in _chunked(response, self.chunk_size):
            if self.delay:
                await asyncio.sleep(self.delay)
            yield chunk


class FakeEchoChatModel(BaseChatModel):
    """Chat model that replies with the content of the last message"""

    chunk_size: int = Field(default=1, ge=1, description="Characters per streamed chunk")

    def get_default_name(self) -> str:
        return "fake_echo_model"

    async def _generate(self, messages: List[ChatMessage], stop: Optional[List[str]] = None) -> str:
        return messages[-1].content if messages else ""

    async def _stream_text(
        self, messages: List[ChatMessage], stop: Optional[List[str]] = None
    ) -> AsyncIterator[str]:
        for chunk in _chunked(await self._generate(messages), self.chunk_size):
            yield chunk


class FakeListLLM(BaseLLM):
    """Completion model that returns the given responses in turn

    Attributes:
        responses: Completions, cycled through
        prompts: Prompts received so far, flattened to strings
    """

    responses: List[str] = Field(..., min_length=1, description="Completions in order")
    chunk_size: int = Field(default=1, ge=1, description="Characters per streamed chunk")

    _index: int = PrivateAttr(default=0)
    _prompts: List[str] = PrivateAttr(default_factory=list)

    def get_default_name(self) -> str:
        return "fake_llm"

    @property
    def prompts(self) -> List[str]:
        return list(self._prompts)

    def _next_response(self, messages: List[ChatMessage]) -> str:
        self._prompts.append(messages_to_prompt(messages))
        response = self.responses[self._index % len(self.responses)]
        self._index += 1
        return response

    async def _generate(self, messages: List[ChatMessage], stop: Optional[List[str]] = None) -> str:
        return self._next_response(messages)

    async def _stream_text(
        self, messages: List[ChatMessage], stop: Optional[List[str]] = None
    ) -> AsyncIterator[str]:
        for chunk in _chunked(self._next_response(messages), self.chunk_size):
            yield chunk

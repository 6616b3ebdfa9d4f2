from chainflow.models.base import (
    BaseChatModel,
    BaseLanguageModel,
    BaseLLM,
    enforce_stop_tokens,
    format_messages,
    messages_to_prompt,
)
from chainflow.models.fake import FakeEchoChatModel, FakeListChatModel, FakeListLLM

__all__ = [
    "BaseLanguageModel",
    "BaseChatModel",
    "BaseLLM",
    "FakeListChatModel",
    "FakeEchoChatModel",
    "FakeListLLM",
    "enforce_stop_tokens",
    "format_messages",
    "messages_to_prompt",
]

"""Chat prompt templates - Mappings of variables rendered into message lists"""

from typing import Any, Dict, List, Tuple, Union

from pydantic import BaseModel, Field

from chainflow.exceptions import ContractError
from chainflow.prompts.template import PromptTemplate
from chainflow.runnable.base import Runnable, TypeContract
from chainflow.runnable.context import ExecutionContext
from chainflow.schema import ChatMessage, normalize_role


class MessagePromptTemplate(BaseModel):
    """One role-tagged message whose content is a template"""

    role: str = Field(..., description="system, human or ai")
    prompt: PromptTemplate = Field(..., description="Content template")

    @classmethod
    def from_template(cls, role: str, template: str) -> "MessagePromptTemplate":
        return cls(role=normalize_role(role), prompt=PromptTemplate.from_template(template))

    @property
    def input_variables(self) -> List[str]:
        return self.prompt.input_variables

    def format_messages(self, **kwargs: Any) -> List[ChatMessage]:
        return [ChatMessage(role=self.role, content=self.prompt.format(**kwargs))]


class FewShotChatMessagePromptTemplate(BaseModel):
    """Renders every example through an example prompt

    The examples carry their own values, so the block needs no input
    variables from the caller.

    Example:
        FewShotChatMessagePromptTemplate(
            examples=[{"input": "hi!", "output": "¡hola!"}],
            example_prompt=ChatPromptTemplate.from_messages(
                [("human", "{input}"), ("ai", "{output}")]
            ),
        )
    """

    examples: List[Dict[str, Any]] = Field(..., description="Example variable mappings")
    example_prompt: "ChatPromptTemplate" = Field(..., description="Prompt applied to each example")

    @property
    def input_variables(self) -> List[str]:
        return []

    def format_messages(self, **kwargs: Any) -> List[ChatMessage]:
        messages: List[ChatMessage] = []
        for example in self.examples:
            messages.extend(self.example_prompt.format_messages(**example))
        return messages


MessageLike = Union[
    MessagePromptTemplate,
    FewShotChatMessagePromptTemplate,
    ChatMessage,
    Tuple[str, str],
    Dict[str, str],
]


def _to_message_template(
    message: MessageLike,
) -> Union[MessagePromptTemplate, FewShotChatMessagePromptTemplate, ChatMessage]:
    if isinstance(message, (MessagePromptTemplate, FewShotChatMessagePromptTemplate, ChatMessage)):
        return message
    if isinstance(message, tuple) and len(message) == 2:
        role, template = message
        return MessagePromptTemplate.from_template(role, template)
    if isinstance(message, dict) and {"role", "content"} <= set(message):
        return MessagePromptTemplate.from_template(message["role"], message["content"])
    raise ContractError(f"Cannot build a chat message template from {message!r}")


class ChatPromptTemplate(Runnable):
    """Ordered message templates rendered into a list of ChatMessages

    Example:
        ChatPromptTemplate.from_messages([
            ("system", "You are an {profession} expert on {topic}."),
            ("human", "Hello, Mr. {profession}, can you please answer a question?"),
            ("ai", "Sure!"),
            ("human", "{user_input}"),
        ])
    """

    messages: List[
        Union[MessagePromptTemplate, FewShotChatMessagePromptTemplate, ChatMessage]
    ] = Field(..., description="Message templates in order")

    @classmethod
    def from_messages(cls, messages: List[MessageLike], **kwargs: Any) -> "ChatPromptTemplate":
        """Build from (role, template) tuples, role/content dicts, messages or few-shot blocks"""
        return cls(messages=[_to_message_template(m) for m in messages], **kwargs)

    @classmethod
    def from_template(cls, template: str, **kwargs: Any) -> "ChatPromptTemplate":
        """Single human message template"""
        return cls.from_messages([("human", template)], **kwargs)

    def get_default_name(self) -> str:
        return "chat_prompt"

    @property
    def input_type(self) -> TypeContract:
        return dict

    @property
    def output_type(self) -> TypeContract:
        return list

    @property
    def input_variables(self) -> List[str]:
        variables: List[str] = []
        for message in self.messages:
            for name in getattr(message, "input_variables", []):
                if name not in variables:
                    variables.append(name)
        return variables

    def format_messages(self, **kwargs: Any) -> List[ChatMessage]:
        """Render every message template

        Raises:
            MissingVariableError: If a required variable has no value
        """
        rendered: List[ChatMessage] = []
        for message in self.messages:
            if isinstance(message, ChatMessage):
                rendered.append(message)
            else:
                rendered.extend(message.format_messages(**kwargs))
        return rendered

    async def _ainvoke(
        self, input: Dict[str, Any], context: ExecutionContext, **kwargs
    ) -> List[ChatMessage]:
        return self.format_messages(**input)


FewShotChatMessagePromptTemplate.model_rebuild()

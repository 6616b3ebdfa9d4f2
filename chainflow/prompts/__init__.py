from chainflow.prompts.chat import (
    ChatPromptTemplate,
    FewShotChatMessagePromptTemplate,
    MessagePromptTemplate,
)
from chainflow.prompts.template import PromptTemplate, get_template_variables

__all__ = [
    "PromptTemplate",
    "ChatPromptTemplate",
    "MessagePromptTemplate",
    "FewShotChatMessagePromptTemplate",
    "get_template_variables",
]

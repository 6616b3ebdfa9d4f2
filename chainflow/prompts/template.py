"""String prompt templates"""

from string import Formatter
from typing import Any, Dict, List

from pydantic import Field, model_validator

from chainflow.exceptions import MissingVariableError
from chainflow.runnable.base import Runnable, TypeContract
from chainflow.runnable.context import ExecutionContext


def get_template_variables(template: str) -> List[str]:
    """Names of the {placeholders} in a str.format template, in order of first use"""
    variables: List[str] = []
    for _, field_name, _, _ in Formatter().parse(template):
        if not field_name:
            continue
        name = field_name.split(".", 1)[0].split("[", 1)[0]
        if name not in variables:
            variables.append(name)
    return variables


class PromptTemplate(Runnable):
    """A str.format template that renders a mapping of variables into a string

    Example:
        prompt = PromptTemplate.from_template("Tell me a {adjective} story about {topic}.")
        await prompt.invoke({"adjective": "curious", "topic": "cats"})

    Attributes:
        template: The template text
        input_variables: Variables the caller must supply
        partial_variables: Variables already filled in
    """

    template: str = Field(..., description="Template text with {placeholders}")
    input_variables: List[str] = Field(default_factory=list, description="Required variables")
    partial_variables: Dict[str, Any] = Field(default_factory=dict, description="Pre-filled variables")

    @model_validator(mode="after")
    def fill_input_variables(self) -> "PromptTemplate":
        if not self.input_variables:
            variables = [
                v for v in get_template_variables(self.template)
                if v not in self.partial_variables
            ]
            object.__setattr__(self, "input_variables", variables)
        return self

    @classmethod
    def from_template(cls, template: str, **kwargs: Any) -> "PromptTemplate":
        return cls(template=template, **kwargs)

    def get_default_name(self) -> str:
        return "prompt"

    @property
    def input_type(self) -> TypeContract:
        return dict

    @property
    def output_type(self) -> TypeContract:
        return str

    def partial(self, **kwargs: Any) -> "PromptTemplate":
        """Return a new template with some variables filled in"""
        return PromptTemplate(
            template=self.template,
            input_variables=[v for v in self.input_variables if v not in kwargs],
            partial_variables={**self.partial_variables, **kwargs},
        )

    def format(self, **kwargs: Any) -> str:
        """Render the template

        Raises:
            MissingVariableError: If a required variable has no value
        """
        values = {**self.partial_variables, **kwargs}
        missing = [v for v in self.input_variables if v not in values]
        if missing:
            raise MissingVariableError(missing)
        return self.template.format(**values)

    async def _ainvoke(self, input: Dict[str, Any], context: ExecutionContext, **kwargs) -> str:
        return self.format(**input)

"""JSON and pydantic output parsers"""

import json
import re
from typing import Any, Type

from pydantic import BaseModel, Field, ValidationError

from chainflow.exceptions import ParseError, SchemaMismatchError
from chainflow.output_parsers.base import BaseOutputParser
from chainflow.runnable.base import TypeContract

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL)


def strip_code_fence(text: str) -> str:
    """Return the body of the first ``` fenced block, or the stripped text"""
    match = _FENCE_PATTERN.search(text)
    return match.group(1) if match else text.strip()


def parse_json(text: str) -> Any:
    """Parse JSON, tolerating a surrounding markdown code fence

    Raises:
        ParseError: If the text is not valid JSON
    """
    body = strip_code_fence(text)
    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON output: {e}", text=text) from e


class JsonOutputParser(BaseOutputParser):
    """Parse model output as JSON"""

    def get_default_name(self) -> str:
        return "json_output_parser"

    def parse(self, text: str) -> Any:
        return parse_json(text)

    def get_format_instructions(self) -> str:
        return "Return a single JSON value and nothing else."


class PydanticOutputParser(BaseOutputParser):
    """Parse model output as JSON and validate it against a pydantic model

    Example:
        class Joke(BaseModel):
            setup: str
            punchline: str

        parser = PydanticOutputParser(pydantic_object=Joke)
    """

    pydantic_object: Type[BaseModel] = Field(..., description="Model the output must satisfy")

    def get_default_name(self) -> str:
        return f"pydantic_output_parser[{self.pydantic_object.__name__}]"

    @property
    def output_type(self) -> TypeContract:
        return self.pydantic_object

    def parse(self, text: str) -> BaseModel:
        """Parse and validate

        Raises:
            ParseError: If the text is not valid JSON
            SchemaMismatchError: If the JSON does not satisfy the model
        """
        data = parse_json(text)
        try:
            return self.pydantic_object.model_validate(data)
        except ValidationError as e:
            raise SchemaMismatchError(
                f"Output does not match {self.pydantic_object.__name__}: "
                f"{e.error_count()} validation error(s)",
                text=text,
                errors=e.errors(),
            ) from e

    def get_format_instructions(self) -> str:
        schema = self.pydantic_object.model_json_schema()
        return (
            "The output should be formatted as a JSON instance that conforms "
            "to the JSON schema below.\n\n"
            f"```json\n{json.dumps(schema, indent=2)}\n```"
        )

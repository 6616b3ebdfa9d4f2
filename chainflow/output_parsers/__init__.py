from chainflow.output_parsers.base import BaseOutputParser, output_text
from chainflow.output_parsers.json import JsonOutputParser, PydanticOutputParser, parse_json
from chainflow.output_parsers.string import StrOutputParser

__all__ = [
    "BaseOutputParser",
    "StrOutputParser",
    "JsonOutputParser",
    "PydanticOutputParser",
    "output_text",
    "parse_json",
]

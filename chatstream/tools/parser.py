"""
Output parsers for the tool-invocation pipeline.

Both parsers turn a stream of provider chunks into a stream of partial
argument dicts and validate the final value against the tool's schema.
A model that produces nothing usable raises ``ParseError``; an empty result
is never reported as success.
"""

import json
from typing import Any, Dict, Iterable, Iterator, Optional, Type

from langchain_core.utils.json import parse_partial_json
from pydantic import BaseModel
from pydantic import ValidationError as SchemaValidationError

from chatstream.core.errors import ParseError
from chatstream.core.logging import get_logger
from chatstream.llm.client import ChatChunk

logger = get_logger(__name__)


def validate_arguments(args_schema: Type[BaseModel], value: Any) -> Dict[str, Any]:
    """Validate ``value`` against ``args_schema`` and return it as a plain dict."""
    try:
        return args_schema.model_validate(value).model_dump()
    except SchemaValidationError as e:
        raise ParseError(f"Model output does not match {args_schema.__name__}: {e}") from e


class JsonKeyToolsParser:
    """Extracts the arguments of the tool call named ``key_name``."""

    def __init__(self, key_name: str, args_schema: Type[BaseModel]):
        self.key_name = key_name
        self.args_schema = args_schema

    def parse_chunk(self, chunk: ChatChunk) -> Optional[Dict[str, Any]]:
        """Arguments of the matching call in ``chunk``, if there is one."""
        for call in chunk.tool_calls:
            if call.get("name") != self.key_name:
                continue
            arguments = call.get("arguments")
            if not isinstance(arguments, dict):
                raise ParseError(
                    f"Arguments of '{self.key_name}' are not a JSON object: {arguments!r}"
                )
            return arguments
        return None

    def stream(self, chunks: Iterable[ChatChunk]) -> Iterator[Dict[str, Any]]:
        last = None
        for chunk in chunks:
            arguments = self.parse_chunk(chunk)
            if arguments is not None and arguments != last:
                last = arguments
                yield arguments

        if last is None:
            raise ParseError(f"Model did not call the '{self.key_name}' tool")

        final = validate_arguments(self.args_schema, last)
        if final != last:
            yield final


class StructuredOutputParser:
    """Parses JSON content that the provider constrained to a schema."""

    def __init__(self, args_schema: Type[BaseModel]):
        self.args_schema = args_schema

    def stream(self, chunks: Iterable[ChatChunk]) -> Iterator[Dict[str, Any]]:
        buffer = ""
        last = None
        for chunk in chunks:
            if not chunk.content:
                continue
            buffer += chunk.content
            try:
                partial = parse_partial_json(buffer)
            except json.JSONDecodeError:
                # No snapshot yet; the final parse below decides
                continue
            if isinstance(partial, dict) and partial != last:
                last = partial
                yield partial

        try:
            value = json.loads(buffer)
        except json.JSONDecodeError as e:
            logger.warning(f"Structured output is not valid JSON: {buffer[:100]!r}")
            raise ParseError(f"Structured output is not valid JSON: {e}") from e

        final = validate_arguments(self.args_schema, value)
        if final != last:
            yield final

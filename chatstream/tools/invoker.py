"""
Tool-Invocation Pipeline

Prompts the model with a fixed system instruction plus free-text input and
streams structured arguments for one tool back to the caller.

Execution modes:
- STRUCTURED_OUTPUT: the provider constrains its output to the tool's
  parameter schema; the JSON content is parsed as it streams
- FORCED_TOOL: the tool is bound and its call is mandatory; the arguments
  are read from the call made under the tool's name
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from chatstream.core.config import settings
from chatstream.core.logging import get_logger, log_checkpoint
from chatstream.llm.client import LLMClient, get_llm_client
from chatstream.llm.streaming import StreamableValue
from chatstream.rag.prompt import PromptBuilder, get_prompt_builder
from chatstream.tools.definitions import WEATHER_TOOL, ToolSpecification
from chatstream.tools.parser import JsonKeyToolsParser, StructuredOutputParser

logger = get_logger(__name__)


class ExecutionMode(str, Enum):
    STRUCTURED_OUTPUT = "structured_output"
    FORCED_TOOL = "forced_tool"

    @classmethod
    def from_options(cls, force_structured_output: bool = False) -> "ExecutionMode":
        return cls.STRUCTURED_OUTPUT if force_structured_output else cls.FORCED_TOOL


@dataclass
class ToolInvocation:
    """Handle returned to the caller; nothing runs until ``stream_data`` is consumed"""

    stream_data: StreamableValue
    mode: ExecutionMode


class ToolInvoker:
    """Runs one tool specification against the model provider"""

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        tool: ToolSpecification = WEATHER_TOOL,
        prompt_builder: Optional[PromptBuilder] = None,
        temperature: float = settings.TOOL_TEMPERATURE
    ):
        self.llm_client = llm_client or get_llm_client()
        self.tool = tool
        self.prompt_builder = prompt_builder or get_prompt_builder()
        self.temperature = temperature

    def invoke(self, user_input: str, force_structured_output: bool = False) -> ToolInvocation:
        """
        Start a tool invocation.

        Provider and parsing failures surface while ``stream_data`` is being
        iterated; the stream then ends in the ``error`` state.
        """
        mode = ExecutionMode.from_options(force_structured_output)
        messages = self.prompt_builder.build_tool_messages(user_input)
        log_checkpoint(logger, "tool_invoke", tool=self.tool.name, mode=mode.value, input=user_input)

        if mode is ExecutionMode.STRUCTURED_OUTPUT:
            source = self._run_structured_output(messages)
        else:
            source = self._run_forced_tool(messages)

        return ToolInvocation(stream_data=StreamableValue(source), mode=mode)

    def _run_structured_output(self, messages: List[Dict[str, str]]) -> Iterator[Dict[str, Any]]:
        chunks = self.llm_client.stream_chat(
            messages,
            temperature=self.temperature,
            response_schema=self.tool.parameters,
        )
        parser = StructuredOutputParser(self.tool.args_schema)
        yield from self._logged(parser.stream(chunks))

    def _run_forced_tool(self, messages: List[Dict[str, str]]) -> Iterator[Dict[str, Any]]:
        chunks = self.llm_client.stream_chat(
            messages,
            temperature=self.temperature,
            tools=[self.tool.to_tool()],
            forced_tool=self.tool.name,
        )
        parser = JsonKeyToolsParser(key_name=self.tool.name, args_schema=self.tool.args_schema)
        yield from self._logged(parser.stream(chunks))

    def _logged(self, values: Iterator[Dict[str, Any]]) -> Iterator[Dict[str, Any]]:
        count = 0
        for value in values:
            count += 1
            yield value
        log_checkpoint(logger, "tool_stream", tool=self.tool.name, updates=count)


# Global invoker instance
_tool_invoker = None


def get_tool_invoker() -> ToolInvoker:
    """Get or create tool invoker instance"""
    global _tool_invoker
    if _tool_invoker is None:
        _tool_invoker = ToolInvoker()
    return _tool_invoker


def execute_tool(user_input: str, force_structured_output: bool = False) -> ToolInvocation:
    """Convenience function to invoke the default tool"""
    return get_tool_invoker().invoke(user_input, force_structured_output=force_structured_output)

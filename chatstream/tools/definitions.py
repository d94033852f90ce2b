"""Tool specifications exposed to the tool-invocation pipeline."""

from dataclasses import dataclass
from typing import Any, Dict, Type

from pydantic import BaseModel, Field


class Weather(BaseModel):
    """Weather search parameters"""

    city: str = Field(..., description="City to search for weather")
    state: str = Field(..., description="State abbreviation to search for weather")


@dataclass(frozen=True)
class ToolSpecification:
    """A named function the model can be asked to call.

    ``name`` is also the key the tools parser extracts results under, so the
    binding and the parser are always built from the same specification.
    """

    name: str
    description: str
    args_schema: Type[BaseModel]

    @property
    def parameters(self) -> Dict[str, Any]:
        """JSON schema of the arguments"""
        return self.args_schema.model_json_schema()

    def to_tool(self) -> Dict[str, Any]:
        """OpenAI-style function tool, the format Ollama accepts in ``tools``"""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


WEATHER_TOOL = ToolSpecification(
    name="get_weather",
    description="Weather search parameters",
    args_schema=Weather,
)

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, Optional, List
from enum import Enum


class ChatMessageRole(str, Enum):
    """Chat message role enumeration"""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    FUNCTION = "function"
    TOOL = "tool"
    DATA = "data"


class ChatMessage(BaseModel):
    """Single chat message, immutable once received"""
    model_config = ConfigDict(frozen=True)

    role: ChatMessageRole
    content: str = Field(..., max_length=50000)


class RetrievalChatRequest(BaseModel):
    """Conversational retrieval request: the whole conversation so far"""
    messages: List[ChatMessage] = Field(
        default_factory=list,
        description="Ordered chat history, latest user message last"
    )


class ToolInvocationRequest(BaseModel):
    """Tool pipeline request"""
    input: str = Field(..., min_length=1, max_length=10000, description="Free-text user input")
    force_structured_output: bool = Field(
        default=False,
        description="Use structured output instead of a forced tool call"
    )

    @field_validator("input")
    @classmethod
    def validate_input(cls, v):
        """Validate input is not just whitespace"""
        if not v.strip():
            raise ValueError("Input cannot be empty or whitespace only")
        return v.strip()


class IngestionRequest(BaseModel):
    """Raw text ingestion request"""
    text: str = Field(..., min_length=1, description="Text to split, embed and store")
    metadata: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Metadata attached to every chunk"
    )

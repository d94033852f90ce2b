from pydantic import BaseModel, ConfigDict, Field
from typing import List, Dict, Any
from enum import Enum


class ResponseStatus(str, Enum):
    """Response status enumeration"""
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class SourceManifestEntry(BaseModel):
    """One retrieved document as shown to the client for citations"""
    model_config = ConfigDict(populate_by_name=True)

    page_content: str = Field(..., alias="pageContent", description="Truncated document content")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Document metadata")


class IngestionResponse(BaseModel):
    """Document ingestion response model"""
    status: ResponseStatus = Field(..., description="Ingestion status")
    chunks_created: int = Field(..., ge=0, description="Number of chunks stored")
    doc_ids: List[str] = Field(default_factory=list, description="Ids of the stored chunks")


class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="ok or degraded")
    llm_ok: bool = Field(..., description="Model provider reachable")
    documents: int = Field(..., ge=0, description="Documents in the vector store")


class ErrorResponse(BaseModel):
    """Error body returned by every failing endpoint"""
    error: str = Field(..., description="Error message")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"error": "messages must contain at least one message"}
        }
    )

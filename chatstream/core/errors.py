"""
Pipeline error kinds.

Every stage of both pipelines raises one of these. They all bubble up to a
single boundary per request, which renders ``{"error": message}`` with the
error's ``status_code``.
"""

from typing import Optional


class PipelineError(Exception):
    """Base error for every pipeline stage failure."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(PipelineError):
    """Malformed or empty request input."""

    status_code = 400


class ProviderError(PipelineError):
    """Model provider call failed. Carries the provider's HTTP status when known."""


class RetrievalError(PipelineError):
    """Embedding or vector store call failed."""


class ParseError(PipelineError):
    """Structured model output could not be parsed into the tool schema."""


__all__ = [
    "PipelineError",
    "ValidationError",
    "ProviderError",
    "RetrievalError",
    "ParseError",
]

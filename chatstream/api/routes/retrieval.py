import json
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError as SchemaValidationError
from starlette.concurrency import run_in_threadpool

from chatstream.core.config import settings
from chatstream.core.errors import ValidationError
from chatstream.core.logging import get_logger, log_checkpoint
from chatstream.llm.streaming import prime_stream
from chatstream.models.request import RetrievalChatRequest
from chatstream.models.response import ErrorResponse
from chatstream.rag.pipeline import ConversationalRetrievalPipeline, get_pipeline, response_headers

logger = get_logger(__name__)

router = APIRouter()


def parse_chat_request(body: Any) -> RetrievalChatRequest:
    try:
        return RetrievalChatRequest.model_validate(body)
    except SchemaValidationError as e:
        raise ValidationError(f"Invalid request body: {e.errors()[0]['msg']}") from e


@router.post(
    "/api/chat/retrieval",
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
)
async def chat_retrieval(
    request: Request,
    pipeline: ConversationalRetrievalPipeline = Depends(get_pipeline)
):
    """
    Answer the latest message from retrieved documents.

    The answer streams as plain text. ``x-message-index`` locates this turn
    in the conversation and ``x-sources`` carries the base64 JSON source
    manifest for citations.
    """
    try:
        try:
            body = await request.json()
        except json.JSONDecodeError as e:
            raise ValidationError(f"Request body is not valid JSON: {e}") from e

        chat_request = parse_chat_request(body)
        prepared = await run_in_threadpool(pipeline.prepare, chat_request.messages)
        stream = await run_in_threadpool(
            prime_stream,
            pipeline.answer(prepared),
            settings.STREAM_ERROR_MARKER.encode("utf-8")
        )
    except Exception as e:
        logger.error(f"Chat API error: {e}")
        return JSONResponse(
            status_code=getattr(e, "status_code", 500),
            content={"error": str(e)}
        )

    headers = response_headers(prepared)
    log_checkpoint(logger, "respond", **headers)
    return StreamingResponse(stream, media_type="text/plain; charset=utf-8", headers=headers)

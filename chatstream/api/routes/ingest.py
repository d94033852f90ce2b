from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from chatstream.models.request import IngestionRequest
from chatstream.models.response import ErrorResponse, IngestionResponse
from chatstream.services.ingestion import IngestionService, get_ingestion_service

router = APIRouter()


@router.post(
    "/api/retrieval/ingest",
    response_model=IngestionResponse,
    responses={400: {"model": ErrorResponse}}
)
async def ingest_text(
    request: IngestionRequest,
    service: IngestionService = Depends(get_ingestion_service)
):
    """Split, embed and store raw text so the retrieval endpoint can find it."""
    return await run_in_threadpool(service.ingest_text, request.text, request.metadata)

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool

from chatstream.api.routes import ingest, retrieval, tools
from chatstream.core.config import settings
from chatstream.core.errors import PipelineError
from chatstream.core.logging import log_startup_info, log_shutdown_info, get_logger
from chatstream.llm.client import LLMClient, get_llm_client
from chatstream.models.response import HealthCheckResponse
from chatstream.services.ingestion import IngestionService, get_ingestion_service

logger = get_logger(__name__)

app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION)

# CORS; the browser client reads the citation headers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["x-message-index", "x-sources"],
)

app.include_router(retrieval.router)
app.include_router(tools.router)
app.include_router(ingest.router)


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    logger.error(f"{request.url.path} failed: {exc}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    messages = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    logger.warning(f"Invalid request to {request.url.path}: {messages}")
    return JSONResponse(status_code=400, content={"error": "; ".join(messages)})


@app.on_event("startup")
async def startup_event():
    log_startup_info()
    client = get_llm_client()
    verify = getattr(client, "verify_connection", None)
    if verify is not None and not await run_in_threadpool(verify):
        logger.warning("Model provider is not reachable; requests will fail until it is")
    logger.info("Application startup completed")


@app.on_event("shutdown")
async def shutdown_event():
    log_shutdown_info()


@app.get("/health", response_model=HealthCheckResponse)
async def health(
    ingestion_service: IngestionService = Depends(get_ingestion_service),
    llm_client: LLMClient = Depends(get_llm_client)
):
    """Health check: model provider reachability and vector store size."""
    verify = getattr(llm_client, "verify_connection", lambda: True)
    try:
        llm_ok = bool(await run_in_threadpool(verify))
    except Exception as e:
        logger.warning(f"LLM health check failed: {e}")
        llm_ok = False

    stats = await run_in_threadpool(ingestion_service.get_index_stats)
    return {
        "status": "ok" if llm_ok else "degraded",
        "llm_ok": llm_ok,
        "documents": stats["documents"],
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "chatstream.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.RELOAD,
    )

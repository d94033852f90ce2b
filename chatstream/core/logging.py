import logging
import logging.handlers
from pathlib import Path
from typing import Any, Optional

from .config import settings


def setup_logging() -> logging.Logger:
    """
    Configure the application logger.

    Returns:
        logging.Logger: Configured logger instance
    """
    if settings.LOG_FILE:
        log_dir = Path(settings.LOG_FILE).parent
        log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(settings.APP_NAME)
    logger.setLevel(getattr(logging, settings.LOG_LEVEL))

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    formatter = logging.Formatter(
        fmt=settings.LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, settings.LOG_LEVEL))
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if settings.LOG_FILE:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                filename=settings.LOG_FILE,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding="utf-8"
            )
            file_handler.setLevel(getattr(logging, settings.LOG_LEVEL))
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Failed to setup file logging: {e}")

    logger.propagate = False

    return logger


logger = setup_logging()


def get_logger(module_name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        module_name: Name of the module (typically __name__)

    Returns:
        logging.Logger: Logger instance for the module
    """
    if module_name:
        return logging.getLogger(f"{settings.APP_NAME}.{module_name}")
    return logger


def log_checkpoint(
    target: logging.Logger,
    stage: str,
    level: int = logging.INFO,
    **fields: Any
) -> None:
    """
    Log a pipeline checkpoint as ``stage=<name> key=value ...``.

    Long string values are cut to 100 characters so a single checkpoint
    never floods the log with a whole prompt or document.
    """
    parts = [f"stage={stage}"]
    for key, value in fields.items():
        if isinstance(value, str) and len(value) > 100:
            value = value[:100] + "..."
        parts.append(f"{key}={value!r}")
    target.log(level, " ".join(parts))


def log_startup_info():
    """Log the provider, vector store and per-pipeline settings the service starts with"""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Provider: {settings.LLM_TYPE} at {settings.OLLAMA_BASE_URL} (model {settings.LLM_MODEL_NAME})")
    logger.info(f"Embeddings: {settings.EMBEDDING_MODEL} ({settings.EMBEDDING_DIMENSION} dims)")
    logger.info(f"Vector Store: {settings.VECTOR_STORE_TYPE} ({settings.CHROMA_COLLECTION_NAME})")
    logger.info(
        f"Retrieval pipeline: temperature={settings.RETRIEVAL_TEMPERATURE} "
        f"top_k={settings.RETRIEVAL_TOP_K} subject={settings.ANSWER_SUBJECT!r}"
    )
    logger.info(f"Tool pipeline: temperature={settings.TOOL_TEMPERATURE}")
    logger.info(f"Debug Mode: {settings.DEBUG}, Log Level: {settings.LOG_LEVEL}")
    logger.info("=" * 60)


def log_shutdown_info():
    """Log application shutdown information"""
    logger.info("=" * 60)
    logger.info(f"Shutting down {settings.APP_NAME}")
    logger.info("=" * 60)

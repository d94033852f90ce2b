import os
from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings and configuration"""

    # ============ APP SETTINGS ============
    APP_NAME: str = "Chat Stream"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"

    # ============ SERVER SETTINGS ============
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", 8000))
    RELOAD: bool = os.getenv("RELOAD", "True").lower() == "true"

    # ============ CORS SETTINGS ============
    ALLOWED_ORIGINS: list = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")

    # ============ MODEL PROVIDER SETTINGS ============
    LLM_TYPE: str = "ollama"
    LLM_MODEL_NAME: str = os.getenv("LLM_MODEL_NAME", "llama3.2")
    OLLAMA_BASE_URL: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    LLM_TIMEOUT: int = int(os.getenv("LLM_TIMEOUT", 120))

    # Per-pipeline sampling temperature
    RETRIEVAL_TEMPERATURE: float = float(os.getenv("RETRIEVAL_TEMPERATURE", 0.2))
    TOOL_TEMPERATURE: float = float(os.getenv("TOOL_TEMPERATURE", 0.0))

    # ============ EMBEDDING SETTINGS ============
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "nomic-embed-text")
    EMBEDDING_DIMENSION: int = int(os.getenv("EMBEDDING_DIMENSION", 768))

    # ============ VECTOR STORE SETTINGS ============
    VECTOR_STORE_TYPE: str = "chroma"
    VECTOR_STORE_PATH: str = os.getenv("VECTOR_STORE_PATH", "./data/chroma")
    CHROMA_COLLECTION_NAME: str = os.getenv("CHROMA_COLLECTION_NAME", "documents")

    # ============ RETRIEVAL SETTINGS ============
    RETRIEVAL_TOP_K: int = int(os.getenv("RETRIEVAL_TOP_K", 3))
    # Characters of each source kept in the x-sources header
    SOURCE_PREVIEW_CHARS: int = 50

    # Subject the grounded answer prompt is allowed to generalise to
    ANSWER_SUBJECT: str = os.getenv("ANSWER_SUBJECT", "GymNavigator")
    ANSWER_SUBJECT_DOMAIN: str = os.getenv("ANSWER_SUBJECT_DOMAIN", "gym management systems")

    # Appended to a retrieval stream that fails after bytes were sent
    STREAM_ERROR_MARKER: str = "\n\n[stream error]"

    # ============ INGESTION SETTINGS ============
    DATA_RAW_PATH: str = os.getenv("DATA_RAW_PATH", "./data/raw")
    INGEST_CHUNK_SIZE: int = int(os.getenv("INGEST_CHUNK_SIZE", 256))
    INGEST_CHUNK_OVERLAP: int = int(os.getenv("INGEST_CHUNK_OVERLAP", 20))
    SUPPORTED_FILE_TYPES: list = [".pdf", ".txt", ".docx", ".md"]
    MAX_FILE_SIZE_MB: int = int(os.getenv("MAX_FILE_SIZE_MB", 50))

    # ============ LOGGING SETTINGS ============
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_FILE: Optional[str] = os.getenv("LOG_FILE", "logs/app.log")

    class Config:
        env_file = ".env"
        case_sensitive = True


# Instantiate settings
settings = Settings()

"""Configuration management for the document RAG service."""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _get_optional_int(name: str):
    value = os.getenv(name)
    return int(value) if value else None


# Embedding provider
EMBEDDING_PROVIDER = os.getenv("EMBEDDING_PROVIDER", "gemini").lower()
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
HUGGINGFACE_API_KEY = os.getenv("HUGGINGFACE_API_KEY")

GEMINI_EMBEDDING_MODEL = "text-embedding-004"
HUGGINGFACE_EMBEDDING_MODEL = "sentence-transformers/all-mpnet-base-v2"
EMBEDDING_MODEL = os.getenv(
    "EMBEDDING_MODEL",
    GEMINI_EMBEDDING_MODEL if EMBEDDING_PROVIDER == "gemini" else HUGGINGFACE_EMBEDDING_MODEL
)
EMBEDDING_OUTPUT_DIMENSIONALITY = _get_optional_int("EMBEDDING_OUTPUT_DIMENSIONALITY")

# Server Configuration
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json")

# CORS Configuration
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:3001"
).split(",")

# Chunking Configuration
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "1000"))  # characters
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "200"))  # characters
MIN_CHUNK_LENGTH = 50  # chunks must be longer than this after trimming

# Embedding Client Configuration
EMBEDDING_BATCH_SIZE = int(os.getenv("EMBEDDING_BATCH_SIZE", "10"))
EMBEDDING_BATCH_DELAY = float(os.getenv("EMBEDDING_BATCH_DELAY", "1.0"))  # seconds between groups
EMBEDDING_MAX_RETRIES = int(os.getenv("EMBEDDING_MAX_RETRIES", "3"))
EMBEDDING_INITIAL_DELAY = float(os.getenv("EMBEDDING_INITIAL_DELAY", "1.0"))
EMBEDDING_MAX_DELAY = float(os.getenv("EMBEDDING_MAX_DELAY", "30.0"))
EMBEDDING_TIMEOUT = float(os.getenv("EMBEDDING_TIMEOUT", "30.0"))

# Retrieval Configuration
MIN_SIMILARITY = float(os.getenv("MIN_SIMILARITY", "0.7"))
MAX_RESULTS = int(os.getenv("MAX_RESULTS", "5"))

# Ingestion Configuration
MAX_DOCUMENT_CHARS = 50 * 1024 * 1024
PARTIAL_INGESTION = _get_bool("PARTIAL_INGESTION", False)
EMBED_WITH_CONTEXT_HEADER = _get_bool("EMBED_WITH_CONTEXT_HEADER", False)
KEYWORD_FALLBACK = _get_bool("KEYWORD_FALLBACK", True)

"""Main entry point for the document RAG API."""
import logging
from typing import List

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from config import CORS_ORIGINS, KEYWORD_FALLBACK, LOG_FORMAT, LOG_LEVEL, PORT
from logger import setup_logging
from models.api import (
    DocumentInfo,
    DocumentRequest,
    IndexResponse,
    SearchHit,
    SearchRequest,
    SearchResponseModel,
    StatsResponse,
)
from models.document import Document, DocumentIndexEntry
from models.results import SearchOptions
from services.embedding_client import EmbeddingClient
from services.embedding_provider import create_embedding_provider
from services.errors import RAGError
from services.rag_coordinator import RagCoordinator
from services.search_engine import KeywordSearchEngine

# Initialize logging
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Document RAG Service",
    description="Document indexing and semantic search for retrieval-augmented chat",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services (will be done on startup)
coordinator: RagCoordinator = None

# HTTP status per error code of a failed result
ERROR_STATUS = {
    "VALIDATION_ERROR": 400,
    "CANCELLED": 499,
    "EMBEDDING_PROVIDER_ERROR": 502,
}


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    global coordinator

    setup_logging(LOG_LEVEL, LOG_FORMAT)
    logger.info("Initializing document RAG services...")

    try:
        embedding_client = EmbeddingClient(create_embedding_provider())
        coordinator = RagCoordinator(
            embedding_client,
            fallback_engine=KeywordSearchEngine() if KEYWORD_FALLBACK else None
        )
        logger.info("All services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise


@app.on_event("shutdown")
async def shutdown_event():
    """Release embedding worker threads."""
    if coordinator is not None:
        coordinator.embedding_client.close()
        logger.info("Embedding client closed")


@app.exception_handler(RAGError)
async def rag_error_handler(request: Request, exc: RAGError) -> JSONResponse:
    """Errors that escape the services, e.g. an embedding dimension mismatch."""
    status_code = ERROR_STATUS.get(exc.code, 500)
    logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=status_code, content={"detail": {"error": exc.to_dict()}})


def _error(status_code: int, code: str, message: str, details: dict = None) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"error": {"code": code, "message": message, "details": details or {}}}
    )


def _document_info(entry: DocumentIndexEntry) -> DocumentInfo:
    return DocumentInfo(
        document_id=entry.document_id,
        filename=entry.filename,
        document_type=entry.document_type,
        total_chunks=entry.total_chunks,
        indexed_at=entry.indexed_at,
        metadata=entry.metadata
    )


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "Document RAG API"}


@app.get("/health")
def health():
    """Detailed health check."""
    stats = coordinator.stats()
    return {
        "status": "healthy",
        "service": "document-rag",
        "version": "1.0.0",
        "documents": stats.total_documents,
        "chunks": stats.total_chunks
    }


@app.post("/documents", response_model=IndexResponse)
def index_document(request: DocumentRequest) -> IndexResponse:
    """
    Chunk, embed and index a document.

    Raises:
        HTTPException: 400 for invalid documents, 502 when embedding fails
    """
    logger.info(f"Indexing document: {request.filename}")

    result = coordinator.process(Document(
        text=request.text,
        filename=request.filename,
        document_type=request.document_type,
        total_pages=request.total_pages,
        title=request.title,
        author=request.author,
        document_id=request.document_id
    ))

    if not result.success:
        raise _error(
            ERROR_STATUS.get(result.error_code, 500),
            result.error_code or "UNKNOWN_ERROR",
            result.error,
            {"warnings": result.warnings}
        )

    return IndexResponse(
        success=True,
        document_id=result.document_id,
        chunks_created=result.chunks_created,
        processing_time_ms=result.processing_time,
        warnings=result.warnings
    )


@app.get("/documents", response_model=List[DocumentInfo])
def list_documents() -> List[DocumentInfo]:
    """List indexed documents."""
    return [_document_info(entry) for entry in coordinator.list_documents()]


@app.get("/documents/{document_id}", response_model=DocumentInfo)
def get_document(document_id: str) -> DocumentInfo:
    """Fetch one indexed document."""
    entry = coordinator.get_document(document_id)
    if entry is None:
        raise _error(404, "NOT_FOUND", f"Document {document_id} not found")
    return _document_info(entry)


@app.delete("/documents/{document_id}")
def delete_document(document_id: str):
    """Remove a document and all of its chunks."""
    if not coordinator.remove(document_id):
        raise _error(404, "NOT_FOUND", f"Document {document_id} not found")
    return {"success": True, "document_id": document_id}


@app.post("/search", response_model=SearchResponseModel)
def search(request: SearchRequest) -> SearchResponseModel:
    """
    Rank indexed chunks against a query.

    An empty result list is a successful search. Fails only when the query
    is invalid or cannot be embedded.
    """
    options = SearchOptions(
        document_id=request.document_id,
        document_types=request.document_types,
        max_results=request.max_results,
        min_similarity=request.min_similarity
    )
    response = coordinator.search(request.query, options)

    if not response.success:
        raise _error(
            ERROR_STATUS.get(response.error_code, 500),
            response.error_code or "UNKNOWN_ERROR",
            response.error
        )

    hits = [
        SearchHit(
            rank=result.rank,
            content=result.chunk.content,
            similarity=result.similarity,
            filename=result.chunk.metadata.filename,
            document_type=result.chunk.metadata.document_type,
            document_id=result.chunk.metadata.document_id,
            chunk_index=result.chunk.metadata.chunk_index,
            page_number=result.chunk.metadata.page_number
        )
        for result in response.results
    ]

    return SearchResponseModel(
        success=True,
        query=response.query,
        results=hits,
        total_documents=response.total_documents,
        search_time_ms=response.search_time,
        strategy=response.strategy,
        warnings=response.warnings,
        context=RagCoordinator.context_string(response.results) if request.include_context else None
    )


@app.get("/stats", response_model=StatsResponse)
def stats() -> StatsResponse:
    """Index statistics."""
    current = coordinator.stats()
    return StatsResponse(
        total_documents=current.total_documents,
        total_chunks=current.total_chunks,
        document_types=current.document_types,
        average_chunks_per_document=current.average_chunks_per_document
    )


if __name__ == "__main__":
    import uvicorn
    setup_logging(LOG_LEVEL, LOG_FORMAT)
    logger.info(f"Starting document RAG API on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)

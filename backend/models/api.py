"""Request and response schemas for the HTTP API."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from models.document import DocumentType


class DocumentRequest(BaseModel):
    """Document text submitted for indexing."""
    text: str
    filename: str
    document_type: DocumentType
    total_pages: Optional[int] = Field(default=None, ge=0)
    title: Optional[str] = None
    author: Optional[str] = None
    document_id: Optional[str] = None


class IndexResponse(BaseModel):
    """Outcome of indexing a document."""
    success: bool
    document_id: Optional[str]
    chunks_created: int
    processing_time_ms: int
    warnings: List[str] = []


class SearchRequest(BaseModel):
    """Search query with optional filters."""
    query: str
    document_id: Optional[str] = None
    document_types: Optional[List[DocumentType]] = None
    max_results: int = Field(default=5, gt=0, le=100)
    min_similarity: float = Field(default=0.7, ge=-1.0, le=1.0)
    include_context: bool = True


class SearchHit(BaseModel):
    """One ranked chunk."""
    rank: int
    content: str
    similarity: float
    filename: str
    document_type: DocumentType
    document_id: str
    chunk_index: int
    page_number: Optional[int] = None


class SearchResponseModel(BaseModel):
    """Ranked search results."""
    success: bool
    query: str
    results: List[SearchHit]
    total_documents: int
    search_time_ms: int
    strategy: str
    warnings: List[str] = []
    context: Optional[str] = None


class DocumentInfo(BaseModel):
    """Registry entry of an indexed document."""
    document_id: str
    filename: str
    document_type: DocumentType
    total_chunks: int
    indexed_at: datetime
    metadata: Dict[str, Any] = {}


class StatsResponse(BaseModel):
    """Index statistics."""
    total_documents: int
    total_chunks: int
    document_types: Dict[str, int]
    average_chunks_per_document: float

"""Document data models."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class DocumentType(str, Enum):
    """Supported source document types."""
    PDF = "pdf"
    DOC = "doc"
    TXT = "txt"

    @classmethod
    def parse(cls, value) -> "DocumentType":
        """Coerce a string such as "PDF" or "txt" into a DocumentType."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            supported = ", ".join(t.value for t in cls)
            raise ValueError(f"Unsupported document type: {value}. Supported types: {supported}")


@dataclass
class Document:
    """Plain-text document handed over by the extraction front end."""
    text: str
    filename: str
    document_type: DocumentType
    total_pages: Optional[int] = None
    title: Optional[str] = None
    author: Optional[str] = None
    document_id: Optional[str] = None  # Generated by the coordinator when not given

    def source_metadata(self) -> Dict[str, Any]:
        """Metadata kept on the index entry."""
        metadata = {
            "title": self.title,
            "author": self.author,
            "pages": self.total_pages,
        }
        return {key: value for key, value in metadata.items() if value is not None}


@dataclass
class DocumentIndexEntry:
    """Registry entry for one ingested document."""
    document_id: str
    filename: str
    document_type: DocumentType
    total_chunks: int
    indexed_at: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)

"""Unit tests for VectorIndex."""
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import numpy as np
import pytest
from models.chunk import Chunk, ChunkMetadata
from models.document import DocumentType
from services.errors import DimensionMismatchError, ValidationError
from services.vector_index import VectorIndex


def make_chunk(document_id, index, vector, document_type=DocumentType.TXT):
    return Chunk(
        chunk_id=f"{document_id}_chunk_{index}",
        content=f"Content of chunk {index} from {document_id}",
        embedding=np.asarray(vector, dtype=float),
        metadata=ChunkMetadata(
            document_id=document_id,
            chunk_index=index,
            filename=f"{document_id}.txt",
            document_type=document_type,
            word_count=6,
            created_at=datetime.now(timezone.utc)
        )
    )


class TestVectorIndex:
    """Test suite for VectorIndex."""

    @pytest.fixture
    def index(self):
        index = VectorIndex()
        index.insert_all([make_chunk("doc_a", i, [1.0, float(i), 0.0]) for i in range(3)])
        index.insert_all([make_chunk("doc_b", i, [0.0, 1.0, float(i)], DocumentType.PDF) for i in range(2)])
        return index

    def test_insert_establishes_dimension(self):
        index = VectorIndex()
        assert index.dimension is None

        index.insert_all([make_chunk("doc", 0, [0.1, 0.2])])

        assert index.dimension == 2
        assert index.size() == 1

    def test_insert_empty_list(self):
        with pytest.raises(ValidationError, match="Chunks list cannot be empty"):
            VectorIndex().insert_all([])

    def test_iterate_in_insertion_order(self, index):
        ids = [chunk.chunk_id for chunk in index.iterate()]
        assert ids == [
            "doc_a_chunk_0", "doc_a_chunk_1", "doc_a_chunk_2",
            "doc_b_chunk_0", "doc_b_chunk_1",
        ]

    def test_iterate_by_document(self, index):
        ids = [chunk.chunk_id for chunk in index.iterate(document_id="doc_b")]
        assert ids == ["doc_b_chunk_0", "doc_b_chunk_1"]
        assert list(index.iterate(document_id="missing")) == []

    def test_iterate_with_predicate(self, index):
        pdf_chunks = list(index.iterate(lambda c: c.metadata.document_type == DocumentType.PDF))
        assert {c.document_id for c in pdf_chunks} == {"doc_b"}

    def test_dimension_mismatch_rejected(self, index):
        """A chunk with a different embedding length raises and is not inserted."""
        with pytest.raises(DimensionMismatchError) as exc_info:
            index.insert_all([make_chunk("doc_c", 0, [1.0, 2.0])])

        assert exc_info.value.expected == 3
        assert exc_info.value.actual == 2
        assert index.size() == 5
        assert index.count_for_document("doc_c") == 0

    def test_mixed_dimensions_in_one_insert(self):
        """The whole insert is rejected when any chunk disagrees."""
        index = VectorIndex()
        chunks = [make_chunk("doc", 0, [1.0, 0.0]), make_chunk("doc", 1, [1.0, 0.0, 0.0])]

        with pytest.raises(DimensionMismatchError):
            index.insert_all(chunks)

        assert index.size() == 0
        assert index.dimension is None

    def test_preset_dimension(self):
        index = VectorIndex(dimension=4)
        with pytest.raises(DimensionMismatchError):
            index.insert_all([make_chunk("doc", 0, [1.0, 0.0])])

    def test_duplicate_chunk_id(self, index):
        with pytest.raises(ValidationError, match="Duplicate chunk id"):
            index.insert_all([make_chunk("doc_a", 0, [1.0, 1.0, 1.0])])
        assert index.size() == 5

    def test_delete_by_document(self, index):
        removed = index.delete_by_document("doc_a")

        assert removed == 3
        assert index.size() == 2
        assert all(chunk.document_id != "doc_a" for chunk in index.iterate())
        assert index.document_ids() == ["doc_b"]

    def test_delete_unknown_document(self, index):
        version = index.version
        assert index.delete_by_document("missing") == 0
        assert index.version == version

    def test_reader_sees_snapshot(self, index):
        """An iteration started before a delete still sees the old state."""
        iterator = index.iterate()
        first = next(iterator)

        index.delete_by_document("doc_b")
        index.insert_all([make_chunk("doc_c", 0, [1.0, 1.0, 1.0])])

        remaining = [first.chunk_id] + [chunk.chunk_id for chunk in iterator]
        assert len(remaining) == 5
        assert "doc_c_chunk_0" not in remaining
        assert index.size() == 4

    def test_version_increments(self):
        index = VectorIndex()
        index.insert_all([make_chunk("doc", 0, [1.0])])
        index.delete_by_document("doc")
        assert index.version == 2

    def test_clear_keeps_dimension(self, index):
        index.clear()
        assert index.size() == 0
        assert index.dimension == 3
        assert len(index) == 0

    def test_get(self, index):
        assert index.get("doc_a_chunk_1").metadata.chunk_index == 1
        assert index.get("nope") is None

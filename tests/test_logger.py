"""Unit tests for structured logging."""
import json
import logging
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from logger import JSONFormatter, setup_logging


def make_record(message="Document processed", level=logging.INFO, exc_info=None, **extra):
    record = logging.LogRecord(
        name="services.rag_coordinator",
        level=level,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=exc_info
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Test suite for JSONFormatter."""

    def test_basic_fields(self):
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "services.rag_coordinator"
        assert data["message"] == "Document processed"
        assert data["timestamp"].endswith("Z")
        assert "exception" not in data

    def test_extra_fields(self):
        record = make_record(document_id="doc_1", chunks_created=4)

        data = json.loads(JSONFormatter().format(record))

        assert data["document_id"] == "doc_1"
        assert data["chunks_created"] == 4
        assert "pathname" not in data

    def test_exception(self):
        try:
            raise ValueError("bad chunk")
        except ValueError:
            record = make_record("Failed", level=logging.ERROR, exc_info=sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "ERROR"
        assert "ValueError: bad chunk" in data["exception"]


class TestSetupLogging:

    def test_handler_replaced_not_duplicated(self):
        root_logger = logging.getLogger()
        original_level = root_logger.level
        try:
            setup_logging("DEBUG", "json")
            setup_logging("WARNING", "text")

            handlers = [h for h in root_logger.handlers if getattr(h, "_rag_handler", False)]
            assert len(handlers) == 1
            assert not isinstance(handlers[0].formatter, JSONFormatter)
            assert root_logger.level == logging.WARNING
        finally:
            for handler in list(root_logger.handlers):
                if getattr(handler, "_rag_handler", False):
                    root_logger.removeHandler(handler)
            root_logger.setLevel(original_level)

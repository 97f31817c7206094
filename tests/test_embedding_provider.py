"""Unit tests for the HTTP embedding providers."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import Mock, patch, MagicMock
import httpx
from services.embedding_provider import (
    GeminiEmbeddingProvider,
    HuggingFaceEmbeddingProvider,
    TaskType,
    create_embedding_provider,
)
from services.errors import EmbeddingProviderError


def mock_http(mock_client_class, response=None, side_effect=None):
    """Wire a patched httpx.Client to return a response (or raise)."""
    mock_client = MagicMock()
    post = mock_client.__enter__.return_value.post
    if side_effect is not None:
        post.side_effect = side_effect
    else:
        post.return_value = response
    mock_client_class.return_value = mock_client
    return post


def make_response(status_code, body=None, text=""):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = body
    response.text = text
    return response


class TestGeminiEmbeddingProvider:
    """Test suite for GeminiEmbeddingProvider."""

    def test_initialization_without_api_key(self):
        with pytest.raises(ValueError, match="GEMINI_API_KEY"):
            GeminiEmbeddingProvider(api_key=None)

    def test_initialization(self):
        provider = GeminiEmbeddingProvider(api_key="test_key")
        assert provider.model_name == "text-embedding-004"
        assert provider.api_url.endswith("/models/text-embedding-004:embedContent")

    @patch('httpx.Client')
    def test_embed_document(self, mock_client_class):
        post = mock_http(mock_client_class, make_response(200, {"embedding": {"values": [0.1, 0.2]}}))
        provider = GeminiEmbeddingProvider(api_key="test_key")

        result = provider.embed("some document text", TaskType.DOCUMENT)

        assert result == [0.1, 0.2]
        kwargs = post.call_args.kwargs
        assert kwargs["headers"]["x-goog-api-key"] == "test_key"
        assert kwargs["json"]["taskType"] == "RETRIEVAL_DOCUMENT"
        assert kwargs["json"]["content"] == {"parts": [{"text": "some document text"}]}
        assert "outputDimensionality" not in kwargs["json"]

    @patch('httpx.Client')
    def test_embed_query_with_output_dimensionality(self, mock_client_class):
        post = mock_http(mock_client_class, make_response(200, {"embedding": {"values": [1.0]}}))
        provider = GeminiEmbeddingProvider(api_key="test_key", output_dimensionality=256)

        provider.embed("a question", TaskType.QUERY)

        payload = post.call_args.kwargs["json"]
        assert payload["taskType"] == "RETRIEVAL_QUERY"
        assert payload["outputDimensionality"] == 256

    @patch('httpx.Client')
    def test_invalid_response(self, mock_client_class):
        mock_http(mock_client_class, make_response(200, {"embedding": {}}))
        provider = GeminiEmbeddingProvider(api_key="test_key")

        with pytest.raises(EmbeddingProviderError, match="Invalid embedding response") as exc_info:
            provider.embed("text")
        assert exc_info.value.transient is False


class TestHuggingFaceEmbeddingProvider:
    """Test suite for HuggingFaceEmbeddingProvider."""

    def test_initialization_without_api_key(self):
        with pytest.raises(ValueError, match="HUGGINGFACE_API_KEY"):
            HuggingFaceEmbeddingProvider(api_key=None)

    @patch('httpx.Client')
    def test_embed_nested_response(self, mock_client_class):
        post = mock_http(mock_client_class, make_response(200, [[0.1, 0.2, 0.3]]))
        provider = HuggingFaceEmbeddingProvider(api_key="test_key")

        result = provider.embed("test text")

        assert result == [0.1, 0.2, 0.3]
        kwargs = post.call_args.kwargs
        assert kwargs["headers"]["Authorization"] == "Bearer test_key"
        assert kwargs["json"]["inputs"] == ["test text"]
        assert kwargs["json"]["options"]["wait_for_model"] is True

    @patch('httpx.Client')
    def test_embed_flat_response(self, mock_client_class):
        mock_http(mock_client_class, make_response(200, [0.4, 0.5]))
        provider = HuggingFaceEmbeddingProvider(api_key="test_key")

        assert provider.embed("test text") == [0.4, 0.5]

    @patch('httpx.Client')
    def test_task_prefixes(self, mock_client_class):
        post = mock_http(mock_client_class, make_response(200, [[1.0]]))
        provider = HuggingFaceEmbeddingProvider(
            api_key="test_key", query_prefix="query: ", document_prefix="passage: "
        )

        provider.embed("find me", TaskType.QUERY)
        assert post.call_args.kwargs["json"]["inputs"] == ["query: find me"]

        provider.embed("stored text", TaskType.DOCUMENT)
        assert post.call_args.kwargs["json"]["inputs"] == ["passage: stored text"]

    @patch('httpx.Client')
    def test_service_unavailable_is_transient(self, mock_client_class):
        mock_http(mock_client_class, make_response(503, {"estimated_time": 10}, '{"estimated_time": 10}'))
        provider = HuggingFaceEmbeddingProvider(api_key="test_key")

        with pytest.raises(EmbeddingProviderError) as exc_info:
            provider.embed("test text")
        assert exc_info.value.transient is True
        assert exc_info.value.status_code == 503

    @patch('httpx.Client')
    def test_rate_limit_is_transient(self, mock_client_class):
        mock_http(mock_client_class, make_response(429, text="Too many requests"))
        provider = HuggingFaceEmbeddingProvider(api_key="test_key")

        with pytest.raises(EmbeddingProviderError) as exc_info:
            provider.embed("test text")
        assert exc_info.value.transient is True

    @patch('httpx.Client')
    def test_authentication_error_is_permanent(self, mock_client_class):
        mock_http(mock_client_class, make_response(401, text="Unauthorized"))
        provider = HuggingFaceEmbeddingProvider(api_key="bad_key")

        with pytest.raises(EmbeddingProviderError, match="Invalid API key") as exc_info:
            provider.embed("test text")
        assert exc_info.value.transient is False

    @patch('httpx.Client')
    def test_bad_request_is_permanent(self, mock_client_class):
        mock_http(mock_client_class, make_response(400, text="Bad request"))
        provider = HuggingFaceEmbeddingProvider(api_key="test_key")

        with pytest.raises(EmbeddingProviderError, match="status 400") as exc_info:
            provider.embed("test text")
        assert exc_info.value.transient is False

    @patch('httpx.Client')
    def test_timeout_is_transient(self, mock_client_class):
        mock_http(mock_client_class, side_effect=httpx.TimeoutException("Timeout"))
        provider = HuggingFaceEmbeddingProvider(api_key="test_key", timeout=2.0)

        with pytest.raises(EmbeddingProviderError, match="timeout after 2.0s") as exc_info:
            provider.embed("test text")
        assert exc_info.value.transient is True

    @patch('httpx.Client')
    def test_network_error_is_transient(self, mock_client_class):
        mock_http(mock_client_class, side_effect=httpx.ConnectError("Connection refused"))
        provider = HuggingFaceEmbeddingProvider(api_key="test_key")

        with pytest.raises(EmbeddingProviderError, match="network error") as exc_info:
            provider.embed("test text")
        assert exc_info.value.transient is True


class TestCreateEmbeddingProvider:

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown embedding provider"):
            create_embedding_provider("word2vec")

    @patch('services.embedding_provider.GeminiEmbeddingProvider')
    def test_gemini(self, mock_provider_class):
        assert create_embedding_provider("Gemini") is mock_provider_class.return_value

    @patch('services.embedding_provider.HuggingFaceEmbeddingProvider')
    def test_huggingface(self, mock_provider_class):
        assert create_embedding_provider("huggingface") is mock_provider_class.return_value

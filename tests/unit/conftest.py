"""Unit-level conftest: mocks for Anthropic, ChromaDB, Voyage and MarkItDown."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest


# ---------------------------------------------------------------------------
# Anthropic mock helpers
# ---------------------------------------------------------------------------


def _make_anthropic_response(text=""):
    """Factory for Anthropic API message responses."""
    content = [SimpleNamespace(type="text", text=text)] if text else []
    return SimpleNamespace(
        content=content,
        usage=SimpleNamespace(input_tokens=100, output_tokens=50),
        stop_reason="end_turn",
    )


@pytest.fixture
def mock_anthropic_client():
    client = MagicMock()
    client.messages.create.return_value = _make_anthropic_response('{"ok": true}')
    return client


# ---------------------------------------------------------------------------
# ChromaDB mock
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_chroma_client():
    """Mock ChromaDB persistent client exposing its single evidence collection."""
    collection = MagicMock()
    collection.get.return_value = {"ids": [], "metadatas": []}
    collection.query.return_value = {
        "ids": [[]],
        "metadatas": [[]],
        "distances": [[]],
        "documents": [[]],
    }
    client = MagicMock()
    client.get_or_create_collection.return_value = collection
    return client, collection


# ---------------------------------------------------------------------------
# Voyage mock
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_voyage_client():
    """Mock Voyage AI client returning deterministic embeddings."""
    client = MagicMock()
    dim = 512

    def embed_fn(texts, **kwargs):
        return SimpleNamespace(embeddings=[[0.1] * dim for _ in texts])

    client.embed.side_effect = embed_fn
    return client


@pytest.fixture
def evidence_index(mock_chroma_client, mock_voyage_client):
    from eigen_diagnostic.evidence import EvidenceIndex

    client, collection = mock_chroma_client
    index = EvidenceIndex(client, mock_voyage_client)
    index._test_collection = collection
    return index


# ---------------------------------------------------------------------------
# MarkItDown mock
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_markitdown():
    with patch("eigen_diagnostic.evidence.MarkItDown") as MockClass:
        instance = MagicMock()
        MockClass.return_value = instance
        yield instance

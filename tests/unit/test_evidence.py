"""Unit tests for eigen_diagnostic.evidence: conversion, chunking and the evidence index."""

import hashlib
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from voyageai.error import RateLimitError

from eigen_diagnostic.errors import EvidenceConversionError
from eigen_diagnostic.evidence import SUPPORTED_SUFFIXES, EvidenceIndex, convert_to_markdown, split_by_headers


SAMPLE_MD = """Preamble about the carrier process.

# Carrier Booking
Bookings are confirmed by phone.

## Exceptions
Late confirmations trigger demurrage.

# Dispatch
Dispatch waits for the carrier list.
"""


# ===================================================================
# convert_to_markdown
# ===================================================================


class TestConvertToMarkdown:
    def test_markdown_read_directly(self, tmp_path, mock_markitdown):
        path = tmp_path / "notes.md"
        path.write_text(SAMPLE_MD, encoding="utf-8")
        assert convert_to_markdown(path) == SAMPLE_MD
        mock_markitdown.convert.assert_not_called()

    def test_docx_uses_markitdown(self, tmp_path, mock_markitdown):
        path = tmp_path / "sop.docx"
        path.write_bytes(b"fake")
        mock_markitdown.convert.return_value = SimpleNamespace(text_content="# SOP\nStep one")
        assert convert_to_markdown(path) == "# SOP\nStep one"
        mock_markitdown.convert.assert_called_once_with(str(path))

    def test_conversion_failure(self, tmp_path, mock_markitdown):
        path = tmp_path / "broken.docx"
        path.write_bytes(b"not a zip")
        mock_markitdown.convert.side_effect = ValueError("bad zip")
        with pytest.raises(EvidenceConversionError, match="broken.docx"):
            convert_to_markdown(path)

    @pytest.mark.parametrize("filename", ["photo.png", "sla.pdf"])
    def test_unsupported_type(self, tmp_path, mock_markitdown, filename):
        path = tmp_path / filename
        path.write_bytes(b"binary")
        with pytest.raises(EvidenceConversionError, match="Unsupported"):
            convert_to_markdown(path)
        mock_markitdown.convert.assert_not_called()

    def test_supported_suffixes(self):
        assert SUPPORTED_SUFFIXES == {".md", ".txt", ".docx"}


# ===================================================================
# split_by_headers
# ===================================================================


class TestSplitByHeaders:
    def test_header_paths(self):
        chunks = split_by_headers(SAMPLE_MD, "notes.md")
        headers = [c["context_header"] for c in chunks]
        assert headers == [
            "[Source: notes.md]",
            "[Source: notes.md > Carrier Booking]",
            "[Source: notes.md > Carrier Booking > Exceptions]",
            "[Source: notes.md > Dispatch]",
        ]
        assert chunks[0]["text"] == "Preamble about the carrier process."
        assert chunks[2]["text"].startswith("## Exceptions")

    def test_no_headers(self):
        chunks = split_by_headers("just text", "plain.txt")
        assert chunks == [{"text": "just text", "context_header": "[Source: plain.txt]"}]

    def test_large_section_split_at_paragraphs(self):
        paragraph = " ".join(["word"] * 40)
        text = "# Big\n" + "\n\n".join([paragraph] * 5)
        chunks = split_by_headers(text, "big.md", max_tokens=60)
        assert len(chunks) > 1
        assert all(c["context_header"] == "[Source: big.md > Big]" for c in chunks)


# ===================================================================
# EvidenceIndex
# ===================================================================


class TestEvidenceIndex:
    def test_disabled_without_voyage(self, mock_chroma_client, tmp_path):
        client, collection = mock_chroma_client
        index = EvidenceIndex(client, voyage_client=None)
        assert index.enabled is False
        path = tmp_path / "notes.md"
        path.write_text(SAMPLE_MD)
        assert index.ingest_file("s1", path) == 0
        assert index.retrieve("s1", "carrier") == []
        collection.upsert.assert_not_called()

    def test_ingest_tags_chunks_with_session(self, evidence_index, mock_voyage_client, tmp_path):
        path = tmp_path / "notes.md"
        path.write_text(SAMPLE_MD)

        count = evidence_index.ingest_file("s1", path)

        assert count == 4
        kwargs = evidence_index._test_collection.upsert.call_args.kwargs
        assert kwargs["ids"][0] == "s1_notes.md_0"
        digest = hashlib.sha256(SAMPLE_MD.encode("utf-8")).hexdigest()
        assert all(
            m == {"session_id": "s1", "source_filename": "notes.md", "content_hash": digest}
            for m in kwargs["metadatas"]
        )
        assert len(kwargs["embeddings"]) == 4
        assert kwargs["documents"][1].startswith("[Source: notes.md > Carrier Booking]\n")
        assert mock_voyage_client.embed.call_args.kwargs["input_type"] == "document"

    def test_reingest_replaces_previous_chunks(self, evidence_index, tmp_path):
        collection = evidence_index._test_collection
        collection.get.return_value = {
            "ids": ["s1_notes.md_0", "s1_notes.md_1", "s1_notes.md_2", "s1_notes.md_3"],
            "metadatas": [{"source_filename": "notes.md"}] * 4,
        }
        path = tmp_path / "notes.md"
        path.write_text("# Carrier Booking\nNow confirmed by portal.")

        assert evidence_index.ingest_file("s1", path) == 1

        collection.get.assert_called_with(
            where={"$and": [{"session_id": "s1"}, {"source_filename": "notes.md"}]},
        )
        collection.delete.assert_called_once_with(
            ids=["s1_notes.md_0", "s1_notes.md_1", "s1_notes.md_2", "s1_notes.md_3"],
        )
        assert collection.upsert.call_args.kwargs["ids"] == ["s1_notes.md_0"]
        names = [c[0] for c in collection.mock_calls]
        assert names.index("delete") < names.index("upsert")

    def test_unchanged_file_is_not_reembedded(self, evidence_index, mock_voyage_client, tmp_path):
        path = tmp_path / "notes.md"
        path.write_text(SAMPLE_MD)
        digest = hashlib.sha256(SAMPLE_MD.encode("utf-8")).hexdigest()
        collection = evidence_index._test_collection
        collection.get.return_value = {
            "ids": [f"s1_notes.md_{i}" for i in range(4)],
            "metadatas": [{"source_filename": "notes.md", "content_hash": digest}] * 4,
        }

        assert evidence_index.ingest_file("s1", path) == 4
        mock_voyage_client.embed.assert_not_called()
        collection.upsert.assert_not_called()
        collection.delete.assert_not_called()

    def test_emptied_file_removes_old_chunks(self, evidence_index, mock_voyage_client, tmp_path):
        path = tmp_path / "notes.md"
        path.write_text("   \n")
        collection = evidence_index._test_collection
        collection.get.return_value = {"ids": ["s1_notes.md_0"], "metadatas": [{"source_filename": "notes.md"}]}

        assert evidence_index.ingest_file("s1", path) == 0
        collection.delete.assert_called_once_with(ids=["s1_notes.md_0"])
        collection.upsert.assert_not_called()
        mock_voyage_client.embed.assert_not_called()

    def test_embed_batches_of_128(self, evidence_index, mock_voyage_client):
        embeddings = evidence_index._embed(["t"] * 300)
        assert len(embeddings) == 300
        assert [len(c.args[0]) for c in mock_voyage_client.embed.call_args_list] == [128, 128, 44]

    def test_embed_retries_rate_limit(self, evidence_index, mock_voyage_client, monkeypatch):
        monkeypatch.setattr(EvidenceIndex._embed_batch.retry, "sleep", lambda _: None)
        responses = [RateLimitError("slow down"), SimpleNamespace(embeddings=[[0.2] * 512])]

        def flaky(texts, **kwargs):
            reply = responses.pop(0)
            if isinstance(reply, Exception):
                raise reply
            return reply

        mock_voyage_client.embed.side_effect = flaky
        assert evidence_index._embed(["t"]) == [[0.2] * 512]
        assert mock_voyage_client.embed.call_count == 2

    def test_retrieve_filters_by_session(self, evidence_index, mock_voyage_client):
        collection = evidence_index._test_collection
        collection.get.return_value = {"ids": ["a", "b"], "metadatas": []}
        collection.query.return_value = {
            "ids": [["a", "b"]],
            "documents": [["less relevant", "most relevant"]],
            "metadatas": [[{"source_filename": "x.md"}, {"source_filename": "y.md"}]],
            "distances": [[0.6, 0.1]],
        }

        hits = evidence_index.retrieve("s1", "carrier confirmations")

        assert [h["text"] for h in hits] == ["most relevant", "less relevant"]
        assert hits[0]["score"] == pytest.approx(0.9)
        query_kwargs = collection.query.call_args.kwargs
        assert query_kwargs["where"] == {"session_id": "s1"}
        assert query_kwargs["n_results"] == 2
        assert mock_voyage_client.embed.call_args.kwargs["input_type"] == "query"

    def test_retrieve_empty_session(self, evidence_index):
        assert evidence_index.retrieve("s1", "anything") == []
        evidence_index._test_collection.query.assert_not_called()

    def test_excerpts_swallow_retrieval_failure(self, evidence_index, caplog):
        evidence_index._test_collection.get.side_effect = RuntimeError("sqlite locked")
        assert evidence_index.excerpts("s1", "carrier") == []
        assert "Evidence retrieval failed" in caplog.text

    def test_list_and_remove_files(self, evidence_index):
        collection = evidence_index._test_collection
        collection.get.return_value = {
            "ids": ["s1_a.md_0", "s1_a.md_1"],
            "metadatas": [{"source_filename": "a.md"}, {"source_filename": "a.md"}],
        }
        assert evidence_index.list_files("s1") == ["a.md"]
        assert evidence_index.remove_file("s1", "a.md") == 2
        collection.delete.assert_called_once_with(ids=["s1_a.md_0", "s1_a.md_1"])

"""Evidence files: conversion, header chunking, embedding and retrieval per session."""

import hashlib
import logging
import re
from pathlib import Path

import chromadb
import voyageai
from markitdown import MarkItDown
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential
from voyageai.error import RateLimitError, ServerError

from . import config
from .errors import EvidenceConversionError

logger = logging.getLogger("eigen.evidence")

SUPPORTED_SUFFIXES = {".md", ".txt", ".docx"}
BATCH_SIZE = 128


def create_chroma_client(vectordb_path: str) -> chromadb.PersistentClient:
    """Wrapped with @st.cache_resource in app.py."""
    return chromadb.PersistentClient(path=vectordb_path)


def create_voyage_client(api_key: str) -> voyageai.Client:
    return voyageai.Client(api_key=api_key)


def _estimate_tokens(text: str) -> int:
    return int(len(text.split()) * 1.3)


# ---------------------------------------------------------------------------
# Conversion and chunking
# ---------------------------------------------------------------------------

def convert_to_markdown(file_path: Path) -> str:
    """Plain-text formats are read as-is; everything else goes through MarkItDown.

    Raises:
        EvidenceConversionError: unsupported type or a file MarkItDown cannot parse.
    """
    suffix = file_path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise EvidenceConversionError(f"Unsupported file type: {suffix or file_path.name}")

    if suffix in (".md", ".txt"):
        return file_path.read_text(encoding="utf-8")

    logger.info("Converting %s to markdown", file_path.name)
    try:
        return MarkItDown().convert(str(file_path)).text_content
    except Exception as exc:
        logger.error("MarkItDown failed on %s: %s", file_path.name, exc)
        raise EvidenceConversionError(f"Failed to convert '{file_path.name}': {exc}") from exc


def split_by_headers(
    markdown_text: str,
    source_filename: str,
    max_tokens: int | None = None,
) -> list[dict]:
    """Split on H1-H3 headers; oversized sections are split again at paragraphs.

    Each chunk: {"text", "context_header"} where the header reads
    "[Source: file > Section > Subsection]".
    """
    max_tokens = max_tokens or config.MAX_EVIDENCE_CHUNK_TOKENS
    header_pattern = re.compile(r"^(#{1,3})\s+(.+)$", re.MULTILINE)
    matches = list(header_pattern.finditer(markdown_text))

    sections: list[tuple[str, str]] = []
    preamble = markdown_text[: matches[0].start()] if matches else markdown_text
    if preamble.strip():
        sections.append((f"[Source: {source_filename}]", preamble.strip()))

    stack: list[tuple[int, str]] = []
    for i, match in enumerate(matches):
        level = len(match.group(1))
        while stack and stack[-1][0] >= level:
            stack.pop()
        stack.append((level, match.group(2).strip()))

        end = matches[i + 1].start() if i + 1 < len(matches) else len(markdown_text)
        text = markdown_text[match.start():end].strip()
        path = " > ".join(title for _, title in stack)
        sections.append((f"[Source: {source_filename} > {path}]", text))

    chunks = []
    for header, text in sections:
        for part in _split_paragraphs(text, max_tokens):
            chunks.append({"text": part, "context_header": header})

    logger.debug("Split %s into %d chunks", source_filename, len(chunks))
    return chunks


def _split_paragraphs(text: str, max_tokens: int) -> list[str]:
    if _estimate_tokens(text) <= max_tokens:
        return [text]

    groups: list[str] = []
    current: list[str] = []
    for paragraph in re.split(r"\n\n+", text):
        if current and _estimate_tokens("\n\n".join(current + [paragraph])) > max_tokens:
            groups.append("\n\n".join(current))
            current = [paragraph]
        else:
            current.append(paragraph)
    if current:
        groups.append("\n\n".join(current))
    return groups


# ---------------------------------------------------------------------------
# EvidenceIndex
# ---------------------------------------------------------------------------

class EvidenceIndex:
    """One ChromaDB collection; every chunk is tagged with its session id.

    Clients are passed in pre-built (cached in app.py) so Streamlit reruns do
    not open a second SQLite handle.
    """

    def __init__(self, chroma_client, voyage_client=None):
        self.voyage = voyage_client
        self.enabled = voyage_client is not None
        self.collection = chroma_client.get_or_create_collection(
            name="evidence",
            metadata={"hnsw:space": "cosine"},
        )
        if not self.enabled:
            logger.warning("Voyage client not provided; evidence retrieval disabled")

    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=60),
        stop=stop_after_attempt(5),
        retry=retry_if_exception_type((RateLimitError, ServerError)),
    )
    def _embed_batch(self, texts: list[str], input_type: str) -> list[list[float]]:
        result = self.voyage.embed(
            texts,
            model=config.EMBEDDING_MODEL,
            input_type=input_type,
            output_dimension=config.EMBEDDING_DIMENSIONS,
        )
        return result.embeddings

    def _embed(self, texts: list[str], input_type: str = "document") -> list[list[float]]:
        embeddings: list[list[float]] = []
        for i in range(0, len(texts), BATCH_SIZE):
            embeddings.extend(self._embed_batch(texts[i : i + BATCH_SIZE], input_type))
        return embeddings

    def ingest_file(self, session_id: str, file_path: Path) -> int:
        """Convert, chunk, embed and store one file. Returns chunks stored.

        A file with the same name in the same session is replaced, not merged.
        Re-ingesting identical content is a no-op and makes no embedding call.

        Raises:
            EvidenceConversionError: the file could not be read as text.
        """
        if not self.enabled:
            logger.warning("Skipping %s: evidence retrieval disabled", file_path.name)
            return 0

        markdown = convert_to_markdown(file_path)
        content_hash = hashlib.sha256(markdown.encode("utf-8")).hexdigest()
        existing = self._file_chunks(session_id, file_path.name)
        if existing["ids"] and existing["metadatas"] and all(
            meta.get("content_hash") == content_hash for meta in existing["metadatas"]
        ):
            logger.info("Unchanged %s for session %s: skipping re-embed", file_path.name, session_id)
            return len(existing["ids"])

        chunks = split_by_headers(markdown, file_path.name)
        chunks = [c for c in chunks if c["text"].strip()]
        texts = [f"{c['context_header']}\n{c['text']}" for c in chunks]
        embeddings = self._embed(texts) if texts else []

        if existing["ids"]:
            self.collection.delete(ids=existing["ids"])
        if not chunks:
            logger.warning("No chunks produced from %s", file_path.name)
            return 0

        self.collection.upsert(
            ids=[f"{session_id}_{file_path.name}_{i}" for i in range(len(chunks))],
            embeddings=embeddings,
            documents=texts,
            metadatas=[
                {
                    "session_id": session_id,
                    "source_filename": file_path.name,
                    "content_hash": content_hash,
                }
                for _ in chunks
            ],
        )
        logger.info("Ingested %s for session %s: %d chunks", file_path.name, session_id, len(chunks))
        return len(chunks)

    def _file_chunks(self, session_id: str, filename: str) -> dict:
        return self.collection.get(
            where={"$and": [{"session_id": session_id}, {"source_filename": filename}]},
        )

    def list_files(self, session_id: str) -> list[str]:
        results = self.collection.get(where={"session_id": session_id})
        return sorted({meta["source_filename"] for meta in results["metadatas"] or []})

    def remove_file(self, session_id: str, filename: str) -> int:
        ids = self._file_chunks(session_id, filename)["ids"]
        if ids:
            self.collection.delete(ids=ids)
        logger.info("Removed %s from session %s: %d chunks", filename, session_id, len(ids))
        return len(ids)

    def retrieve(self, session_id: str, query: str, n_results: int | None = None) -> list[dict]:
        """Closest chunks for this session only, best first.

        Returns dicts with: text, source_filename, score.
        """
        if not self.enabled or not query.strip():
            return []

        available = len(self.collection.get(where={"session_id": session_id})["ids"])
        if available == 0:
            return []

        n = min(n_results or config.MAX_EVIDENCE_RESULTS, available)
        results = self.collection.query(
            query_embeddings=self._embed([query], input_type="query"),
            n_results=n,
            where={"session_id": session_id},
        )

        hits = []
        if results["ids"] and results["ids"][0]:
            for text, meta, distance in zip(
                results["documents"][0], results["metadatas"][0], results["distances"][0]
            ):
                hits.append({
                    "text": text,
                    "source_filename": meta["source_filename"],
                    "score": 1.0 - distance,
                })
        hits.sort(key=lambda h: h["score"], reverse=True)
        return hits

    def excerpts(self, session_id: str, query: str) -> list[str]:
        """Excerpt strings for the aggregation prompt. Never fails finalization."""
        try:
            return [hit["text"] for hit in self.retrieve(session_id, query)]
        except Exception as exc:
            logger.warning("Evidence retrieval failed for session %s: %s", session_id, exc)
            return []

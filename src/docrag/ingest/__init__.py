"""docrag ingest pipeline — chunker, document readers, ingestion entrypoints."""

from docrag.ingest.chunker import SentenceChunker, chunk_text
from docrag.ingest.readers import read_document_text
from docrag.ingest.service import (
    IngestResult,
    delete_document,
    delete_owner_data,
    ingest_document,
)

__all__ = [
    "SentenceChunker",
    "chunk_text",
    "read_document_text",
    "IngestResult",
    "ingest_document",
    "delete_document",
    "delete_owner_data",
]

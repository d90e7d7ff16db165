"""Ingestion pipeline: doc export, parsing, chunking and embedding."""

from .chunker import Chunker
from .doc_builder import CargoDocBuilder, DocBuilder, FileDocBuilder, decompress_content
from .embedding_client import EmbeddingClient, get_embedding_model
from .rustdoc_parser import ParseResult, decode_doc_export, parse_doc_export

__all__ = [
    "CargoDocBuilder",
    "Chunker",
    "DocBuilder",
    "EmbeddingClient",
    "FileDocBuilder",
    "ParseResult",
    "decode_doc_export",
    "decompress_content",
    "get_embedding_model",
    "parse_doc_export",
]

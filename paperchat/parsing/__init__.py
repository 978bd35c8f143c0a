"""PDF parsing and extraction caching for paper grounding.

Transforms downloaded papers into bounded, normalized text that can be
injected into a chat context.

Responsibilities:
    - Page-by-page PDF text extraction with pypdf
    - Text cleaning and normalization
    - Metadata extraction (title, author, pages)
    - Bounded LRU caching with de-duplicated concurrent extraction
"""

from paperchat.parsing.cache import (
    DocumentExtractionCache,
    ExtractionOptions,
    fetch_document,
    read_local_document,
)
from paperchat.parsing.lru import LRUCache
from paperchat.parsing.pdf_parser import PDFContent, PDFParseError, clean_extracted_text, parse_pdf

__all__ = [
    "DocumentExtractionCache",
    "ExtractionOptions",
    "LRUCache",
    "PDFContent",
    "PDFParseError",
    "clean_extracted_text",
    "fetch_document",
    "parse_pdf",
    "read_local_document",
]

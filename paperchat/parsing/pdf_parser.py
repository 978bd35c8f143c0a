"""PDF parsing module using pypdf.

Extracts page-by-page text and metadata from PDF files with validation,
and normalizes the text for use as language-model context.
"""

import io
import logging
import re

from pydantic import BaseModel, Field
from pypdf import PdfReader
from pypdf.errors import PdfReadError

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 50 * 1024 * 1024  # 50MB
PDF_HEADER = b"%PDF"
DEFAULT_MAX_PAGES = 30
PAGE_ERROR_MARKER = "[Error extracting text from this page]"

# Document info dictionary keys collected into PDFContent.metadata.
METADATA_FIELDS: dict[str, str] = {
    "title": "/Title",
    "author": "/Author",
    "subject": "/Subject",
    "keywords": "/Keywords",
    "producer": "/Producer",
    "creation_date": "/CreationDate",
}
_METADATA_LABELS = {
    "title": "Title",
    "author": "Author",
    "subject": "Subject",
    "keywords": "Keywords",
    "producer": "Producer",
    "creation_date": "Created",
}

_URL_RE = re.compile(r"https?://\S+")
_EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
_SPACES_RE = re.compile(r"[^\S\n]+")
_SINGLE_LETTER_RE = re.compile(r"(?<!\S)[A-Za-z](?!\S)")
_PAGE_NUMBER_RE = re.compile(r"(?:page\s+)?\d+(?:\s*(?:of|/)\s*\d+)?", re.IGNORECASE)
_BLANK_LINES_RE = re.compile(r"\n{3,}")


class PDFContent(BaseModel):
    """Text and document info pulled from a paper's PDF.

    Attributes:
        text: Page-labelled text of the extracted pages, metadata block first.
        pages: Page count of the whole document.
        pages_extracted: Pages actually walked (at most max_pages).
        metadata: Document info fields that were present (see METADATA_FIELDS).
    """

    text: str
    pages: int = Field(ge=0)
    pages_extracted: int = Field(default=0, ge=0)
    metadata: dict[str, str]


class PDFParseError(Exception):
    """Raised when a document cannot be read as a PDF at all."""

    pass


def _check_pdf_bytes(file_content: bytes) -> None:
    """Reject empty, oversized, and non-PDF payloads before pypdf sees them.

    Raises:
        PDFParseError: With a message naming the problem.
    """
    if not file_content:
        raise PDFParseError("Empty file provided")

    if len(file_content) > MAX_FILE_SIZE:
        megabytes = len(file_content) / (1024 * 1024)
        raise PDFParseError(f"File size ({megabytes:.1f}MB) exceeds maximum allowed (50MB)")

    # Some producers emit whitespace before the header.
    if not file_content.lstrip()[:10].startswith(PDF_HEADER):
        raise PDFParseError("Invalid PDF: file does not start with PDF header")


def _read_document_info(reader: PdfReader) -> dict[str, str]:
    """Collect the METADATA_FIELDS present in the document info dictionary.

    Broken info dictionaries are logged and yield whatever was read so far.
    """
    found: dict[str, str] = {}
    try:
        info = reader.metadata
        if not info:
            return found
        for name, key in METADATA_FIELDS.items():
            value = info.get(key)
            if value:
                found[name] = str(value).strip()
    except Exception as e:
        logger.warning(f"Could not read PDF document info: {e}")
    return {name: value for name, value in found.items() if value}


def format_metadata(metadata: dict[str, str], pages: int) -> str:
    """Render document info as the header block of the extracted text."""
    parts = ["=== PDF METADATA ==="]
    for name in ("title", "author", "subject", "keywords"):
        if metadata.get(name):
            parts.append(f"{_METADATA_LABELS[name]}: {metadata[name]}")
    parts.append(f"Total Pages: {pages}")
    if metadata.get("creation_date"):
        parts.append(f"{_METADATA_LABELS['creation_date']}: {metadata['creation_date']}")
    return "\n".join(parts)


def clean_extracted_text(text: str) -> str:
    """Normalize raw page text.

    URLs and email addresses become ``[URL]`` and ``[EMAIL]``, whitespace runs
    collapse to one space, isolated single letters (OCR artifacts) and lines
    holding only a page number are dropped, and runs of blank lines collapse
    to a single blank line.

    Args:
        text: Raw text as returned by pypdf.

    Returns:
        The normalized text.
    """
    text = _URL_RE.sub("[URL]", text)
    text = _EMAIL_RE.sub("[EMAIL]", text)

    lines: list[str] = []
    for line in text.split("\n"):
        line = _SPACES_RE.sub(" ", line)
        line = _SINGLE_LETTER_RE.sub("", line)
        line = _SPACES_RE.sub(" ", line).strip()
        if line and _PAGE_NUMBER_RE.fullmatch(line):
            continue
        lines.append(line)

    return _BLANK_LINES_RE.sub("\n\n", "\n".join(lines)).strip()


def parse_pdf(
    file_content: bytes,
    max_pages: int = DEFAULT_MAX_PAGES,
    include_metadata: bool = True,
    clean_text: bool = True,
) -> PDFContent:
    """Parse a PDF file and extract the text of its first pages.

    A page that fails to extract is recorded inline with
    PAGE_ERROR_MARKER and extraction moves on to the next page.

    Args:
        file_content: Raw bytes of the PDF file.
        max_pages: Maximum number of pages to extract.
        include_metadata: Prepend a metadata block to the text.
        clean_text: Normalize each page with clean_extracted_text.

    Returns:
        PDFContent with extracted text, page counts, and metadata.

    Raises:
        PDFParseError: If the file is invalid, too large, empty, or corrupt.
    """
    _check_pdf_bytes(file_content)

    try:
        reader = PdfReader(io.BytesIO(file_content))
        pages = len(reader.pages)
    except PdfReadError as e:
        raise PDFParseError(f"Corrupt or invalid PDF: {e}") from e
    except Exception as e:
        raise PDFParseError(f"Failed to read PDF: {e}") from e

    if pages == 0:
        raise PDFParseError("PDF contains no pages")

    pages_to_process = min(pages, max_pages)

    text_parts: list[str] = []
    for number in range(1, pages_to_process + 1):
        try:
            page_text = reader.pages[number - 1].extract_text() or ""
            if clean_text:
                page_text = clean_extracted_text(page_text)
        except Exception as e:
            logger.warning(f"Failed to extract text from page {number}: {e}")
            text_parts.append(f"--- Page {number} ---\n{PAGE_ERROR_MARKER}")
            continue

        if page_text.strip():
            text_parts.append(f"--- Page {number} ---\n{page_text}")

    text = "\n\n".join(text_parts)

    if not text.strip():
        logger.warning("PDF contains no extractable text (may be scanned/image-based)")

    metadata = _read_document_info(reader)
    if include_metadata:
        header = format_metadata(metadata, pages)
        text = f"{header}\n\n{text}" if text else header

    return PDFContent(
        text=text,
        pages=pages,
        pages_extracted=pages_to_process,
        metadata=metadata,
    )

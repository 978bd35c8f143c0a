"""Cached, bounded text extraction for paper PDFs.

Extraction is slow (file read plus pypdf page walk) and the same paper is
usually grounded turn after turn, so results are kept in an LRU cache keyed
by (path, max_pages, include_metadata). Concurrent requests for the same key
share a single in-flight extraction.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from pathlib import Path

import httpx
from pydantic import BaseModel, ConfigDict, Field

from paperchat.errors import ExtractionError
from paperchat.models import ExtractedDocument, Paper
from paperchat.parsing.lru import LRUCache
from paperchat.parsing.pdf_parser import DEFAULT_MAX_PAGES, PDFContent, PDFParseError, parse_pdf

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 50
DEFAULT_TIMEOUT = 60.0
DEFAULT_MAX_CHARS = 100_000
TRUNCATION_MARKER = "\n\n[Content truncated due to length...]"

DocumentFetcher = Callable[[str], Awaitable[bytes]]
DocumentParser = Callable[[bytes, int, bool], PDFContent]
CacheKey = tuple[str, int, bool]


class ExtractionOptions(BaseModel):
    """Options for a single extraction.

    Attributes:
        max_pages: Maximum number of pages to extract.
        include_metadata: Prepend the PDF metadata block.
        max_chars: Character budget for the extracted content.
    """

    model_config = ConfigDict(frozen=True)

    max_pages: int = Field(default=DEFAULT_MAX_PAGES, ge=1)
    include_metadata: bool = True
    max_chars: int = Field(default=DEFAULT_MAX_CHARS, ge=1)


async def read_local_document(path: str) -> bytes:
    """Read a downloaded PDF from disk without blocking the event loop.

    Raises:
        FileNotFoundError: If nothing exists at ``path``.
    """
    return await asyncio.to_thread(Path(path).read_bytes)


async def fetch_document(
    source: str, transport: httpx.AsyncBaseTransport | None = None
) -> bytes:
    """Return PDF bytes from a local path or an http(s) URL.

    Args:
        source: Filesystem path or remote PDF URL.
        transport: Optional httpx transport, mainly for tests.

    Raises:
        FileNotFoundError: If a local path does not exist.
        httpx.HTTPError: If a download fails or returns an error status.
    """
    if not source.startswith(("http://", "https://")):
        return await read_local_document(source)
    async with httpx.AsyncClient(follow_redirects=True, transport=transport) as client:
        response = await client.get(source)
        response.raise_for_status()
        return response.content


class DocumentExtractionCache:
    """Extracts document text on demand and caches the results.

    Only successful extractions are cached; a failed or timed-out extraction
    is returned with ``error`` set so the next request tries again.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CACHE_SIZE,
        fetcher: DocumentFetcher = fetch_document,
        parser: DocumentParser = parse_pdf,
        timeout: float = DEFAULT_TIMEOUT,
        max_concurrency: int = 3,
    ) -> None:
        """Initialize the cache.

        Args:
            capacity: Maximum number of cached documents.
            fetcher: Coroutine returning the raw bytes for a path or URL.
            parser: Function turning PDF bytes into PDFContent.
            timeout: Upper bound in seconds for fetch plus parse.
            max_concurrency: Parallel extractions allowed in extract_many.
        """
        self._cache: LRUCache[CacheKey, ExtractedDocument] = LRUCache(
            capacity, on_evict=self._log_eviction
        )
        self._in_flight: dict[CacheKey, asyncio.Task[ExtractedDocument]] = {}
        self._fetcher = fetcher
        self._parser = parser
        self._timeout = timeout
        self._max_concurrency = max_concurrency
        self.extractions = 0

    @staticmethod
    def _log_eviction(key: CacheKey, document: ExtractedDocument) -> None:
        logger.debug(f"Evicted cached extraction for {key[0]} ({document.word_count} words)")

    async def extract(
        self,
        path: str,
        options: ExtractionOptions | None = None,
        paper_id: str = "",
    ) -> ExtractedDocument:
        """Return the extracted text of the document at ``path``.

        Args:
            path: Local path or URL of the PDF.
            options: Extraction options; defaults are used when omitted.
            paper_id: Paper the document belongs to, echoed in the result.

        Returns:
            The cached or freshly extracted document. Check ``error``.
        """
        options = options or ExtractionOptions()
        key: CacheKey = (path, options.max_pages, options.include_metadata)

        cached = self._cache.get(key)
        if cached is not None:
            return _fit(cached, options.max_chars, paper_id)

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(self._extract_uncached(key, options))
            self._in_flight[key] = task
            task.add_done_callback(lambda _: self._in_flight.pop(key, None))

        # Shielded so one cancelled waiter does not cancel the shared work.
        document = await asyncio.shield(task)
        return _fit(document, options.max_chars, paper_id)

    async def extract_many(
        self,
        papers: Iterable[Paper],
        options: ExtractionOptions | None = None,
    ) -> dict[str, ExtractedDocument]:
        """Extract every paper that has a PDF, a few at a time.

        The local copy is tried first. When it is missing or fails, the
        paper's ``pdf_url`` is tried instead.

        Args:
            papers: Papers to extract; those with neither ``local_path`` nor
                ``pdf_url`` are skipped.
            options: Extraction options shared by all papers.

        Returns:
            Extracted documents keyed by paper id.
        """
        targets = [paper for paper in papers if paper.local_path or paper.pdf_url]
        if not targets:
            return {}

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _bounded(paper: Paper) -> ExtractedDocument:
            async with semaphore:
                document = None
                if paper.local_path:
                    document = await self.extract(paper.local_path, options, paper_id=paper.id)
                    if document.error is None or not paper.pdf_url:
                        return document
                    logger.info(f"Local extraction failed for {paper.id}, trying {paper.pdf_url}")
                remote = await self.extract(paper.pdf_url, options, paper_id=paper.id)
                if remote.error is not None and document is not None:
                    return document
                return remote

        documents = await asyncio.gather(*(_bounded(paper) for paper in targets))
        return {paper.id: document for paper, document in zip(targets, documents)}

    async def _extract_uncached(self, key: CacheKey, options: ExtractionOptions) -> ExtractedDocument:
        path = key[0]
        logger.info(f"Extracting PDF text from {path} (max {options.max_pages} pages)")

        try:
            document = await asyncio.wait_for(self._run_extraction(path, options), self._timeout)
        except TimeoutError:
            message = f"Timed out extracting PDF text after {self._timeout:.0f}s"
            logger.warning(f"{message}: {path}")
            return ExtractedDocument(path=path, error=message)
        except ExtractionError as e:
            logger.warning(f"PDF extraction failed for {path}: {e}")
            return ExtractedDocument(path=path, error=e.user_message)
        except Exception as e:
            logger.exception(f"Unexpected error extracting {path}")
            return ExtractedDocument(path=path, error=f"Failed to extract text from PDF: {e}")

        # Re-check so a racing writer for the same key wins only once.
        existing = self._cache.get(key)
        if existing is not None:
            return existing
        self._cache.put(key, document)
        logger.info(
            f"PDF extraction completed for {path}: {document.word_count} words, "
            f"{len(document.content)} characters"
        )
        return document

    async def _run_extraction(self, path: str, options: ExtractionOptions) -> ExtractedDocument:
        try:
            content = await self._fetcher(path)
        except FileNotFoundError as e:
            raise ExtractionError(str(e), user_message=f"PDF file not found: {path}") from e
        except OSError as e:
            raise ExtractionError(str(e), user_message=f"Failed to read PDF: {e}") from e
        except httpx.HTTPError as e:
            raise ExtractionError(str(e), user_message=f"Failed to download PDF: {e}") from e

        try:
            parsed = await asyncio.to_thread(
                self._parser, content, options.max_pages, options.include_metadata
            )
        except PDFParseError as e:
            raise ExtractionError(str(e), user_message=f"Failed to extract text from PDF: {e}") from e

        self.extractions += 1
        return ExtractedDocument(
            path=path,
            content=parsed.text,
            word_count=len(parsed.text.split()),
            pages_extracted=parsed.pages_extracted,
            total_pages=parsed.pages,
        )

    def stats(self) -> dict[str, object]:
        """Report cache occupancy."""
        return {
            "size": len(self._cache),
            "max_size": self._cache.capacity,
            "in_flight": len(self._in_flight),
            "keys": [list(key) for key in self._cache.keys()],
        }

    def clear(self) -> None:
        self._cache.clear()


def _fit(document: ExtractedDocument, max_chars: int, paper_id: str) -> ExtractedDocument:
    """Copy a cached document for one caller, cut to its character budget."""
    if len(document.content) <= max_chars:
        return document.model_copy(update={"paper_id": paper_id})
    text = document.content[:max_chars] + TRUNCATION_MARKER
    return document.model_copy(
        update={
            "paper_id": paper_id,
            "content": text,
            "word_count": len(text.split()),
            "truncated": True,
        }
    )

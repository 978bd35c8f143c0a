"""Unit tests for the document extraction cache."""

import asyncio
from collections.abc import Callable
from functools import partial
from pathlib import Path

import httpx
import pytest_check as check

from paperchat.models import Paper
from paperchat.parsing import DocumentExtractionCache, ExtractionOptions
from paperchat.parsing.cache import TRUNCATION_MARKER, fetch_document
from paperchat.parsing.pdf_parser import PDFContent, PDFParseError


class CountingFetcher:
    """Fetcher that records calls and can be held open."""

    def __init__(self, delay: float = 0.0, missing: set[str] | None = None) -> None:
        self.calls: list[str] = []
        self.delay = delay
        self.missing = missing or set()

    async def __call__(self, path: str) -> bytes:
        self.calls.append(path)
        if self.delay:
            await asyncio.sleep(self.delay)
        if path in self.missing:
            raise FileNotFoundError(path)
        return path.encode()


def fake_parser(content: bytes, max_pages: int, include_metadata: bool) -> PDFContent:
    name = content.decode()
    return PDFContent(
        text=f"Full text of {name} with {max_pages} pages",
        pages=12,
        pages_extracted=min(12, max_pages),
        metadata={},
    )


def make_cache(fetcher: CountingFetcher, **kwargs: object) -> DocumentExtractionCache:
    return DocumentExtractionCache(fetcher=fetcher, parser=fake_parser, **kwargs)


class TestExtract:
    """Single-document extraction."""

    async def test_extracts_and_counts_words(self) -> None:
        cache = make_cache(CountingFetcher())

        document = await cache.extract("/p/a.pdf", ExtractionOptions(max_pages=5), paper_id="a")

        check.is_none(document.error)
        check.equal(document.paper_id, "a")
        check.equal(document.content, "Full text of /p/a.pdf with 5 pages")
        check.equal(document.word_count, 7)
        check.equal(document.pages_extracted, 5)
        check.equal(document.total_pages, 12)
        check.is_false(document.truncated)

    async def test_second_request_is_served_from_cache(self) -> None:
        fetcher = CountingFetcher()
        cache = make_cache(fetcher)

        first = await cache.extract("/p/a.pdf", paper_id="a")
        second = await cache.extract("/p/a.pdf", paper_id="other")

        check.equal(fetcher.calls, ["/p/a.pdf"])
        check.equal(cache.extractions, 1)
        check.equal(second.content, first.content)
        check.equal(second.paper_id, "other")

    async def test_options_are_part_of_the_key(self) -> None:
        fetcher = CountingFetcher()
        cache = make_cache(fetcher)

        await cache.extract("/p/a.pdf", ExtractionOptions(max_pages=5))
        await cache.extract("/p/a.pdf", ExtractionOptions(max_pages=10))
        await cache.extract("/p/a.pdf", ExtractionOptions(max_pages=5, include_metadata=False))

        check.equal(cache.extractions, 3)

    async def test_concurrent_requests_share_one_extraction(self) -> None:
        """Requests racing for the same key run a single extraction."""
        fetcher = CountingFetcher(delay=0.05)
        cache = make_cache(fetcher)

        results = await asyncio.gather(*(cache.extract("/p/a.pdf") for _ in range(5)))

        check.equal(len(fetcher.calls), 1)
        check.equal(cache.extractions, 1)
        check.equal({doc.content for doc in results}, {results[0].content})
        check.equal(cache.stats()["in_flight"], 0)

    async def test_evicts_least_recently_used_document(self) -> None:
        fetcher = CountingFetcher()
        cache = make_cache(fetcher, capacity=2)

        await cache.extract("/p/a.pdf")
        await cache.extract("/p/b.pdf")
        await cache.extract("/p/c.pdf")
        await cache.extract("/p/b.pdf")
        await cache.extract("/p/a.pdf")

        check.equal(fetcher.calls, ["/p/a.pdf", "/p/b.pdf", "/p/c.pdf", "/p/a.pdf"])
        check.equal(cache.stats()["size"], 2)

    async def test_truncates_to_max_chars(self) -> None:
        cache = make_cache(CountingFetcher())

        document = await cache.extract("/p/a.pdf", ExtractionOptions(max_chars=10))

        check.is_true(document.truncated)
        check.equal(document.content, "Full text " + TRUNCATION_MARKER)

    async def test_character_budget_is_applied_per_request(self) -> None:
        cache = make_cache(CountingFetcher())

        short = await cache.extract("/p/a.pdf", ExtractionOptions(max_chars=10))
        full = await cache.extract("/p/a.pdf")

        check.equal(cache.extractions, 1)
        check.is_true(short.truncated)
        check.is_false(full.truncated)
        check.equal(full.content, "Full text of /p/a.pdf with 30 pages")


class TestExtractFailures:
    """Failures are reported on the document and never cached."""

    async def test_missing_file(self) -> None:
        fetcher = CountingFetcher(missing={"/p/gone.pdf"})
        cache = make_cache(fetcher)

        document = await cache.extract("/p/gone.pdf", paper_id="g")

        check.equal(document.error, "PDF file not found: /p/gone.pdf")
        check.equal(document.paper_id, "g")
        check.is_false(document.ok)

    async def test_failure_is_not_cached(self) -> None:
        fetcher = CountingFetcher(missing={"/p/gone.pdf"})
        cache = make_cache(fetcher)

        await cache.extract("/p/gone.pdf")
        fetcher.missing.clear()
        document = await cache.extract("/p/gone.pdf")

        check.is_none(document.error)
        check.equal(len(fetcher.calls), 2)

    async def test_parse_error_becomes_document_error(self) -> None:
        def broken_parser(content: bytes, max_pages: int, include_metadata: bool) -> PDFContent:
            raise PDFParseError("Corrupt or invalid PDF: EOF marker not found")

        cache = DocumentExtractionCache(fetcher=CountingFetcher(), parser=broken_parser)

        document = await cache.extract("/p/bad.pdf")

        check.equal(
            document.error,
            "Failed to extract text from PDF: Corrupt or invalid PDF: EOF marker not found",
        )
        check.equal(cache.stats()["size"], 0)

    async def test_timeout(self) -> None:
        cache = make_cache(CountingFetcher(delay=1.0), timeout=0.01)

        document = await cache.extract("/p/slow.pdf")

        check.is_not_none(document.error)
        check.is_in("Timed out", document.error)


class TestExtractMany:
    """Bulk extraction for paper selections."""

    async def test_skips_papers_without_any_pdf(self, papers: list[Paper]) -> None:
        metadata_only = Paper(id="bare", title="Metadata only")
        cache = make_cache(CountingFetcher())

        documents = await cache.extract_many([*papers, metadata_only])

        check.equal(set(documents), {paper.id for paper in papers})
        for paper in papers:
            check.equal(documents[paper.id].paper_id, paper.id)

    async def test_remote_only_paper_is_fetched_from_url(self) -> None:
        fetcher = CountingFetcher()
        remote_only = Paper(id="remote", title="Remote", pdf_url="https://example.org/r.pdf")
        cache = make_cache(fetcher)

        documents = await cache.extract_many([remote_only])

        check.equal(fetcher.calls, ["https://example.org/r.pdf"])
        check.is_none(documents["remote"].error)
        check.is_in("https://example.org/r.pdf", documents["remote"].content)

    async def test_missing_local_copy_falls_back_to_url(self) -> None:
        fetcher = CountingFetcher(missing={"/p/gone.pdf"})
        paper = Paper(
            id="p", title="P", local_path="/p/gone.pdf", pdf_url="https://example.org/p.pdf"
        )
        cache = make_cache(fetcher)

        documents = await cache.extract_many([paper])

        check.equal(fetcher.calls, ["/p/gone.pdf", "https://example.org/p.pdf"])
        check.is_none(documents["p"].error)
        check.equal(documents["p"].paper_id, "p")
        check.equal(documents["p"].path, "https://example.org/p.pdf")

    async def test_local_error_kept_when_url_also_fails(self) -> None:
        fetcher = CountingFetcher(missing={"/p/gone.pdf", "https://example.org/p.pdf"})
        paper = Paper(
            id="p", title="P", local_path="/p/gone.pdf", pdf_url="https://example.org/p.pdf"
        )
        cache = make_cache(fetcher)

        documents = await cache.extract_many([paper])

        check.equal(documents["p"].error, "PDF file not found: /p/gone.pdf")

    async def test_local_copy_preferred_over_url(self) -> None:
        fetcher = CountingFetcher()
        paper = Paper(
            id="p", title="P", local_path="/p/here.pdf", pdf_url="https://example.org/p.pdf"
        )
        cache = make_cache(fetcher)

        await cache.extract_many([paper])

        check.equal(fetcher.calls, ["/p/here.pdf"])

    async def test_empty_selection(self) -> None:
        cache = make_cache(CountingFetcher())

        check.equal(await cache.extract_many([]), {})


class TestRealPdf:
    """Extraction through the default fetcher and pypdf parser."""

    async def test_extracts_pdf_from_disk(
        self, tmp_path: Path, make_pdf: Callable[[list[str]], bytes]
    ) -> None:
        path = tmp_path / "paper.pdf"
        path.write_bytes(make_pdf(["Transformers learn attention patterns"]))
        cache = DocumentExtractionCache()

        document = await cache.extract(str(path))

        check.is_none(document.error)
        check.is_in("Transformers learn attention patterns", document.content)
        check.equal(document.total_pages, 1)

    async def test_downloads_pdf_from_url(self, make_pdf: Callable[[list[str]], bytes]) -> None:
        body = make_pdf(["Sparse mixtures of experts"])
        requested: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            return httpx.Response(200, content=body)

        fetcher = partial(fetch_document, transport=httpx.MockTransport(handler))
        cache = DocumentExtractionCache(fetcher=fetcher)

        document = await cache.extract("https://arxiv.org/pdf/1234.pdf")

        check.equal(requested, ["https://arxiv.org/pdf/1234.pdf"])
        check.is_none(document.error)
        check.is_in("Sparse mixtures of experts", document.content)

    async def test_download_failure_is_document_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, text="not found")

        fetcher = partial(fetch_document, transport=httpx.MockTransport(handler))
        cache = DocumentExtractionCache(fetcher=fetcher)

        document = await cache.extract("https://arxiv.org/pdf/missing.pdf")

        check.is_not_none(document.error)
        check.is_in("Failed to download PDF", document.error)
        check.equal(cache.stats()["size"], 0)

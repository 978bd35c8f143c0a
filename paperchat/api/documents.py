"""Document extraction endpoints.

Extracts text from downloaded PDFs through the shared extraction cache and
reports cache occupancy.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from paperchat.agent.sessions import SessionStore, get_session_store
from paperchat.models import ExtractedDocument
from paperchat.models.schemas import ExtractRequest
from paperchat.parsing.cache import ExtractionOptions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])


def _validate_file_extension(path: str) -> str:
    """Validate that the path points at a .pdf file.

    Args:
        path: The requested document path.

    Returns:
        The validated path.

    Raises:
        HTTPException: 400 if extension is invalid.
    """
    if not path.lower().endswith(".pdf"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only PDF files are accepted",
        )

    return path


@router.post("/extract", response_model=ExtractedDocument)
async def extract_document(
    request: ExtractRequest,
    store: SessionStore = Depends(get_session_store),
) -> ExtractedDocument:
    """Extract text from a downloaded PDF.

    Results are cached by (path, max_pages, include_metadata); repeated
    requests return the cached text without re-extraction.

    Args:
        request: Path and extraction options.

    Returns:
        ExtractedDocument with content, counts, and truncation flag.

    Raises:
        400: Not a PDF path.
        422: Extraction failed (missing file, corrupt PDF, timeout).
    """
    path = _validate_file_extension(request.path)

    options = ExtractionOptions(include_metadata=request.include_metadata)
    if request.max_pages is not None:
        options = options.model_copy(update={"max_pages": request.max_pages})

    document = await store.extraction_cache.extract(path, options, paper_id=request.paper_id)
    if document.error:
        logger.warning(f"Extraction failed for {path}: {document.error}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=document.error,
        )

    return document


@router.get("/cache")
async def cache_stats(store: SessionStore = Depends(get_session_store)) -> dict[str, object]:
    """Report extraction cache occupancy."""
    return store.extraction_cache.stats()

"""Grounding context assembly for paper-aware chat.

Renders the selected papers (metadata, plus extracted full text where it is
available) into the text block that precedes the conversation. The output
is a pure function of its inputs: same papers in the same order, same
bytes. Nothing here touches the network or the disk; extracted documents
are handed in by the caller.
"""

import hashlib
import logging
from collections.abc import Mapping, Sequence

from paperchat.models import ContextBundle, ExtractedDocument, Paper
from paperchat.providers.base import DEFAULT_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONTEXT_CHARS = 100_000
MIN_CONTENT_CHARS = 1_000
CONTENT_TRUNCATED_MARKER = "\n\n[Content truncated due to length limit...]"
ENTRY_SEPARATOR = "\n\n---\n\n"

FULL_TEXT_INSTRUCTIONS = """Instructions: Use the above papers as context for your response. \
You have access to the full document content of the papers that include a \
"Full Document Content" section. You can reference specific papers by their titles or by \
"Paper X" (where X is the number), and you can quote or discuss their methodology, \
experimental results, mathematical derivations, figures, tables and equations.

For papers marked "Content unavailable", you only have the metadata and abstract. If the user \
asks about details of those papers beyond the abstract, say so and suggest they paste the \
relevant text from the PDF viewer into the chat."""

METADATA_ONLY_INSTRUCTIONS = """Instructions: Use the above papers as context for your response. \
You can reference specific papers by their titles or by "Paper X" (where X is the number).

IMPORTANT: You currently only have access to the paper metadata and abstracts. If the user asks about:
- Specific methodological details not in the abstract
- Experimental results beyond what's summarized
- Detailed mathematical derivations
- Specific figures, tables, or equations
- Full paper content analysis

Please let them know that you only have access to the abstract and metadata, and suggest they can:
1. Copy and paste specific text from the PDF viewer into the chat for detailed discussion
2. Ask questions about the general concepts, implications, or relationships between papers
3. Request paper recommendations or research directions based on the abstracts"""


def selection_signature(papers: Sequence[Paper]) -> str:
    """Stable identifier of an ordered paper selection."""
    joined = "\x1f".join(paper.id for paper in papers)
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()


class ContextAssembler:
    """Builds ContextBundles from selected papers and their extracted text."""

    def __init__(
        self,
        system_preamble: str = DEFAULT_SYSTEM_PROMPT,
        max_total_chars: int = DEFAULT_MAX_CONTEXT_CHARS,
    ) -> None:
        """Initialize the assembler.

        Args:
            system_preamble: Text that opens every system prompt.
            max_total_chars: Budget for extracted text across all papers.
        """
        self.system_preamble = system_preamble
        self.max_total_chars = max_total_chars

    def build(
        self,
        selected_papers: Sequence[Paper],
        pdf_content_by_paper_id: Mapping[str, ExtractedDocument],
        prior_signature: str | None,
    ) -> ContextBundle | None:
        """Build a bundle unless the previous one is still valid.

        Args:
            selected_papers: Papers in the order the user selected them.
            pdf_content_by_paper_id: Extracted documents keyed by paper id.
            prior_signature: Signature of the bundle in use, or None on the
                first turn of a session.

        Returns:
            A new ContextBundle, or None when the selection is unchanged and
            the caller should keep its current bundle.
        """
        signature = selection_signature(selected_papers)
        if prior_signature is not None and prior_signature == signature:
            return None
        return self.assemble(selected_papers, pdf_content_by_paper_id, signature)

    def assemble(
        self,
        selected_papers: Sequence[Paper],
        pdf_content_by_paper_id: Mapping[str, ExtractedDocument],
        signature: str | None = None,
    ) -> ContextBundle:
        """Unconditionally build a bundle for the given papers."""
        signature = signature or selection_signature(selected_papers)
        if not selected_papers:
            return ContextBundle(system_preamble=self.system_preamble, signature=signature)

        used = 0
        has_full_text = False
        entries: list[str] = []

        for number, paper in enumerate(selected_papers, start=1):
            lines = self._metadata_lines(number, paper)
            document = pdf_content_by_paper_id.get(paper.id)

            if document is None:
                pass
            elif document.error:
                lines.append(f"Content unavailable: {document.error}")
            elif not document.ok:
                lines.append("Content unavailable: no extractable text found in the PDF")
            else:
                remaining = self.max_total_chars - used
                if remaining < MIN_CONTENT_CHARS:
                    lines.append("Content unavailable: context length limit reached")
                else:
                    content, cut = self._fit(document.content, remaining)
                    used += len(content)
                    has_full_text = True
                    lines.append(self._content_heading(document, cut))
                    lines.append(content)

            entries.append("\n".join(lines))

        instructions = FULL_TEXT_INSTRUCTIONS if has_full_text else METADATA_ONLY_INSTRUCTIONS
        section = (
            f"Available papers for reference ({len(selected_papers)} papers):\n\n"
            + ENTRY_SEPARATOR.join(entries)
            + ENTRY_SEPARATOR
            + instructions
        )

        logger.info(
            f"Assembled context for {len(selected_papers)} papers "
            f"({used} characters of full text, full_text={has_full_text})"
        )
        return ContextBundle(
            system_preamble=self.system_preamble,
            document_section=section,
            signature=signature,
            has_full_text=has_full_text,
        )

    @staticmethod
    def _metadata_lines(number: int, paper: Paper) -> list[str]:
        lines = [
            f"Paper {number}:",
            f"Title: {paper.title}",
            f"Authors: {', '.join(paper.authors) if paper.authors else 'Unknown'}",
            f"Published: {paper.published_date or 'Unknown date'}",
            f"Source: {paper.source or 'Unknown'}",
        ]
        if paper.categories:
            lines.append(f"Categories: {', '.join(paper.categories)}")
        if paper.abstract:
            lines.append(f"Abstract: {paper.abstract}")
        if paper.doi:
            lines.append(f"DOI: {paper.doi}")
        if paper.arxiv_id:
            lines.append(f"ArXiv ID: {paper.arxiv_id}")
        return lines

    @staticmethod
    def _fit(content: str, remaining: int) -> tuple[str, bool]:
        if len(content) <= remaining:
            return content, False
        keep = max(remaining - len(CONTENT_TRUNCATED_MARKER), 0)
        return content[:keep] + CONTENT_TRUNCATED_MARKER, True

    @staticmethod
    def _content_heading(document: ExtractedDocument, cut: bool) -> str:
        details = f"{document.word_count} words, {document.pages_extracted} of {document.total_pages} pages extracted"
        if document.truncated or cut:
            details += ", truncated"
        return f"\nFull Document Content ({details}):"

"""Citation markers and reference blocks in assistant answers.

Answers from the API carry inline markers such as ``[1]`` that point into the
``search_results`` list returned with the same response. For display, a
``## References:`` block is appended mapping each cited result to its title
and URL. That block must never be stored or sent back to the API, so
``strip_references`` removes it again.
"""

from __future__ import annotations

import re

from pydantic import BaseModel

from .models import ChatCompletionResponse, Citation, SearchResult

CITATION_RE = re.compile(r"\[([0-9]+)\]")

# Matches "\n## References:", "\n# References:", "\nReferences:",
# "\n##References:" and "\n#References:" in any case.
REFERENCES_RE = re.compile(r"\n(?:#{1,2} ?)?references:", re.IGNORECASE)

REFERENCES_HEADER = "\n\n## References:\n"


def extract_citations(content: str) -> list[Citation]:
    """Every ``[N]`` marker in order of appearance, duplicates included."""
    citations: list[Citation] = []
    for match in CITATION_RE.finditer(content):
        try:
            number = int(match.group(1))
        except ValueError:
            # longer than the interpreter's int conversion limit
            continue
        citations.append(Citation(number=number, index=number - 1))
    return citations


def strip_references(content: str) -> str:
    """Drop a trailing reference block, if any.

    Everything from the first reference header onward is removed and the
    remaining text is trimmed. Content without a header is returned unchanged.
    """
    match = REFERENCES_RE.search(content)
    if match is None:
        return content
    return content[: match.start()].strip()


def format_with_references(
    content: str,
    citations: list[Citation],
    search_results: list[SearchResult],
) -> str:
    """Append a reference block listing each cited search result once.

    References are numbered from 1 in the order they are first cited.
    Citations pointing outside ``search_results`` are ignored.
    """
    if not citations or not search_results:
        return content

    lines: list[str] = []
    seen: set[int] = set()
    for citation in citations:
        if not 0 <= citation.index < len(search_results):
            continue
        if citation.index in seen:
            continue
        seen.add(citation.index)
        result = search_results[citation.index]
        lines.append(f"[{len(lines) + 1}] {result.title} - {result.url}\n")

    return content + REFERENCES_HEADER + "".join(lines)


class ParsedResponse(BaseModel):
    content: str = ""
    citations: list[Citation] = []
    search_results: list[SearchResult] = []

    @property
    def clean_content(self) -> str:
        """The answer as it is stored and sent back on later turns."""
        return strip_references(self.content)

    def formatted(self) -> str:
        """The answer with its reference block, for display."""
        return format_with_references(self.content, self.citations, self.search_results)


def parse_response(response: ChatCompletionResponse) -> ParsedResponse:
    """Extract the first choice's content and its citations."""
    if not response.choices:
        return ParsedResponse(search_results=response.search_results)

    content = response.choices[0].message.content
    return ParsedResponse(
        content=content,
        citations=extract_citations(content),
        search_results=response.search_results,
    )

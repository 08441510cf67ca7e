"""Mark query terms inside result text."""

from __future__ import annotations

import re

from workplace_search.models.search import Highlight, RankedResult


def highlight_matches(text: str | None, query_text: str, tag: str = "mark") -> str | None:
    """Wrap each case-insensitive occurrence of a query token in ``<tag>``.

    All tokens are matched in one pass (longest first) so inserted markup is
    never matched again. Unmatched text keeps its original casing.
    """
    if not text or not query_text:
        return text

    tokens = sorted({t.lower() for t in query_text.split()}, key=len, reverse=True)
    if not tokens:
        return text

    pattern = re.compile("|".join(re.escape(t) for t in tokens), re.IGNORECASE)
    return pattern.sub(lambda m: f"<{tag}>{m.group(0)}</{tag}>", text)


def highlight_results(results: list[RankedResult], query_text: str) -> None:
    for result in results:
        result.highlight = Highlight(
            title=highlight_matches(result.title, query_text) or result.title,
            content=highlight_matches(result.excerpt, query_text),
        )

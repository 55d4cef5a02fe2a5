"""Knowledge-base lookup tool (clinic policies, services, prices)."""

from __future__ import annotations

import logging
from typing import Any

from src.services.http import ApiError
from src.tools.registry import ToolContext, ToolSpec

logger = logging.getLogger(__name__)

TOP_K = 2


def search_similar_text(text: str, *, context: ToolContext) -> dict[str, Any]:
    """Return the knowledge-base passages closest to *text*.

    On any search failure the query text is echoed back with
    ``status="error"`` so the model can still answer from its instructions.
    """
    if context.search is None:
        logger.warning("Knowledge search requested but no search client is configured")
        return {"context": text, "status": "error"}
    try:
        vector = context.search.embed(text)
        matches = context.search.query(vector, top_k=TOP_K)
    except ApiError as exc:
        logger.warning("Knowledge search failed: %s", exc)
        return {"context": text, "status": "error"}

    passages = [
        m.get("metadata", {}).get("content", "")
        for m in matches
        if m.get("metadata", {}).get("content")
    ]
    logger.debug("Knowledge search matched %d passage(s)", len(passages))
    return {"context": "\n\n".join(passages), "status": "success"}


SEARCH_SIMILAR_TEXT = ToolSpec(
    name="search_similar_text",
    description=(
        "Search the clinic knowledge base (services, prices, policies, staff, "
        "location) for passages relevant to the user's question."
    ),
    parameters={
        "type": "object",
        "properties": {
            "text": {"type": "string", "description": "The question or topic to look up."},
        },
        "required": ["text"],
    },
    handler=search_similar_text,
    requires_context=True,
)

TOOLS = [SEARCH_SIMILAR_TEXT]

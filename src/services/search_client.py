"""Knowledge-base search: text embeddings plus a vector index query.

Embeddings come from the Gemini ``embedContent`` REST endpoint; the vector
index is queried with ``POST <index>/query``, which accepts
``{"vector", "topK", "returnMetadata"}`` and answers with
``{"result": {"matches": [{"id", "score", "metadata"}]}}``.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from src.config import (
    EMBEDDING_MODEL,
    EMBEDDINGS_API_KEY,
    EMBEDDINGS_API_URL,
    VECTOR_API_TOKEN,
    VECTOR_INDEX_URL,
)
from src.services.http import ApiError, ApiRequester

logger = logging.getLogger(__name__)


class SearchClient:
    """Search collaborator: ``embed(text)`` and ``query(vector, top_k)``."""

    def __init__(
        self,
        *,
        embeddings: ApiRequester | None = None,
        index: ApiRequester | None = None,
        model: str = EMBEDDING_MODEL,
    ):
        self._model = model
        self._embeddings = embeddings or ApiRequester(
            EMBEDDINGS_API_URL,
            service="embeddings",
            headers={"x-goog-api-key": EMBEDDINGS_API_KEY},
        )
        self._index = index or ApiRequester(
            VECTOR_INDEX_URL, service="vector_index", token=VECTOR_API_TOKEN,
        )

    def embed(self, text: str) -> list[float]:
        data = self._embeddings.post(
            f"/models/{self._model}:embedContent",
            json_body={
                "model": f"models/{self._model}",
                "content": {"parts": [{"text": text}]},
                "taskType": "SEMANTIC_SIMILARITY",
            },
        ) or {}
        values = data.get("embedding", {}).get("values")
        if not values:
            raise ApiError("Embedding response contained no values")
        return values

    def query(self, vector: list[float], top_k: int = 2) -> list[dict[str, Any]]:
        data = self._index.post(
            "/query",
            json_body={
                "vector": vector,
                "topK": top_k,
                "returnMetadata": "all",
                "returnValues": False,
            },
        ) or {}
        matches = data.get("result", {}).get("matches", [])
        logger.debug("Vector query returned %d matches", len(matches))
        return matches


_client: SearchClient | None = None
_client_lock = threading.Lock()


def get_search_client() -> SearchClient:
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                _client = SearchClient()
    return _client

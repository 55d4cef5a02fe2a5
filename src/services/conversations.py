"""Conversation persistence: load a context before a run, save it after.

Contexts are stored as JSON strings so every ``load`` hands out an
independent object; two runs never share a mutable history.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from src.config import CONVERSATION_TTL_SECONDS
from src.conversation import ConversationContext
from src.services.cache import LRUCache

logger = logging.getLogger(__name__)

_KEY_PREFIX = "conversation:"


class ConversationStore:
    def __init__(self, cache: LRUCache | None = None):
        self._cache = cache or LRUCache(ttl_seconds=CONVERSATION_TTL_SECONDS)
        # conversation id → (lock, sessions holding or waiting on it)
        self._locks: dict[str, tuple[threading.Lock, int]] = {}
        self._locks_guard = threading.Lock()

    def load(self, conversation_id: str) -> ConversationContext:
        raw = self._cache.get(f"{_KEY_PREFIX}{conversation_id}")
        if raw is None:
            logger.debug("Starting new conversation %s", conversation_id)
            return ConversationContext(conversation_id=conversation_id)
        return ConversationContext.model_validate_json(raw)

    def save(self, context: ConversationContext) -> None:
        self._cache.put(f"{_KEY_PREFIX}{context.conversation_id}", context.model_dump_json())

    def reset(self, conversation_id: str) -> bool:
        return self._cache.invalidate(f"{_KEY_PREFIX}{conversation_id}")

    @contextmanager
    def session(self, conversation_id: str) -> Iterator[ConversationContext]:
        """Hold the conversation's lock, yield its context, save on exit.

        The context is saved even if the block raises, so turns appended
        before the failure are kept.
        """
        with self._locked(conversation_id):
            context = self.load(conversation_id)
            try:
                yield context
            finally:
                self.save(context)

    @contextmanager
    def _locked(self, conversation_id: str) -> Iterator[None]:
        """Serialise sessions per conversation; the lock is dropped with its last user."""
        with self._locks_guard:
            lock, users = self._locks.get(conversation_id, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[conversation_id] = (lock, users + 1)
        try:
            with lock:
                yield
        finally:
            with self._locks_guard:
                _, users = self._locks[conversation_id]
                if users == 1:
                    del self._locks[conversation_id]
                else:
                    self._locks[conversation_id] = (lock, users - 1)

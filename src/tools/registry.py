"""Tool registry: name → handler plus the JSON schema shown to the model.

Handlers are plain functions called with the model's arguments as keyword
arguments.  A tool that needs ambient collaborators (calendar, directory,
clock) declares ``requires_context=True`` and receives the ``ToolContext``
as a ``context=`` keyword; the model never sees that parameter.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from zoneinfo import ZoneInfo

from src.services.calendar_client import CalendarClient
from src.services.directory import ServiceDirectory
from src.services.search_client import SearchClient

logger = logging.getLogger(__name__)


class ToolNotFound(KeyError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"Tool '{self.name}' not found"


class ToolContextMissing(RuntimeError):
    """A context-requiring tool was executed without a ``ToolContext``."""


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class ToolContext:
    """Collaborators shared by context-aware tools for one deployment."""

    directory: ServiceDirectory
    calendar: CalendarClient
    search: SearchClient | None = None
    clock: Callable[[], datetime] = _utc_now

    def now(self, tz: ZoneInfo | None = None) -> datetime:
        """Current instant, converted to *tz* when given."""
        current = self.clock()
        return current.astimezone(tz) if tz is not None else current


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    parameters: dict[str, Any]
    handler: Callable[..., Any]
    requires_context: bool = False
    # Calendar writes are awaited to completion; a batch timeout never
    # abandons one half-done.
    writes: bool = False

    def schema(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


@dataclass
class ToolRegistry:
    _tools: dict[str, ToolSpec] = field(default_factory=dict)

    @classmethod
    def of(cls, specs: Iterable[ToolSpec]) -> ToolRegistry:
        registry = cls()
        for spec in specs:
            registry.register(spec)
        return registry

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._tools:
            raise ValueError(f"Tool '{spec.name}' is already registered")
        self._tools[spec.name] = spec

    def get(self, name: str) -> ToolSpec:
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFound(name) from None

    def schemas(self) -> list[dict[str, Any]]:
        """Tool schemas in registration order, as advertised to the model."""
        return [spec.schema() for spec in self._tools.values()]

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

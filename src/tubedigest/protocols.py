"""Protocol interfaces for swappable components.

The orchestrator and AppState reference these protocols, not the concrete
implementations, so tests can pass lightweight fakes and the cache backend can
be chosen from settings.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from tubedigest.generator import GeneratedText
    from tubedigest.models.summary import RequestKey, SummaryRequest, SummaryResult


class CacheProtocol(Protocol):
    """Interface for the summary cache backend."""

    async def get(self, key: RequestKey) -> SummaryResult | None: ...

    async def put(self, key: RequestKey, result: SummaryResult) -> None: ...

    async def clear(self, video_id: str | None = None) -> None: ...

    async def retain_only(self, video_id: str) -> None: ...


class GeneratorProtocol(Protocol):
    """Interface for the external text-generation call."""

    async def generate(self, request: SummaryRequest) -> GeneratedText: ...

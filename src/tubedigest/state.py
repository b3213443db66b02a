"""Runtime state containers.

SessionState is the explicit replacement for ambient global state: the
current video, the response cache and the in-flight generation markers. It is
owned by the RequestOrchestrator and handed by reference to whatever needs to
read it. AppState bundles everything the transports need and is built once
by the lifespan in server.py.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from tubedigest.config import Settings
    from tubedigest.models.summary import RequestKey, SummaryResult
    from tubedigest.orchestrator import RequestOrchestrator
    from tubedigest.protocols import CacheProtocol


@dataclass
class SessionState:
    """Shared, mutable session data. Mutated only under ``lock``."""

    cache: CacheProtocol
    current_video_id: str | None = None
    in_flight: dict[RequestKey, asyncio.Task[SummaryResult]] = field(default_factory=dict)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def processing(self) -> bool:
        return bool(self.in_flight)


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every transport handler."""

    settings: Settings
    session: SessionState
    orchestrator: RequestOrchestrator
    http_client: httpx.AsyncClient | None = None

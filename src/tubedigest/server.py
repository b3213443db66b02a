"""Server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState via the lifespan context manager
- Start the correct transport (stdio or HTTP)
"""

from __future__ import annotations

import asyncio
import logging
import sys
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from tubedigest import __version__
from tubedigest.cache import MemoryCache, SqliteCache
from tubedigest.config import Settings
from tubedigest.generator import Generator, build_http_client
from tubedigest.orchestrator import RequestOrchestrator
from tubedigest.state import AppState, SessionState
from tubedigest.transport import create_app, run_http_server, run_stdio

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.applications import Starlette

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # stdout carries the stdio message stream
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


async def _run_cache_cleanup_scheduler(cache: SqliteCache, settings: Settings) -> None:
    """Drop expired rows at startup and (HTTP mode) on the configured interval."""
    await cache.cleanup_expired()

    if settings.server.transport != "http":
        return

    while True:
        await asyncio.sleep(settings.cache.cleanup_interval_hours * 3600)
        await cache.cleanup_expired()


@asynccontextmanager
async def lifespan(settings: Settings) -> AsyncGenerator[AppState, None]:
    """Create and tear down all shared resources for the server's lifetime."""
    log.info(
        "server_starting",
        version=__version__,
        transport=settings.server.transport,
        cache_backend=settings.cache.backend,
    )

    if not settings.generator.api_key:
        log.warning("generator_api_key_missing", base_url=settings.generator.base_url)

    http_client = build_http_client(settings.generator)
    generator = Generator(http_client, settings.generator)

    db: aiosqlite.Connection | None = None
    cleanup_task: asyncio.Task[None] | None = None
    cache: MemoryCache | SqliteCache
    if settings.cache.backend == "sqlite":
        db_path = Path(settings.cache.db_path).expanduser()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(db_path))
        cache = SqliteCache(db, max_age_hours=settings.cache.max_age_hours)
        await cache.init_db()
        cleanup_task = asyncio.create_task(_run_cache_cleanup_scheduler(cache, settings))
    else:
        cache = MemoryCache()

    session = SessionState(cache=cache)
    state = AppState(
        settings=settings,
        session=session,
        orchestrator=RequestOrchestrator(session, generator, settings),
        http_client=http_client,
    )

    log.info("server_started", version=__version__, transport=settings.server.transport)

    try:
        yield state
    finally:
        for task in list(session.in_flight.values()):
            task.cancel()
        if cleanup_task is not None:
            cleanup_task.cancel()
            with suppress(asyncio.CancelledError):
                await cleanup_task
        await http_client.aclose()
        if db is not None:
            await db.close()
        log.info("server_stopping")


def build_http_app(settings: Settings) -> Starlette:
    """Starlette app whose lifespan builds AppState on startup."""

    @asynccontextmanager
    async def app_lifespan(app: Starlette) -> AsyncGenerator[None, None]:
        async with lifespan(settings) as state:
            app.state.tubedigest = state
            yield

    return create_app(lifespan=app_lifespan)


async def _serve_stdio(settings: Settings) -> None:
    async with lifespan(settings) as state:
        await run_stdio(state)


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    settings = Settings()
    _setup_logging(settings)

    if settings.server.transport == "http":
        run_http_server(build_http_app(settings), settings)
        return

    asyncio.run(_serve_stdio(settings))


if __name__ == "__main__":
    main()

"""Transports carrying channel messages: HTTP (starlette/uvicorn) and stdio."""

from __future__ import annotations

import asyncio
import json
import re
import secrets
import sys
from contextlib import suppress
from typing import TYPE_CHECKING, Any

import structlog
import uvicorn
from starlette.applications import Starlette
from starlette.datastructures import Headers
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from tubedigest import __version__
from tubedigest.channel import MessageChannel, dispatch, error_response
from tubedigest.errors import InputError

if TYPE_CHECKING:
    from collections.abc import Callable

    from starlette.requests import Request
    from starlette.types import ASGIApp, Receive, Scope, Send

    from tubedigest.config import Settings
    from tubedigest.state import AppState

log = structlog.get_logger()

_LOCALHOST_ORIGIN = re.compile(r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$")


class ChannelSecurityMiddleware:
    """Pure ASGI middleware for HTTP transport security.

    Enforces two checks on every HTTP request:
    1. Optional bearer key authentication.
    2. Origin validation: localhost pages and browser-extension origins only.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        auth_enabled: bool,
        auth_key: str | None = None,
        allowed_origin_schemes: tuple[str, ...] = ("chrome-extension", "moz-extension"),
    ) -> None:
        self.app = app
        self.auth_enabled = auth_enabled
        self.auth_key = auth_key
        self.allowed_origin_schemes = allowed_origin_schemes

    def _origin_allowed(self, origin: str) -> bool:
        if not origin or _LOCALHOST_ORIGIN.match(origin):
            return True
        scheme, _, _ = origin.partition("://")
        return scheme in self.allowed_origin_schemes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            headers = Headers(scope=scope)

            if self.auth_enabled:
                auth_header = headers.get("authorization", "")
                if not auth_header.startswith("Bearer ") or auth_header[7:] != self.auth_key:
                    await Response("Unauthorized", status_code=401)(scope, receive, send)
                    return

            if not self._origin_allowed(headers.get("origin", "")):
                await Response("Forbidden", status_code=403)(scope, receive, send)
                return

        await self.app(scope, receive, send)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


async def _handle_message(request: Request) -> JSONResponse:
    state: AppState = request.app.state.tubedigest
    try:
        message = await request.json()
    except ValueError:
        return JSONResponse(error_response(InputError("Request body must be JSON")), status_code=400)
    # Classified errors are data: the status stays 200 and the body says what failed
    return JSONResponse(await dispatch(message, state.orchestrator))


async def _health(request: Request) -> JSONResponse:
    state: AppState = request.app.state.tubedigest
    return JSONResponse(
        {
            "status": "ok",
            "version": __version__,
            "processing": state.session.processing,
            "currentVideoId": state.session.current_video_id,
        }
    )


def create_app(*, state: AppState | None = None, lifespan: Callable[..., Any] | None = None) -> Starlette:
    """Build the HTTP app. Either pass a ready ``state`` or a lifespan that sets one."""
    app = Starlette(
        routes=[
            Route("/messages", _handle_message, methods=["POST"]),
            Route("/health", _health, methods=["GET"]),
        ],
        lifespan=lifespan,
    )
    if state is not None:
        app.state.tubedigest = state
    return app


def run_http_server(app: Starlette, settings: Settings) -> None:
    """Serve ``app`` with uvicorn behind the security middleware."""
    http_log = log.bind(transport="http")

    auth_key: str | None = settings.server.auth_key or None

    if settings.server.auth_enabled and not auth_key:
        auth_key = secrets.token_urlsafe(32)
        http_log.warning("http_auth_key_auto_generated", auth_key=auth_key)

    if not settings.server.auth_enabled:
        http_log.warning("http_auth_disabled")

    secured_app = ChannelSecurityMiddleware(
        app,
        auth_enabled=settings.server.auth_enabled,
        auth_key=auth_key,
        allowed_origin_schemes=tuple(settings.server.allowed_origin_schemes),
    )

    uvicorn.run(
        secured_app,
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # Disable uvicorn's default logging; structlog handles it
    )


# ---------------------------------------------------------------------------
# stdio
# ---------------------------------------------------------------------------


def _emit(response: dict[str, Any]) -> None:
    sys.stdout.write(json.dumps(response, ensure_ascii=False) + "\n")
    sys.stdout.flush()


async def _write_responses(channel: MessageChannel) -> None:
    while True:
        _emit(await channel.receive())


async def run_stdio(state: AppState) -> None:
    """Read newline-delimited JSON messages from stdin until EOF.

    Responses go to stdout as soon as each one completes, so their order can
    differ from the order of the requests.
    """
    channel = MessageChannel(state.orchestrator)
    server_task = asyncio.create_task(channel.serve())
    writer_task = asyncio.create_task(_write_responses(channel))
    log.info("stdio_channel_started")
    try:
        while True:
            line = await asyncio.to_thread(sys.stdin.readline)
            if not line:
                break
            line = line.strip()
            if not line:
                continue
            try:
                message = json.loads(line)
            except json.JSONDecodeError:
                _emit(error_response(InputError("Message is not valid JSON")))
                continue
            await channel.send(message)
        await channel.close()
        await server_task
    finally:
        writer_task.cancel()
        with suppress(asyncio.CancelledError):
            await writer_task
        for response in channel.drain():
            _emit(response)
        log.info("stdio_channel_stopped")

"""Message channel between the UI-side actor and the orchestrator.

``dispatch`` handles one request message and always returns a response dict:
classified failures travel as data, never as exceptions. ``MessageChannel``
is the queue-based actor used by the stdio transport and in-process callers.
It runs one task per message and emits responses in completion order, so
callers correlate on ``requestKey`` (or on an ``id`` they sent), not on
arrival order.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, TypeVar

import pydantic
import structlog

from tubedigest.errors import InputError, ServiceError, SummaryError
from tubedigest.models.messages import (
    AckResponse,
    ClearCacheMessage,
    ClearVideoCacheMessage,
    ErrorResponse,
    SummarizeMessage,
    SummaryResponse,
    VideoChangedMessage,
)
from tubedigest.models.summary import SummaryFormat, SummaryLength, SummaryRequest, SummaryType

if TYPE_CHECKING:
    from tubedigest.orchestrator import Delivery, RequestOrchestrator

log = structlog.get_logger()

M = TypeVar("M", bound=pydantic.BaseModel)

SUMMARIZE_ADVANCED = "summarizeAdvanced"
SUMMARIZE = "summarize"
CLEAR_CACHE = "clearCache"
CLEAR_VIDEO_CACHE = "clearVideoCache"
VIDEO_CHANGED = "videoChanged"

SUPPORTED_ACTIONS = (SUMMARIZE_ADVANCED, SUMMARIZE, CLEAR_CACHE, CLEAR_VIDEO_CACHE, VIDEO_CHANGED)


def _fields(message: Mapping[str, Any]) -> dict[str, Any]:
    """Flatten a message: the extension nests request fields under ``data``."""
    data = message.get("data")
    if isinstance(data, Mapping):
        return {**data, "action": message.get("action")}
    return dict(message)


def _describe(exc: pydantic.ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in error['loc']) or 'message'}: {error['msg']}"
        for error in exc.errors()
    )


def _validate(model: type[M], fields: dict[str, Any]) -> M:
    try:
        return model.model_validate(fields)
    except pydantic.ValidationError as exc:
        raise InputError(_describe(exc)) from exc


def build_request(fields: dict[str, Any]) -> SummaryRequest:
    """Validate a summarize message into a SummaryRequest. Raises InputError."""
    message = _validate(SummarizeMessage, fields)
    try:
        if message.action == SUMMARIZE:
            # Legacy action: fixed insightful/short/list summary
            return SummaryRequest(
                video_id=message.video_id,
                transcript=message.transcript,
                type=SummaryType.INSIGHTFUL,
                length=SummaryLength.SHORT,
                format=SummaryFormat.LIST,
            )
        return SummaryRequest(
            video_id=message.video_id,
            transcript=message.transcript,
            type=message.type,
            length=message.length,
            format=message.format,
        )
    except pydantic.ValidationError as exc:
        raise InputError(
            _describe(exc),
            "Provide a transcript, a videoId and valid type, length and format values.",
        ) from exc


def summary_response(delivery: Delivery) -> dict[str, Any]:
    result = delivery.result
    response = SummaryResponse(
        summary=result.raw_text,
        request_key=result.request_key,
        sections=result.sections,
        blocks=result.blocks,
        from_cache=delivery.from_cache,
        degraded=result.degraded,
    )
    return response.model_dump(mode="json", by_alias=True)


def error_response(exc: SummaryError, request_key: str | None = None) -> dict[str, Any]:
    response = ErrorResponse(
        error=exc.message,
        code=exc.code,
        suggestion=exc.suggestion,
        recoverable=exc.recoverable,
        request_key=request_key,
        retry_after=getattr(exc, "retry_after", None),
    )
    return response.model_dump(mode="json", by_alias=True, exclude_none=True)


async def dispatch(message: object, orchestrator: RequestOrchestrator) -> dict[str, Any]:
    """Handle one channel message and return its response payload."""
    if not isinstance(message, Mapping):
        return error_response(InputError("Message must be a JSON object"))

    action = message.get("action")
    msg_log = log.bind(action=action)
    request_key: str | None = None
    try:
        fields = _fields(message)

        if action in (SUMMARIZE_ADVANCED, SUMMARIZE):
            request = build_request(fields)
            request_key = str(request.key)
            delivery = await orchestrator.summarize(request)
            return summary_response(delivery)

        if action == CLEAR_CACHE:
            _validate(ClearCacheMessage, fields)
            await orchestrator.clear()
            return AckResponse().model_dump()

        if action == CLEAR_VIDEO_CACHE:
            clear_message = _validate(ClearVideoCacheMessage, fields)
            await orchestrator.clear(clear_message.video_id)
            return AckResponse().model_dump()

        if action == VIDEO_CHANGED:
            changed = _validate(VideoChangedMessage, fields)
            await orchestrator.video_changed(changed.video_id)
            return AckResponse().model_dump()

        raise InputError(
            f"Unknown action: {action!r}",
            f"Supported actions: {', '.join(SUPPORTED_ACTIONS)}.",
        )
    except SummaryError as exc:
        msg_log.warning(
            "message_error",
            request_key=request_key,
            code=exc.code,
            message=exc.message,
            recoverable=exc.recoverable,
        )
        return error_response(exc, request_key)
    except Exception:
        msg_log.error("message_unexpected_error", request_key=request_key, exc_info=True)
        return error_response(
            ServiceError("Internal error while handling the message"), request_key
        )


class MessageChannel:
    """Asynchronous request/response channel in front of one orchestrator."""

    def __init__(self, orchestrator: RequestOrchestrator) -> None:
        self._orchestrator = orchestrator
        self._inbox: asyncio.Queue[Mapping[str, Any] | None] = asyncio.Queue()
        self._outbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._handlers: set[asyncio.Task[None]] = set()

    async def send(self, message: Mapping[str, Any]) -> None:
        await self._inbox.put(message)

    async def receive(self) -> dict[str, Any]:
        return await self._outbox.get()

    def drain(self) -> list[dict[str, Any]]:
        """Take every response already produced without waiting for more."""
        responses = []
        while not self._outbox.empty():
            responses.append(self._outbox.get_nowait())
        return responses

    async def close(self) -> None:
        """Stop accepting messages; ``serve`` returns once pending ones are answered."""
        await self._inbox.put(None)

    def detach(self) -> None:
        """Drop every waiting caller, e.g. when the UI side is torn down.

        Generations already started keep running and still fill the cache.
        """
        for handler in list(self._handlers):
            handler.cancel()
        log.info("channel_detached", dropped=len(self._handlers))

    async def serve(self) -> None:
        while True:
            message = await self._inbox.get()
            if message is None:
                break
            handler = asyncio.create_task(self._handle(message))
            self._handlers.add(handler)
            handler.add_done_callback(self._handlers.discard)
        if self._handlers:
            await asyncio.gather(*self._handlers, return_exceptions=True)

    async def _handle(self, message: Mapping[str, Any]) -> None:
        response = await dispatch(message, self._orchestrator)
        if isinstance(message, Mapping) and "id" in message:
            response["id"] = message["id"]
        await self._outbox.put(response)

"""Client for the external text-generation service.

All generation traffic goes through one Generator holding the shared
httpx.AsyncClient; the lifespan owns the client. The service speaks the
OpenAI-compatible chat-completions protocol. Every failure is raised as a
classified SummaryError.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx
import structlog

from tubedigest import __version__
from tubedigest.errors import AuthError, GenerationTimeout, RateLimitError, ServiceError
from tubedigest.prompts import build_messages, max_tokens_for, temperature_for

if TYPE_CHECKING:
    from tubedigest.config import GeneratorSettings
    from tubedigest.models.summary import SummaryRequest

log = structlog.get_logger()

_DANGLING_BULLET_RE = re.compile(r"\n[•\-*]\s*$")


@dataclass(frozen=True)
class GeneratedText:
    text: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0


def build_http_client(settings: GeneratorSettings) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    headers = {"User-Agent": f"tubedigest/{__version__}"}
    if settings.api_key:
        headers["Authorization"] = f"Bearer {settings.api_key}"
    return httpx.AsyncClient(
        base_url=settings.base_url.rstrip("/") + "/",
        # The orchestrator enforces the overall bound; this one covers a stuck socket
        timeout=httpx.Timeout(settings.timeout_seconds + 5.0),
        headers=headers,
        limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
    )


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message", ""))
        if error:
            return str(error)
    return ""


def clean_generated_text(text: str) -> str:
    """Drop a trailing bullet the model started but never finished."""
    return _DANGLING_BULLET_RE.sub("", text.strip()).strip()


class Generator:
    """Generation client implementing GeneratorProtocol."""

    def __init__(self, client: httpx.AsyncClient, settings: GeneratorSettings) -> None:
        self._client = client
        self._settings = settings

    async def generate(self, request: SummaryRequest) -> GeneratedText:
        """Request a summary for ``request`` and return the raw generated text.

        Raises AuthError (401/403), RateLimitError (429), ServiceError (5xx,
        other non-2xx, malformed payload, network failure) and
        GenerationTimeout (client-side timeout).
        """
        payload = {
            "model": self._settings.model,
            "messages": build_messages(request, self._settings.max_transcript_chars),
            "max_tokens": max_tokens_for(request.length, self._settings),
            "temperature": temperature_for(request.type),
        }

        try:
            response = await self._client.post("chat/completions", json=payload)
        except httpx.TimeoutException as exc:
            raise GenerationTimeout(self._settings.timeout_seconds) from exc
        except httpx.HTTPError as exc:
            raise ServiceError(f"Network error calling the summary service: {exc}") from exc

        if not response.is_success:
            detail = _error_detail(response)
            status = response.status_code
            if status in (401, 403):
                raise AuthError(
                    f"Summary service rejected the credential (HTTP {status}). {detail}".strip()
                )
            if status == 429:
                raise RateLimitError(
                    f"Summary service rate limit exceeded. {detail}".strip(),
                    retry_after=_retry_after(response),
                )
            raise ServiceError(
                f"Summary service returned HTTP {status}. {detail}".strip(), status_code=status
            )

        try:
            body = response.json()
            content = body["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ServiceError(
                "Summary service returned a malformed payload",
                status_code=response.status_code,
            ) from exc
        if not isinstance(content, str):
            raise ServiceError(
                "Summary service returned no text content", status_code=response.status_code
            )

        usage = body.get("usage") or {}
        generated = GeneratedText(
            text=clean_generated_text(content),
            model=str(body.get("model") or self._settings.model),
            input_tokens=int(usage.get("prompt_tokens") or 0),
            output_tokens=int(usage.get("completion_tokens") or 0),
        )
        log.info(
            "generation_complete",
            video_id=request.video_id,
            model=generated.model,
            input_tokens=generated.input_tokens,
            output_tokens=generated.output_tokens,
            content_length=len(generated.text),
        )
        return generated

"""Request orchestration: cache lookup, single-flight generation, parsing.

At most one generation runs per RequestKey. The first caller registers an
asyncio.Task as the in-flight marker; later callers with the same key attach
to it. Every caller awaits the task through ``asyncio.shield`` so a caller
that goes away (navigation, closed connection) never cancels the shared
work: the orphaned generation completes and its result is cached for reuse.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from tubedigest.errors import GenerationTimeout, ServiceError, SummaryError
from tubedigest.formatter import RenderFormatter
from tubedigest.models.summary import SummaryResult
from tubedigest.strategies import StrategySet, headline_for

if TYPE_CHECKING:
    from tubedigest.config import Settings
    from tubedigest.generator import GeneratedText
    from tubedigest.models.summary import RequestKey, SummaryRequest
    from tubedigest.protocols import GeneratorProtocol
    from tubedigest.state import SessionState

log = structlog.get_logger()


@dataclass(frozen=True)
class Delivery:
    result: SummaryResult
    from_cache: bool


def _consume_outcome(task: asyncio.Task[SummaryResult]) -> None:
    # Orphaned tasks may fail with nobody awaiting them
    if not task.cancelled():
        task.exception()


class RequestOrchestrator:
    """Owns the session cache and in-flight markers; drives each summary request."""

    def __init__(
        self,
        session: SessionState,
        generator: GeneratorProtocol,
        settings: Settings,
        *,
        strategies: StrategySet | None = None,
    ) -> None:
        self.session = session
        self._generator = generator
        self._timeout = settings.generator.timeout_seconds
        self._strategies = strategies or StrategySet(settings.parser)

    async def summarize(self, request: SummaryRequest) -> Delivery:
        """Return the summary for ``request``, generating it at most once per key.

        Raises SummaryError subclasses for classified failures. Failures are
        never cached.
        """
        key = request.key
        req_log = log.bind(request_key=str(key))

        async with self.session.lock:
            cached = await self.session.cache.get(key)
            if cached is not None:
                req_log.info("cache_hit")
                return Delivery(cached, from_cache=True)

            task = self.session.in_flight.get(key)
            if task is None:
                req_log.info("generation_started", timeout=self._timeout)
                task = asyncio.create_task(self._run(request, key), name=f"generate:{key}")
                task.add_done_callback(_consume_outcome)
                self.session.in_flight[key] = task
            else:
                req_log.info("generation_joined")

        result = await asyncio.shield(task)
        return Delivery(result, from_cache=False)

    async def clear(self, video_id: str | None = None) -> None:
        """Empty the cache (one video or all) and abandon matching in-flight markers.

        Abandoned generations still finish and answer their callers but no
        longer write to the cache.
        """
        async with self.session.lock:
            await self.session.cache.clear(video_id)
            abandoned = [
                key
                for key in self.session.in_flight
                if video_id is None or key.video_id == video_id
            ]
            for key in abandoned:
                del self.session.in_flight[key]
        log.info("session_cleared", video_id=video_id, abandoned=len(abandoned))

    async def video_changed(self, video_id: str) -> None:
        """Record the newly viewed video and drop every other video's entries."""
        async with self.session.lock:
            previous = self.session.current_video_id
            if previous == video_id:
                return
            self.session.current_video_id = video_id
            await self.session.cache.retain_only(video_id)
        log.info("video_changed", previous=previous, video_id=video_id)

    # ------------------------------------------------------------------
    # Generation task
    # ------------------------------------------------------------------

    async def _run(self, request: SummaryRequest, key: RequestKey) -> SummaryResult:
        task_log = log.bind(request_key=str(key))
        try:
            generated = await self._generate(request, task_log)
            try:
                result = self._build_result(request, key, generated)
                async with self.session.lock:
                    if self.session.in_flight.get(key) is asyncio.current_task():
                        await self.session.cache.put(key, result)
                        task_log.info("generation_cached", degraded=result.degraded)
                    else:
                        task_log.info("cache_write_skipped", reason="cleared_during_generation")
            except Exception as exc:
                task_log.error("result_unexpected_error", exc_info=True)
                raise ServiceError("Unexpected failure while building the summary") from exc
            return result
        finally:
            if self.session.in_flight.get(key) is asyncio.current_task():
                del self.session.in_flight[key]

    async def _generate(self, request: SummaryRequest, task_log) -> GeneratedText:
        try:
            return await asyncio.wait_for(
                self._generator.generate(request), timeout=self._timeout
            )
        except TimeoutError as exc:
            task_log.warning("generation_timeout", timeout=self._timeout)
            raise GenerationTimeout(self._timeout) from exc
        except SummaryError as exc:
            task_log.warning(
                "generation_failed",
                code=exc.code,
                message=exc.message,
                recoverable=exc.recoverable,
            )
            raise
        except Exception as exc:
            task_log.error("generation_unexpected_error", exc_info=True)
            raise ServiceError("Unexpected failure while generating the summary") from exc

    def _build_result(
        self, request: SummaryRequest, key: RequestKey, generated: GeneratedText
    ) -> SummaryResult:
        strategy = self._strategies.select(request.format)
        parsed = strategy.parse_outcome(generated.text, headline_for(request.type))
        if parsed.degraded:
            blocks = self._strategies.formatter.format(generated.text)
        else:
            blocks = RenderFormatter.from_sections(parsed.sections)
        return SummaryResult(
            request_key=str(key),
            video_id=request.video_id,
            sections=parsed.sections,
            blocks=tuple(blocks),
            raw_text=generated.text,
            generated_at=datetime.now(UTC),
            degraded=parsed.degraded,
            model=generated.model,
        )

"""Shared test fixtures for the tubedigest test suite."""

from __future__ import annotations

import asyncio

import pytest

from tubedigest.cache import MemoryCache
from tubedigest.config import DEFAULT_MARKERS, GeneratorSettings, Settings
from tubedigest.generator import GeneratedText
from tubedigest.models.summary import SummaryRequest
from tubedigest.orchestrator import RequestOrchestrator
from tubedigest.parser import MarkerSet, SectionParser
from tubedigest.state import SessionState

SAMPLE_SUMMARY = (
    "Health and Longevity\n"
    "🧠 Sleep is the foundation of memory consolidation.\n"
    "🔬 Zone two cardio improves mitochondrial health.\n"
    "Business Strategy\n"
    "💰 Small teams ship faster than large committees."
)


class FakeGenerator:
    """GeneratorProtocol stand-in that records calls.

    ``gate`` holds every call until the event is set, ``delay`` sleeps before
    answering and ``error`` is raised instead of returning text.
    """

    def __init__(
        self,
        text: str = SAMPLE_SUMMARY,
        *,
        error: Exception | None = None,
        delay: float = 0.0,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.text = text
        self.error = error
        self.delay = delay
        self.gate = gate
        self.calls: list[SummaryRequest] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def generate(self, request: SummaryRequest) -> GeneratedText:
        self.calls.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return GeneratedText(text=self.text, model="fake-model", input_tokens=12, output_tokens=34)


def make_request(video_id: str = "abc123", **overrides: object) -> SummaryRequest:
    fields: dict[str, object] = {
        "video_id": video_id,
        "transcript": "Today we talk about sleep, exercise and building small teams.",
    }
    fields.update(overrides)
    return SummaryRequest(**fields)


@pytest.fixture()
def settings() -> Settings:
    return Settings(generator=GeneratorSettings(api_key="test-key", timeout_seconds=1.0))


@pytest.fixture()
def markers() -> MarkerSet:
    return MarkerSet(markers=DEFAULT_MARKERS)


@pytest.fixture()
def parser(markers: MarkerSet) -> SectionParser:
    return SectionParser(markers)


@pytest.fixture()
def fake_generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture()
def session() -> SessionState:
    return SessionState(cache=MemoryCache())


@pytest.fixture()
def orchestrator(
    session: SessionState, fake_generator: FakeGenerator, settings: Settings
) -> RequestOrchestrator:
    return RequestOrchestrator(session, fake_generator, settings)


@pytest.fixture()
def generator_factory() -> type[FakeGenerator]:
    return FakeGenerator


@pytest.fixture()
def request_factory():
    return make_request


@pytest.fixture()
def orchestrator_factory(session: SessionState, settings: Settings):
    """Build an orchestrator over the shared session with a custom generator."""

    def _build(generator: FakeGenerator, **kwargs: object) -> RequestOrchestrator:
        return RequestOrchestrator(session, generator, settings, **kwargs)

    return _build

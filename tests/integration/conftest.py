"""Integration test fixtures.

Provides a fully wired AppState (real Generator over a respx-mocked
generation service, in-memory cache) so messages travel the same path they
take in production.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest
import respx

from tubedigest.cache import MemoryCache
from tubedigest.config import GeneratorSettings, Settings
from tubedigest.generator import Generator, build_http_client
from tubedigest.orchestrator import RequestOrchestrator
from tubedigest.state import AppState, SessionState

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Iterator

LLM_BASE_URL = "https://llm.test/v1"

GENERATED_SUMMARY = (
    "Health and Longevity\n"
    "🧠 Sleep is the foundation of memory consolidation.\n"
    "Business Strategy\n"
    "💰 Small teams ship faster than large committees."
)


def completion(content: str) -> dict:
    return {
        "model": "test-model",
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 100, "completion_tokens": 40},
    }


@pytest.fixture()
def integration_settings() -> Settings:
    return Settings(
        generator=GeneratorSettings(
            base_url=LLM_BASE_URL, api_key="sk-test", model="test-model", timeout_seconds=2.0
        )
    )


@pytest.fixture()
def llm() -> Iterator[respx.MockRouter]:
    """Mocked generation service. Tests add their own routes."""
    with respx.mock(base_url=LLM_BASE_URL, assert_all_called=False) as router:
        yield router


@pytest.fixture()
def completions(llm: respx.MockRouter) -> respx.Route:
    """Chat-completions route answering with GENERATED_SUMMARY by default."""
    return llm.post("/chat/completions").mock(
        return_value=httpx.Response(200, json=completion(GENERATED_SUMMARY))
    )


@pytest.fixture()
async def app_state(integration_settings: Settings) -> AsyncGenerator[AppState, None]:
    http_client = build_http_client(integration_settings.generator)
    session = SessionState(cache=MemoryCache())
    generator = Generator(http_client, integration_settings.generator)
    yield AppState(
        settings=integration_settings,
        session=session,
        orchestrator=RequestOrchestrator(session, generator, integration_settings),
        http_client=http_client,
    )
    await http_client.aclose()

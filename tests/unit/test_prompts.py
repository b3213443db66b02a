"""Unit tests for tubedigest.prompts."""

from __future__ import annotations

import pytest

from tubedigest.config import GeneratorSettings
from tubedigest.models.summary import SummaryFormat, SummaryLength, SummaryRequest, SummaryType
from tubedigest.prompts import (
    build_messages,
    max_tokens_for,
    prepare_transcript,
    system_prompt,
    temperature_for,
)


class TestPrepareTranscript:
    def test_removes_noise_tags(self) -> None:
        text = "[Music] Hello there (applause) and welcome [Sound effects]"
        assert prepare_transcript(text, 1000) == "Hello there and welcome"

    def test_removes_timestamps(self) -> None:
        text = "0:01 First line\n12:34 Second line at 1:02:03 sharp"
        assert prepare_transcript(text, 1000) == "First line Second line at sharp"

    def test_removes_bullets_and_collapses_whitespace(self) -> None:
        assert prepare_transcript("• one\r\n\r\n• two   three", 1000) == "one two three"

    def test_truncates(self) -> None:
        assert prepare_transcript("abcdefghij", 4) == "abcd..."

    def test_short_text_untouched(self) -> None:
        assert prepare_transcript("abcd", 4) == "abcd"


class TestSystemPrompt:
    def test_list_prompt_mentions_section_count(self) -> None:
        prompt = system_prompt(SummaryType.INSIGHTFUL, SummaryLength.SHORT, SummaryFormat.LIST)
        assert "EXACTLY 2 topic sections with 1 insight each" in prompt
        assert "emoji" in prompt

    def test_qa_prompt(self) -> None:
        prompt = system_prompt(SummaryType.FUNNY, SummaryLength.DETAILED, SummaryFormat.QA)
        assert "exactly 3 questions" in prompt
        assert "'Q:'" in prompt

    @pytest.mark.parametrize("summary_type", list(SummaryType))
    def test_every_type_has_prompt(self, summary_type: SummaryType) -> None:
        assert system_prompt(summary_type, SummaryLength.AUTO, SummaryFormat.LIST)


class TestBuildMessages:
    def test_system_and_user(self) -> None:
        request = SummaryRequest(videoId="abc", transcript="0:00 Hello world")
        messages = build_messages(request, 1000)
        assert [m["role"] for m in messages] == ["system", "user"]
        assert messages[1]["content"] == "Transcript: Hello world"


class TestTuning:
    @pytest.mark.parametrize(
        ("length", "expected"),
        [(SummaryLength.SHORT, 220), (SummaryLength.DETAILED, 380), (SummaryLength.AUTO, 300)],
    )
    def test_max_tokens(self, length: SummaryLength, expected: int) -> None:
        assert max_tokens_for(length, GeneratorSettings()) == expected

    @pytest.mark.parametrize(
        ("summary_type", "expected"),
        [
            (SummaryType.FUNNY, 0.8),
            (SummaryType.CONTROVERSIAL, 0.6),
            (SummaryType.ACTIONABLE, 0.5),
            (SummaryType.INSIGHTFUL, 0.7),
            (SummaryType.CONVERSATIONAL, 0.7),
        ],
    )
    def test_temperature(self, summary_type: SummaryType, expected: float) -> None:
        assert temperature_for(summary_type) == expected

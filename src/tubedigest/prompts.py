"""Prompt construction and transcript clean-up for the generation call."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from tubedigest.models.summary import SummaryFormat, SummaryLength, SummaryType

if TYPE_CHECKING:
    from tubedigest.config import GeneratorSettings
    from tubedigest.models.summary import SummaryRequest

_NOISE_TAG_RE = re.compile(
    r"\[(?:music|applause|laughter|silence|intro|outro|music[^\]]*|sound[^\]]*)\]"
    r"|\((?:music|applause|laughter|silence|intro|outro)\)",
    re.IGNORECASE,
)
_LINE_TIMESTAMP_RE = re.compile(r"^\s*\d{1,2}:\d{2}(?::\d{2})?\s*", re.MULTILINE)
_INLINE_TIMESTAMP_RE = re.compile(r"\b\d{1,2}:\d{2}(?::\d{2})?\b")
_BULLET_GLYPH_RE = re.compile("[\u2022\u00b7\u25ba\u25aa]")
_WHITESPACE_RE = re.compile(r"\s+")

_BASE_PROMPTS: dict[str, str] = {
    SummaryType.INSIGHTFUL: (
        "You are an expert content analyst. Extract the most valuable insights and "
        "organize them into specific, meaningful topic sections. Focus on concrete "
        "information rather than abstract concepts."
    ),
    SummaryType.FUNNY: (
        "You are a content analyst who identifies the humorous, entertaining parts of a "
        "video. Create topic-focused sections with concise points about the comedy."
    ),
    SummaryType.ACTIONABLE: (
        "You are a productivity expert. Organize the content into clear topic sections "
        "with specific advice viewers can apply immediately."
    ),
    SummaryType.CONTROVERSIAL: (
        "You are an objective analyst who identifies debate-worthy content. Create "
        "topic-focused sections about the conflicting viewpoints raised."
    ),
    SummaryType.CONVERSATIONAL: (
        "You are a friendly narrator. Retell the main topics of the video in a relaxed, "
        "conversational tone, grouped into short topic sections."
    ),
}

_LENGTH_INSTRUCTIONS: dict[str, str] = {
    SummaryLength.SHORT: (
        "Create EXACTLY 2 topic sections with 1 insight each (1-2 sentences)."
    ),
    SummaryLength.DETAILED: (
        "Create EXACTLY 2 topic sections with 2 insights each (1-2 sentences each)."
    ),
    SummaryLength.AUTO: (
        "Create 2-3 topic sections with 1-2 insights each, depending on how much "
        "the video covers."
    ),
}

_LIST_INSTRUCTIONS = (
    "Section headers are plain topic names without emojis (e.g. 'Health and Longevity', "
    "'Business Strategy'). Put each insight on its own line starting with one relevant "
    "emoji. No markdown (##, **, -) and no timestamps."
)

_QA_QUESTIONS: dict[str, int] = {
    SummaryLength.SHORT: 2,
    SummaryLength.DETAILED: 3,
    SummaryLength.AUTO: 2,
}

_TEMPERATURES: dict[str, float] = {
    SummaryType.FUNNY: 0.8,
    SummaryType.CONTROVERSIAL: 0.6,
    SummaryType.ACTIONABLE: 0.5,
    SummaryType.INSIGHTFUL: 0.7,
}


def prepare_transcript(text: str, max_chars: int) -> str:
    """Strip caption noise and timestamps, collapse whitespace and truncate."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _NOISE_TAG_RE.sub(" ", text)
    text = _LINE_TIMESTAMP_RE.sub(" ", text)
    text = _INLINE_TIMESTAMP_RE.sub(" ", text)
    text = _BULLET_GLYPH_RE.sub(" ", text)
    text = _WHITESPACE_RE.sub(" ", text).strip()
    if len(text) > max_chars:
        text = text[:max_chars] + "..."
    return text


def system_prompt(
    summary_type: SummaryType, length: SummaryLength, summary_format: SummaryFormat
) -> str:
    base = _BASE_PROMPTS[summary_type]
    if summary_format == SummaryFormat.QA:
        questions = _QA_QUESTIONS[length]
        layout = (
            f"Format the summary as exactly {questions} questions and answers. Start each "
            "question line with 'Q:' and each answer line with 'A:'."
        )
        return f"{base} {layout}"
    return f"{base} {_LENGTH_INSTRUCTIONS[length]} {_LIST_INSTRUCTIONS}"


def build_messages(request: SummaryRequest, max_chars: int) -> list[dict[str, str]]:
    transcript = prepare_transcript(request.transcript, max_chars)
    return [
        {
            "role": "system",
            "content": system_prompt(request.type, request.length, request.format),
        },
        {"role": "user", "content": f"Transcript: {transcript}"},
    ]


def max_tokens_for(length: SummaryLength, settings: GeneratorSettings) -> int:
    if length == SummaryLength.SHORT:
        return settings.max_tokens_short
    if length == SummaryLength.DETAILED:
        return settings.max_tokens_detailed
    return settings.max_tokens_auto


def temperature_for(summary_type: SummaryType) -> float:
    return _TEMPERATURES.get(summary_type, 0.7)

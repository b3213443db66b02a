"""Section parser for generated summaries.

The generation service does not guarantee any output layout: depending on the
model, prompt and run it returns emoji-led insights, markdown headings, bold
titles, numbered lists or plain prose. The parser degrades through three
tiers so that callers always get something renderable:

  1. structured markers   (emoji header lines, ``#`` headings, ``**bold**``)
  2. heuristic structure  (short title-case lines read as headers)
  3. flat fallback        (the longest lines of the text as points of one section)

Each line is classified by an ordered tuple of rule objects, first match wins.
Rules only look at the line itself.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import cached_property
from typing import TYPE_CHECKING, Protocol

import structlog

from tubedigest.models.summary import Point, Section

if TYPE_CHECKING:
    from tubedigest.config import ParserSettings

log = structlog.get_logger()

NO_CONTENT_POINT = "❌ No content available"

_VARIATION_SELECTOR = "\ufe0f"
_LIST_PREFIX_RE = re.compile(r"^(?:[-•*]\s+|\d+\.\s+)")
_MARKDOWN_HEADER_RE = re.compile(r"^#{1,3}\s+(.+)$")
_BOLD_RE = re.compile(r"^\*\*\s*([^*]*[^*\s])\s*\*\*:?$")
_SENTENCE_END = (".", "!", "?")


@dataclass(frozen=True)
class MarkerSet:
    """The leading emoji/symbols that mark a header or an already-decorated point."""

    markers: tuple[str, ...]
    default_marker: str = "💡"

    @cached_property
    def _longest_first(self) -> tuple[str, ...]:
        return tuple(sorted(self.markers, key=len, reverse=True))

    def match(self, text: str) -> str | None:
        """Return the marker prefix of ``text`` (with any variation selector), or None."""
        for marker in self._longest_first:
            if text.startswith(marker):
                end = len(marker)
                if text[end : end + 1] == _VARIATION_SELECTOR:
                    end += 1
                return text[:end]
        return None

    def ensure(self, text: str) -> str:
        """Prefix ``text`` with the default marker unless it already carries one."""
        if self.match(text) is not None:
            return text
        return f"{self.default_marker} {text}"


# ---------------------------------------------------------------------------
# Line classification rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Classified:
    is_header: bool
    text: str  # Headline for headers, the untouched line for content


class LineRule(Protocol):
    def apply(self, line: str, markers: MarkerSet) -> Classified | None: ...


@dataclass(frozen=True)
class MarkerHeaderRule:
    """``🎯 Key Point``: a marker, whitespace, then any text."""

    def apply(self, line: str, markers: MarkerSet) -> Classified | None:
        marker = markers.match(line)
        if marker is None:
            return None
        rest = line[len(marker) :]
        if not rest[:1].isspace() or not rest.strip():
            return None
        return Classified(is_header=True, text=line)


@dataclass(frozen=True)
class MarkdownHeaderRule:
    def apply(self, line: str, markers: MarkerSet) -> Classified | None:
        match = _MARKDOWN_HEADER_RE.match(line)
        if match is None:
            return None
        headline = match.group(1).strip()
        bold = _BOLD_RE.match(headline)
        if bold is not None:
            headline = bold.group(1).strip()
        return Classified(is_header=True, text=headline)


@dataclass(frozen=True)
class BoldRule:
    def apply(self, line: str, markers: MarkerSet) -> Classified | None:
        match = _BOLD_RE.match(line)
        if match is None:
            return None
        return Classified(is_header=True, text=match.group(1).strip())


@dataclass(frozen=True)
class ShortCapsRule:
    """Unlabelled titles such as ``Health and Longevity``."""

    max_words: int = 6
    min_length: int = 10

    def apply(self, line: str, markers: MarkerSet) -> Classified | None:
        if _LIST_PREFIX_RE.match(line) or markers.match(line) is not None:
            return None
        if len(line) <= self.min_length or len(line.split()) > self.max_words:
            return None
        if any(mark in line for mark in _SENTENCE_END):
            return None
        # Title case needs a capital up front and at least one more after it
        if not line[0].isupper() or sum(ch.isupper() for ch in line) < 2:
            return None
        return Classified(is_header=True, text=line.rstrip(":").strip())


@dataclass(frozen=True)
class ContentRule:
    def apply(self, line: str, markers: MarkerSet) -> Classified | None:
        return Classified(is_header=False, text=line)


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParsedSummary:
    sections: tuple[Section, ...]
    degraded: bool = False  # True when the whole-text fallback produced the result


def split_lines(text: str) -> list[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


def no_content_section(headline: str) -> Section:
    return Section(headline=headline, points=(Point(text=NO_CONTENT_POINT),))


class SectionParser:
    """Parse generated text into headline+points sections. Never raises."""

    def __init__(
        self,
        markers: MarkerSet,
        rules: tuple[LineRule, ...] | None = None,
        *,
        min_point_length: int = 10,
        fallback_min_length: int = 15,
        fallback_max_points: int = 6,
    ) -> None:
        self.markers = markers
        self.rules: tuple[LineRule, ...] = rules or (
            MarkerHeaderRule(),
            MarkdownHeaderRule(),
            BoldRule(),
            ShortCapsRule(),
            ContentRule(),
        )
        self.min_point_length = min_point_length
        self.fallback_min_length = fallback_min_length
        self.fallback_max_points = fallback_max_points

    @classmethod
    def from_settings(cls, settings: ParserSettings) -> SectionParser:
        markers = MarkerSet(markers=tuple(settings.markers), default_marker=settings.default_marker)
        return cls(
            markers,
            min_point_length=settings.min_point_length,
            fallback_min_length=settings.fallback_min_length,
            fallback_max_points=settings.fallback_max_points,
        )

    def parse(self, raw_text: object, default_headline: str) -> list[Section]:
        return list(self.parse_outcome(raw_text, default_headline).sections)

    def parse_outcome(self, raw_text: object, default_headline: str) -> ParsedSummary:
        if not isinstance(raw_text, str) or not raw_text.strip():
            log.info("parse_degraded", reason="empty_input")
            return ParsedSummary((no_content_section(default_headline),), degraded=True)

        lines = split_lines(raw_text)
        # (headline, points, source line when the header carries a marker)
        drafts: list[tuple[str, list[Point], str | None]] = []

        for line in lines:
            classified = self.classify(line)
            if classified.is_header:
                marker_line = line if self.markers.match(line) is not None else None
                drafts.append((classified.text, [], marker_line))
                continue
            text = self.normalize_point(line)
            if text is None:
                continue
            if not drafts:
                drafts.append((default_headline, [], None))
            drafts[-1][1].append(Point(text=text))

        sections = self.merge_empty(drafts, default_headline)
        if sections:
            return ParsedSummary(sections)

        log.info("parse_degraded", reason="no_sections", line_count=len(lines))
        return ParsedSummary((self.fallback_section(lines, default_headline),), degraded=True)

    def merge_empty(
        self, drafts: list[tuple[str, list[Point], str | None]], default_headline: str
    ) -> tuple[Section, ...]:
        """Fold point-less marker headers into the preceding section, then drop empties.

        Emoji-led insights and emoji-led titles look the same line by line; a
        marker header that never collects a point was an insight.
        """
        merged: list[tuple[str, list[Point]]] = []
        for headline, points, marker_line in drafts:
            if points or marker_line is None:
                merged.append((headline, points))
                continue
            text = self.normalize_point(marker_line)
            if text is None:
                continue
            if not merged:
                merged.append((default_headline, []))
            merged[-1][1].append(Point(text=text))
        return tuple(
            Section(headline=headline, points=tuple(points)) for headline, points in merged if points
        )

    def classify(self, line: str) -> Classified:
        for rule in self.rules:
            classified = rule.apply(line, self.markers)
            if classified is not None:
                return classified
        return Classified(is_header=False, text=line)

    def normalize_point(self, line: str) -> str | None:
        """Strip list markup and decorate with a marker. None for noise lines."""
        text = _LIST_PREFIX_RE.sub("", line, count=1).strip()
        if len(text) < self.min_point_length:
            return None
        return self.markers.ensure(text)

    def fallback_section(self, lines: list[str], headline: str) -> Section:
        candidates = [line for line in lines if len(line) > self.fallback_min_length]
        points = [
            Point(text=self.markers.ensure(_LIST_PREFIX_RE.sub("", line, count=1).strip()))
            for line in candidates[: self.fallback_max_points]
        ]
        if not points:
            points = [Point(text=self.markers.ensure(" ".join(lines)))]
        return Section(headline=headline, points=tuple(points))


_QUESTION_PREFIX_RE = re.compile(
    r"^(?:\d+[.)]\s*)?(?:Q\d*|Question(?:\s*\d+)?)\s*[:.)]\s*", re.IGNORECASE
)
_ANSWER_PREFIX_RE = re.compile(r"^(?:A\d*|Answer)\s*[:.)]\s*", re.IGNORECASE)


def _unwrap(line: str) -> str:
    line = _MARKDOWN_HEADER_RE.sub(r"\1", line)
    return line.replace("**", "").strip()


class QAParser:
    """Parse ``Q: … / A: …`` output into one section per question.

    Text without recognisable questions is handed to the wrapped SectionParser.
    """

    def __init__(self, sections: SectionParser) -> None:
        self._sections = sections

    def parse(self, raw_text: object, default_headline: str) -> list[Section]:
        return list(self.parse_outcome(raw_text, default_headline).sections)

    def parse_outcome(self, raw_text: object, default_headline: str) -> ParsedSummary:
        if not isinstance(raw_text, str) or not raw_text.strip():
            return self._sections.parse_outcome(raw_text, default_headline)

        drafts: list[tuple[str, list[Point]]] = []
        questions = 0

        for line in split_lines(raw_text):
            question = self._question(line)
            if question is not None:
                questions += 1
                drafts.append((question, []))
                continue
            answer = _ANSWER_PREFIX_RE.sub("", _unwrap(line), count=1)
            text = self._sections.normalize_point(answer)
            if text is None:
                continue
            if not drafts:
                drafts.append((default_headline, []))
            drafts[-1][1].append(Point(text=text))

        sections = tuple(
            Section(headline=headline, points=tuple(points)) for headline, points in drafts if points
        )
        if questions == 0 or not sections:
            return self._sections.parse_outcome(raw_text, default_headline)
        return ParsedSummary(sections)

    @staticmethod
    def _question(line: str) -> str | None:
        text = _unwrap(line)
        match = _QUESTION_PREFIX_RE.match(text)
        if match is not None:
            question = text[match.end() :].strip()
            return question or None
        if text.endswith("?") and not _ANSWER_PREFIX_RE.match(text):
            return _LIST_PREFIX_RE.sub("", text, count=1).strip()
        return None

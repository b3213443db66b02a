"""Block formatter for generated summaries.

Coarser than the section parser: the raw text is cut in front of every marker
symbol and each piece becomes a block of header line plus untouched body
lines. Used when the text has no parseable section structure, where showing
the full text beats point-by-point normalisation.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog

from tubedigest.models.summary import Point, RenderBlock, Section
from tubedigest.parser import ParsedSummary, split_lines

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tubedigest.parser import MarkerSet

log = structlog.get_logger()

DEFAULT_HEADER = "📋 Summary"
NO_CONTENT_BODY = "No content available"


class RenderFormatter:
    """Split raw text into display blocks. Always returns at least one block."""

    def __init__(self, markers: MarkerSet, *, min_body_length: int = 10) -> None:
        self.markers = markers
        self.min_body_length = min_body_length
        alternatives = "|".join(
            re.escape(marker) for marker in sorted(markers.markers, key=len, reverse=True)
        )
        # Zero-width split: the marker opens the next block and is kept with it
        self._split_re = re.compile(f"(?={alternatives})") if alternatives else None

    def format(self, raw_text: object, default_header: str = DEFAULT_HEADER) -> list[RenderBlock]:
        if not isinstance(raw_text, str) or not raw_text.strip():
            return [RenderBlock(header=default_header, body=(NO_CONTENT_BODY,))]

        pieces = self._split_re.split(raw_text) if self._split_re is not None else [raw_text]
        blocks: list[RenderBlock] = []
        for piece in pieces:
            lines = split_lines(piece)
            if not lines:
                continue
            header, body = lines[0], tuple(lines[1:])
            if sum(len(line) for line in body) <= self.min_body_length:
                continue
            blocks.append(RenderBlock(header=header, body=body))

        if blocks:
            return blocks

        log.info("format_degraded", reason="no_blocks", length=len(raw_text))
        return [RenderBlock(header=default_header, body=tuple(split_lines(raw_text)))]

    @staticmethod
    def from_sections(sections: Iterable[Section]) -> list[RenderBlock]:
        return [
            RenderBlock(header=section.headline, body=tuple(point.text for point in section.points))
            for section in sections
        ]

    def parse_outcome(self, raw_text: object, default_headline: str) -> ParsedSummary:
        """Blocks read back as sections, so the formatter can serve as a list strategy."""
        blocks = self.format(raw_text, default_headline)
        degraded = len(blocks) == 1 and blocks[0].header == default_headline
        sections = tuple(
            Section(
                headline=block.header,
                points=tuple(Point(text=line) for line in block.body) or (Point(text=block.header),),
            )
            for block in blocks
        )
        return ParsedSummary(sections, degraded=degraded)

    def parse(self, raw_text: object, default_headline: str) -> list[Section]:
        return list(self.parse_outcome(raw_text, default_headline).sections)

"""Parsing strategy selection.

Which parser handles a response is decided by the requested format and the
``parser.list_strategy`` setting, not by swapping functions at runtime.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from tubedigest.formatter import RenderFormatter
from tubedigest.models.summary import SummaryFormat, SummaryType
from tubedigest.parser import QAParser, SectionParser

if TYPE_CHECKING:
    from tubedigest.config import ParserSettings
    from tubedigest.parser import ParsedSummary

HEADLINES: dict[str, str] = {
    SummaryType.INSIGHTFUL: "Key Insights & Learnings",
    SummaryType.FUNNY: "Humorous Highlights",
    SummaryType.ACTIONABLE: "Action Items & Takeaways",
    SummaryType.CONTROVERSIAL: "Debate Points & Controversies",
}
DEFAULT_HEADLINE = "Summary Points"


class ParseStrategy(Protocol):
    def parse_outcome(self, raw_text: object, default_headline: str) -> ParsedSummary: ...


def headline_for(summary_type: str) -> str:
    return HEADLINES.get(summary_type, DEFAULT_HEADLINE)


class StrategySet:
    """The parsers and formatter built once from settings, looked up per request."""

    def __init__(self, settings: ParserSettings) -> None:
        self.list_strategy = settings.list_strategy
        self.sections = SectionParser.from_settings(settings)
        self.qa = QAParser(self.sections)
        self.formatter = RenderFormatter(self.sections.markers)

    def select(self, summary_format: SummaryFormat) -> ParseStrategy:
        if summary_format == SummaryFormat.QA:
            return self.qa
        if self.list_strategy == "blocks":
            return self.formatter
        return self.sections

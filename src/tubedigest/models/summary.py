from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SummaryType(StrEnum):
    INSIGHTFUL = "insightful"
    FUNNY = "funny"
    ACTIONABLE = "actionable"
    CONTROVERSIAL = "controversial"
    CONVERSATIONAL = "conversational"


class SummaryLength(StrEnum):
    AUTO = "auto"
    SHORT = "short"
    DETAILED = "detailed"


class SummaryFormat(StrEnum):
    LIST = "list"
    QA = "qa"


class RequestKey(NamedTuple):
    """Identity of a summary request. The transcript is deliberately not part of it."""

    video_id: str
    type: SummaryType
    length: SummaryLength
    format: SummaryFormat

    def __str__(self) -> str:
        return f"advanced_{self.video_id}_{self.type}_{self.length}_{self.format}"


class SummaryRequest(BaseModel):
    """A validated request to summarise one video transcript."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    video_id: str = Field(alias="videoId")
    transcript: str
    type: SummaryType = SummaryType.INSIGHTFUL
    length: SummaryLength = SummaryLength.AUTO
    format: SummaryFormat = SummaryFormat.LIST

    @field_validator("transcript", mode="before")
    @classmethod
    def _join_segments(cls, value: object) -> object:
        # Caption tracks arrive as lists of strings or {"text": ...} segments
        if isinstance(value, list):
            parts = []
            for segment in value:
                if isinstance(segment, dict):
                    parts.append(str(segment.get("text", "")))
                else:
                    parts.append(str(segment))
            return " ".join(part for part in parts if part)
        return value

    @field_validator("transcript", "video_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @property
    def key(self) -> RequestKey:
        return RequestKey(self.video_id, self.type, self.length, self.format)


class Point(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str


class Section(BaseModel):
    """A headline and its ordered points. Parsers never emit one without points."""

    model_config = ConfigDict(frozen=True)

    headline: str
    points: tuple[Point, ...]


class RenderBlock(BaseModel):
    """Coarse display grouping: a header line and the untouched lines under it."""

    model_config = ConfigDict(frozen=True)

    header: str
    body: tuple[str, ...]


class SummaryResult(BaseModel):
    """Outcome of one successful generation. Stored as-is; never mutated."""

    model_config = ConfigDict(frozen=True)

    request_key: str
    video_id: str
    sections: tuple[Section, ...]
    blocks: tuple[RenderBlock, ...]
    raw_text: str
    generated_at: datetime
    degraded: bool = False  # Parser fell back to whole-text mode
    model: str = ""

"""Payload shapes exchanged with the UI-side actor over the message channel."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from tubedigest.models.summary import RenderBlock, Section


class SummarizeMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: Literal["summarizeAdvanced", "summarize"]
    video_id: str = Field(default="", alias="videoId")
    transcript: str | list = ""
    type: str = "insightful"
    length: str = "auto"
    format: str = "list"


class ClearCacheMessage(BaseModel):
    action: Literal["clearCache"]


class ClearVideoCacheMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: Literal["clearVideoCache"]
    video_id: str = Field(alias="videoId", min_length=1)


class VideoChangedMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: Literal["videoChanged"]
    video_id: str = Field(alias="videoId", min_length=1)


class SummaryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    summary: str
    request_key: str = Field(alias="requestKey")
    sections: tuple[Section, ...]
    blocks: tuple[RenderBlock, ...]
    from_cache: bool = Field(alias="fromCache")
    degraded: bool


class ErrorResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    error: str
    code: str
    suggestion: str
    recoverable: bool
    request_key: str | None = Field(default=None, alias="requestKey")
    retry_after: float | None = Field(default=None, alias="retryAfter")


class AckResponse(BaseModel):
    success: bool = True

from __future__ import annotations

from tubedigest.models.messages import (
    AckResponse,
    ClearCacheMessage,
    ClearVideoCacheMessage,
    ErrorResponse,
    SummarizeMessage,
    SummaryResponse,
    VideoChangedMessage,
)
from tubedigest.models.summary import (
    Point,
    RenderBlock,
    RequestKey,
    Section,
    SummaryFormat,
    SummaryLength,
    SummaryRequest,
    SummaryResult,
    SummaryType,
)

__all__ = [
    # summary
    "SummaryType",
    "SummaryLength",
    "SummaryFormat",
    "RequestKey",
    "SummaryRequest",
    "Point",
    "Section",
    "RenderBlock",
    "SummaryResult",
    # messages
    "SummarizeMessage",
    "ClearCacheMessage",
    "ClearVideoCacheMessage",
    "VideoChangedMessage",
    "SummaryResponse",
    "ErrorResponse",
    "AckResponse",
]

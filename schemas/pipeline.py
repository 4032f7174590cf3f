# User value: This file defines the per-request values that flow through clip transcription.
import math
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

MIN_CLIP_DURATION_SEC = 1


class ClipRange(BaseModel):
    # User value: captures the caller's requested window so only that part of the clip is billed and sent upstream.
    model_config = ConfigDict(frozen=True)

    # NaN marks a malformed mm:ss value; it is carried, not rejected.
    start: float
    end: float

    @property
    def duration(self) -> float:
        span = self.end - self.start
        if not math.isfinite(span):
            return MIN_CLIP_DURATION_SEC
        return max(span, MIN_CLIP_DURATION_SEC)

    @property
    def slice_requested(self) -> bool:
        return math.isfinite(self.start) and math.isfinite(self.end) and self.end > self.start


class UsageSnapshot(BaseModel):
    # User value: records what the ledger said so quota decisions are explainable in logs.
    model_config = ConfigDict(frozen=True)

    current_usage: int = Field(default=0, ge=0)
    estimated_tokens: int = Field(default=0, ge=0)
    limit: int

    @property
    def projected_usage(self) -> int:
        return self.current_usage + self.estimated_tokens

    @property
    def exceeds_limit(self) -> bool:
        return self.projected_usage > self.limit


class TranscriptionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str = Field(..., min_length=1)
    token_estimate: int = Field(..., ge=0)


class TranscriptFetched(BaseModel):
    # User value: lets a companion client react as soon as a transcript is ready.
    type: Literal["TRANSCRIPT_FETCHED"] = "TRANSCRIPT_FETCHED"
    transcript: str
    estimatedTokenCount: int

# User value: This file pins the wire shape of /transcribe so clients can rely on it.
from typing import Any, Optional

from pydantic import BaseModel, Field


class TranscribeResponse(BaseModel):
    # User value: returns the transcript plus the tokens actually charged for it.
    transcript: str
    estimatedTokens: int = Field(..., ge=0)


class ErrorResponse(BaseModel):
    # User value: every failure is a JSON object with a readable error, never a stack trace.
    error: str
    code: Optional[str] = None
    details: Optional[Any] = None

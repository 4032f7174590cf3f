# User value: This file maps every pipeline failure to one clear status code and message.
from typing import Any


class PipelineError(Exception):
    """Base for failures that end a /transcribe request.

    ``error_message`` is what the caller sees; the exception text itself is
    for logs and may carry internal detail.
    """

    status_code = 500
    error_code = "INTERNAL_SERVER_ERROR"
    error_message = "Internal server error."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.error_message)

    def to_body(self) -> dict:
        return {"error": self.error_message}


class AuthError(PipelineError):
    status_code = 401
    error_code = "AUTH_MISSING_TOKEN"
    error_message = "Unauthorized"


class QuotaExceeded(PipelineError):
    status_code = 403
    error_code = "USAGE_LIMIT_REACHED"
    error_message = "Usage limit exceeded."

    def to_body(self) -> dict:
        return {"error": self.error_message, "code": self.error_code}


class NoFileError(PipelineError):
    status_code = 400
    error_code = "NO_AUDIO_FILE"
    error_message = "No audio file uploaded."


class ConversionFailure(PipelineError):
    error_code = "CONVERSION_FAILED"


class SliceFailure(PipelineError):
    error_code = "SLICE_FAILED"


class UpstreamParseFailure(PipelineError):
    error_code = "UPSTREAM_PARSE_FAILED"
    error_message = "Could not parse Whisper response."

    def __init__(self, raw_body: str = ""):
        super().__init__(self.error_message)
        # Diagnostics only; never part of the response body.
        self.raw_body = raw_body


class UpstreamEmptyResult(PipelineError):
    error_code = "UPSTREAM_EMPTY_RESULT"
    error_message = "Whisper API failed"

    def __init__(self, details: Any = None):
        super().__init__("Whisper API returned no transcript")
        self.details = details

    def to_body(self) -> dict:
        return {"error": self.error_message, "details": self.details}


class UnknownServerError(PipelineError):
    pass


# Not caller-visible: the usage increment never changes the response.
class LedgerWriteFailure(Exception):
    pass

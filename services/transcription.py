"""Speech-to-text via the OpenAI Whisper transcription endpoint."""
import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import httpx

from services.errors import UpstreamEmptyResult, UpstreamParseFailure

logger = logging.getLogger("api.transcription")

_RAW_LOG_CHARS = 2000


def extract_transcript_text(payload: Any) -> str:
    """Return the transcript from a parsed response, or raise UpstreamEmptyResult."""
    text = payload.get("text") if isinstance(payload, dict) else None
    if not isinstance(text, str) or not text:
        raise UpstreamEmptyResult(details=payload)
    return text


class WhisperTranscriptionClient:
    """Uploads one audio artifact and validates the response.

    The service credential comes from configuration only; the caller's token
    is never forwarded here.
    """

    def __init__(
        self,
        *,
        api_key: str,
        url: str,
        model: str,
        timeout_sec: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.url = url
        self.model = model
        self.timeout_sec = timeout_sec
        self.transport = transport

    async def transcribe(self, audio_path: Path) -> str:
        audio_bytes = await asyncio.to_thread(Path(audio_path).read_bytes)

        async with httpx.AsyncClient(timeout=self.timeout_sec, transport=self.transport) as client:
            response = await client.post(
                self.url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                files={"file": (Path(audio_path).name, audio_bytes, "audio/mpeg")},
                data={"model": self.model},
            )

        # Upstream error pages are not always JSON; read text before parsing.
        raw = response.text
        try:
            payload = json.loads(raw)
        except ValueError as exc:
            logger.error(
                "whisper_response_unparseable status=%s body=%s",
                response.status_code,
                raw[:_RAW_LOG_CHARS],
            )
            raise UpstreamParseFailure(raw_body=raw) from exc

        try:
            text = extract_transcript_text(payload)
        except UpstreamEmptyResult:
            logger.error("whisper_response_no_transcript status=%s payload=%s", response.status_code, payload)
            raise

        logger.info("whisper_transcript_received status=%s chars=%s", response.status_code, len(text))
        return text

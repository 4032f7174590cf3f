# User value: This file lets a companion client (e.g. a browser extension) hear about finished transcripts.
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

import httpx

from schemas.pipeline import TranscriptFetched

logger = logging.getLogger("api.notifications")

TranscriptObserver = Callable[[TranscriptFetched], Union[None, Awaitable[None]]]


def noop_observer(event: TranscriptFetched) -> None:
    return None


class WebhookObserver:
    # User value: forwards the transcript event to a configured listener URL.
    def __init__(
        self,
        *,
        url: str,
        timeout_sec: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.timeout_sec = timeout_sec
        self.transport = transport

    async def __call__(self, event: TranscriptFetched) -> None:
        async with httpx.AsyncClient(timeout=self.timeout_sec, transport=self.transport) as client:
            response = await client.post(self.url, json=event.model_dump())
        response.raise_for_status()


# User value: a broken listener must never cost the caller their transcript.
async def notify_observer(observer: Optional[TranscriptObserver], event: TranscriptFetched) -> bool:
    if observer is None:
        return False
    try:
        result = observer(event)
        if inspect.isawaitable(result):
            await result
    except Exception as exc:
        logger.warning("transcript_observer_failed error=%s: %s", exc.__class__.__name__, exc)
        return False
    return True

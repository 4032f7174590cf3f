# User value: This file runs one /transcribe request end to end: auth, quota, encode, transcribe, bill, clean up.
import logging
import time
from typing import Optional, Protocol

from config import PipelineConfig
from schemas.pipeline import ClipRange, TranscriptFetched, TranscriptionResult
from services.archive import ArchiveStore, build_archive_store
from services.artifacts import (
    ARTIFACT_CONVERTED,
    ARTIFACT_SLICED,
    RequestArtifacts,
    get_upload_size_bytes,
)
from services.auth import require_bearer_token
from services.clip_range import parse_clip_range
from services.errors import NoFileError, PipelineError, UnknownServerError
from services.ledger import GraphQLUsageLedger, estimate_postcheck_tokens
from services.notifications import TranscriptObserver, WebhookObserver, noop_observer, notify_observer
from services.quota import enforce_usage_quota
from services.transcoder import FFmpegTranscoder
from services.transcription import WhisperTranscriptionClient
from utils.metrics import incr, observe_ms
from utils.request_id import get_request_id, new_upload_id
from utils.stage_logging import log_stage

logger = logging.getLogger("api.pipeline")


class UsageLedger(Protocol):
    async def get_usage_count(self, token: str) -> int: ...

    async def increment_usage(self, token: str, amount: int) -> None: ...


class MediaTranscoder(Protocol):
    async def convert(self, source, destination): ...

    async def slice(self, source, destination, *, start: float, duration: float): ...


class Transcriber(Protocol):
    async def transcribe(self, audio_path) -> str: ...


# User value: treats a missing or zero-byte upload the same, so callers get one clear 400.
def has_audio(audio) -> bool:
    # Text form fields arrive as str and count as no upload.
    if audio is None or isinstance(audio, str):
        return False
    file_obj = getattr(audio, "file", None)
    if file_obj is None:
        return False
    return get_upload_size_bytes(file_obj) > 0


class TranscriptionPipeline:
    def __init__(
        self,
        *,
        config: PipelineConfig,
        ledger: UsageLedger,
        transcoder: MediaTranscoder,
        transcriber: Transcriber,
        archive: ArchiveStore,
        observer: Optional[TranscriptObserver] = None,
    ):
        self.config = config
        self.ledger = ledger
        self.transcoder = transcoder
        self.transcriber = transcriber
        self.archive = archive
        self.observer = observer or noop_observer

    async def run(
        self,
        *,
        authorization: str | None,
        audio,
        start_time: str | None = None,
        end_time: str | None = None,
    ) -> TranscriptionResult:
        request_id = get_request_id() or ""
        started = time.perf_counter()
        try:
            result = await self._run(
                request_id=request_id,
                authorization=authorization,
                audio=audio,
                start_time=start_time,
                end_time=end_time,
            )
        except PipelineError as exc:
            incr("transcribe_requests_failed_total", error_code=exc.error_code)
            raise
        except Exception as exc:
            logger.exception(
                "transcribe_failed_unhandled request_id=%s error=%s: %s",
                request_id,
                exc.__class__.__name__,
                exc,
            )
            incr("transcribe_requests_failed_total", error_code=UnknownServerError.error_code)
            raise UnknownServerError(f"{exc.__class__.__name__}: {exc}") from exc
        finally:
            observe_ms("transcribe_pipeline_latency_ms", (time.perf_counter() - started) * 1000.0)

        incr("transcribe_requests_succeeded_total")
        return result

    async def _run(
        self,
        *,
        request_id: str,
        authorization: str | None,
        audio,
        start_time: str | None,
        end_time: str | None,
    ) -> TranscriptionResult:
        try:
            token = require_bearer_token(authorization)
        except PipelineError:
            log_stage(stage="AUTH", event="REJECTED", request_id=request_id, reason="missing_bearer_token")
            raise

        clip = parse_clip_range(start_time, end_time)
        log_stage(
            stage="QUOTA_CHECK",
            event="STARTED",
            request_id=request_id,
            start_sec=clip.start,
            end_sec=clip.end,
            duration_sec=clip.duration,
        )
        snapshot = await enforce_usage_quota(
            ledger=self.ledger,
            token=token,
            clip=clip,
            usage_limit=self.config.usage_limit,
            request_id=request_id,
        )
        log_stage(
            stage="QUOTA_CHECK",
            event="COMPLETED",
            request_id=request_id,
            current_usage=snapshot.current_usage,
            estimated_tokens=snapshot.estimated_tokens,
        )

        if not has_audio(audio):
            log_stage(stage="FILE_PRESENCE", event="REJECTED", request_id=request_id)
            raise NoFileError()

        upload_id = new_upload_id()
        async with RequestArtifacts(
            upload_id=upload_id,
            upload_dir=self.config.upload_dir,
            archive=self.archive,
            request_id=request_id,
        ) as artifacts:
            original = await artifacts.stage_original(audio.file)
            log_stage(
                stage="UPLOAD_STAGED",
                event="COMPLETED",
                request_id=request_id,
                upload_id=upload_id,
                filename=getattr(audio, "filename", None),
            )

            final_upload = await self._transcode(artifacts, original, clip, request_id)
            text = await self._transcribe(final_upload, request_id, upload_id)

        token_estimate = estimate_postcheck_tokens(text)
        await self._record_usage(token, token_estimate, request_id, upload_id)
        await notify_observer(
            self.observer,
            TranscriptFetched(transcript=text, estimatedTokenCount=token_estimate),
        )
        return TranscriptionResult(text=text, token_estimate=token_estimate)

    async def _transcode(self, artifacts: RequestArtifacts, original, clip: ClipRange, request_id: str):
        upload_id = artifacts.upload_id

        converted = artifacts.acquire(ARTIFACT_CONVERTED)
        log_stage(stage="CONVERT", event="STARTED", request_id=request_id, upload_id=upload_id)
        try:
            await self.transcoder.convert(original, converted)
        except PipelineError as exc:
            log_stage(stage="CONVERT", event="FAILED", request_id=request_id, upload_id=upload_id, error=str(exc))
            raise
        log_stage(stage="CONVERT", event="COMPLETED", request_id=request_id, upload_id=upload_id)

        if clip.slice_requested:
            sliced = artifacts.acquire(ARTIFACT_SLICED)
            log_stage(
                stage="SLICE",
                event="STARTED",
                request_id=request_id,
                upload_id=upload_id,
                start_sec=clip.start,
                duration_sec=clip.duration,
            )
            try:
                await self.transcoder.slice(converted, sliced, start=clip.start, duration=clip.duration)
            except PipelineError as exc:
                log_stage(stage="SLICE", event="FAILED", request_id=request_id, upload_id=upload_id, error=str(exc))
                raise
            log_stage(stage="SLICE", event="COMPLETED", request_id=request_id, upload_id=upload_id)
        else:
            log_stage(
                stage="SLICE",
                event="SKIPPED",
                request_id=request_id,
                upload_id=upload_id,
                reason="invalid_timestamps",
            )

        return artifacts.select_final_upload()

    async def _transcribe(self, final_upload, request_id: str, upload_id: str) -> str:
        log_stage(
            stage="UPSTREAM_TRANSCRIBE",
            event="STARTED",
            request_id=request_id,
            upload_id=upload_id,
            artifact=final_upload.name,
        )
        started = time.perf_counter()
        try:
            text = await self.transcriber.transcribe(final_upload)
        except Exception as exc:
            log_stage(
                stage="UPSTREAM_TRANSCRIBE",
                event="FAILED",
                request_id=request_id,
                upload_id=upload_id,
                error=f"{exc.__class__.__name__}: {exc}",
            )
            raise
        finally:
            observe_ms("upstream_transcribe_latency_ms", (time.perf_counter() - started) * 1000.0)
        log_stage(
            stage="UPSTREAM_TRANSCRIBE",
            event="COMPLETED",
            request_id=request_id,
            upload_id=upload_id,
            transcript_chars=len(text),
        )
        return text

    async def _record_usage(self, token: str, amount: int, request_id: str, upload_id: str) -> None:
        try:
            await self.ledger.increment_usage(token, amount)
        except Exception as exc:
            # The caller already has a valid transcript; billing drift is logged, not surfaced.
            logger.warning(
                "usage_increment_failed request_id=%s upload_id=%s amount=%s error=%s: %s",
                request_id,
                upload_id,
                amount,
                exc.__class__.__name__,
                exc,
            )
            incr("usage_increment_failed_total")
            return
        log_stage(stage="USAGE_INCREMENT", event="COMPLETED", request_id=request_id, upload_id=upload_id, amount=amount)


# User value: wires the production collaborators from one config object.
def build_pipeline(config: PipelineConfig) -> TranscriptionPipeline:
    observer: TranscriptObserver = noop_observer
    if config.notify_webhook_url:
        observer = WebhookObserver(url=config.notify_webhook_url, timeout_sec=config.stage_timeout_sec)

    return TranscriptionPipeline(
        config=config,
        ledger=GraphQLUsageLedger(
            graphql_url=config.ledger_graphql_url,
            timeout_sec=config.stage_timeout_sec,
        ),
        transcoder=FFmpegTranscoder(
            ffmpeg_binary=config.ffmpeg_binary,
            timeout_sec=config.stage_timeout_sec,
        ),
        transcriber=WhisperTranscriptionClient(
            api_key=config.transcription_api_key,
            url=config.transcription_url,
            model=config.transcription_model,
            timeout_sec=config.stage_timeout_sec,
        ),
        archive=build_archive_store(config),
        observer=observer,
    )

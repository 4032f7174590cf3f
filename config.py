import os
import shutil
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

load_dotenv()

DEFAULT_TRANSCRIPTION_URL = "https://api.openai.com/v1/audio/transcriptions"
DEFAULT_TRANSCRIPTION_MODEL = "whisper-1"
DEFAULT_USAGE_LIMIT = 8000
ARCHIVE_BACKENDS = ("local", "gcs")


class PipelineConfig(BaseModel):
    """Everything the transcription pipeline needs from the outside world.

    Built once from the environment and handed to the pipeline explicitly;
    nothing below ``services/`` reads ``os.environ`` on its own.
    """

    model_config = ConfigDict(frozen=True)

    ledger_graphql_url: str
    transcription_api_key: str
    transcription_url: str = DEFAULT_TRANSCRIPTION_URL
    transcription_model: str = DEFAULT_TRANSCRIPTION_MODEL
    usage_limit: int = Field(default=DEFAULT_USAGE_LIMIT, gt=0)
    upload_dir: Path = Path("uploads")
    debug_dir: Path = Path("debug")
    archive_backend: Literal["local", "gcs"] = "local"
    archive_gcs_bucket: Optional[str] = None
    archive_gcs_prefix: str = "debug"
    ffmpeg_binary: str = "ffmpeg"
    # None keeps the historical behaviour: no deadline on any stage.
    stage_timeout_sec: Optional[float] = None
    notify_webhook_url: Optional[str] = None


def _optional_positive_float(raw: str | None) -> float | None:
    value = (raw or "").strip()
    if not value:
        return None
    parsed = float(value)
    return parsed if parsed > 0 else None


def resolve_ffmpeg_binary() -> str:
    return os.getenv("FFMPEG_BINARY_PATH") or shutil.which("ffmpeg") or "ffmpeg"


def load_pipeline_config() -> PipelineConfig:
    return PipelineConfig(
        ledger_graphql_url=os.getenv("BACKEND_GRAPHQL_URL", "").strip(),
        transcription_api_key=os.getenv("OPENAI_API_KEY", "").strip(),
        transcription_url=os.getenv("TRANSCRIPTION_URL", DEFAULT_TRANSCRIPTION_URL).strip(),
        transcription_model=os.getenv("TRANSCRIPTION_MODEL", DEFAULT_TRANSCRIPTION_MODEL).strip(),
        usage_limit=int((os.getenv("USAGE_TOKEN_LIMIT") or "").strip() or DEFAULT_USAGE_LIMIT),
        upload_dir=Path(os.getenv("UPLOAD_DIR", "uploads")).resolve(),
        debug_dir=Path(os.getenv("DEBUG_DIR", "debug")).resolve(),
        archive_backend=os.getenv("ARCHIVE_BACKEND", "local").strip().lower() or "local",
        archive_gcs_bucket=(os.getenv("GCS_BUCKET_NAME") or "").strip() or None,
        archive_gcs_prefix=(os.getenv("ARCHIVE_GCS_PREFIX") or "debug").strip().strip("/") or "debug",
        ffmpeg_binary=resolve_ffmpeg_binary(),
        stage_timeout_sec=_optional_positive_float(os.getenv("STAGE_TIMEOUT_SEC")),
        notify_webhook_url=(os.getenv("NOTIFY_WEBHOOK_URL") or "").strip() or None,
    )

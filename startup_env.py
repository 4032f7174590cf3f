import logging
import math
import os
import shutil
from typing import List

from config import ARCHIVE_BACKENDS

logger = logging.getLogger("api.startup")


def _is_blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


def _validate_http_url(value: str | None, key: str, errors: List[str]) -> None:
    if _is_blank(value):
        errors.append(f"{key} is required")
        return
    if not (value.startswith("http://") or value.startswith("https://")):
        errors.append(f"{key} must start with http:// or https://")


def _validate_cors_allow_origins(value: str | None, errors: List[str], warnings: List[str]) -> None:
    if _is_blank(value):
        warnings.append("CORS_ALLOW_ORIGINS is not set; browser clients on other origins will be rejected")
        return

    origins = [x.strip() for x in str(value).split(",") if x.strip()]
    for origin in origins:
        if origin == "*":
            errors.append("CORS_ALLOW_ORIGINS must not contain '*' in strict allowlist mode")
            continue
        if not (
            origin.startswith("http://")
            or origin.startswith("https://")
            or origin.startswith("chrome-extension://")
        ):
            errors.append(f"CORS origin must start with http://, https:// or chrome-extension://: {origin}")


def _validate_archive_backend(errors: List[str]) -> None:
    backend = (os.getenv("ARCHIVE_BACKEND") or "local").strip().lower()
    if backend not in ARCHIVE_BACKENDS:
        errors.append(f"ARCHIVE_BACKEND must be one of {', '.join(ARCHIVE_BACKENDS)}")
        return
    if backend == "gcs" and _is_blank(os.getenv("GCS_BUCKET_NAME")):
        errors.append("GCS_BUCKET_NAME is required when ARCHIVE_BACKEND=gcs")


def _validate_positive_number(key: str, errors: List[str]) -> None:
    raw = os.getenv(key)
    if _is_blank(raw):
        return
    try:
        value = float(raw)
    except ValueError:
        errors.append(f"{key} must be a positive number")
        return
    if not math.isfinite(value) or value <= 0:
        errors.append(f"{key} must be a positive number")


def _validate_positive_int(key: str, errors: List[str]) -> None:
    raw = os.getenv(key)
    if _is_blank(raw):
        return
    try:
        value = int(raw)
    except ValueError:
        errors.append(f"{key} must be a positive integer")
        return
    if value <= 0:
        errors.append(f"{key} must be a positive integer")


def validate_startup_env() -> None:
    errors: List[str] = []
    warnings: List[str] = []

    _validate_http_url(os.getenv("BACKEND_GRAPHQL_URL"), "BACKEND_GRAPHQL_URL", errors)
    if _is_blank(os.getenv("OPENAI_API_KEY")):
        errors.append("OPENAI_API_KEY is required")

    if not _is_blank(os.getenv("TRANSCRIPTION_URL")):
        _validate_http_url(os.getenv("TRANSCRIPTION_URL"), "TRANSCRIPTION_URL", errors)
    if not _is_blank(os.getenv("NOTIFY_WEBHOOK_URL")):
        _validate_http_url(os.getenv("NOTIFY_WEBHOOK_URL"), "NOTIFY_WEBHOOK_URL", errors)

    _validate_archive_backend(errors)
    _validate_positive_number("STAGE_TIMEOUT_SEC", errors)
    _validate_positive_int("USAGE_TOKEN_LIMIT", errors)
    _validate_cors_allow_origins(os.getenv("CORS_ALLOW_ORIGINS"), errors, warnings)

    ffmpeg = os.getenv("FFMPEG_BINARY_PATH") or "ffmpeg"
    if not shutil.which(ffmpeg):
        warnings.append(f"ffmpeg binary not found ({ffmpeg}); /transcribe will fail at conversion")

    if errors:
        for err in errors:
            logger.error("startup_env_invalid %s", err)
        raise RuntimeError("Startup env validation failed: " + "; ".join(errors))

    for warning in warnings:
        logger.warning("startup_env_warning %s", warning)

    logger.info(
        "startup_env_validated keys=%s",
        ["BACKEND_GRAPHQL_URL", "OPENAI_API_KEY", "ARCHIVE_BACKEND", "CORS_ALLOW_ORIGINS"],
    )

import json
import logging
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger("api.stage")

_ERROR_EVENTS = {"FAILED"}
_WARN_EVENTS = {"REJECTED", "SKIPPED"}


def _norm(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        return value
    return str(value)


def log_stage(
    *,
    stage: str,
    event: str,
    request_id: str | None = None,
    upload_id: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    payload = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "stage": stage,
        "event": event.upper(),
    }

    if request_id:
        payload["request_id"] = request_id
    if upload_id:
        payload["upload_id"] = upload_id
    if error:
        payload["error"] = error

    for key, value in extra.items():
        norm = _norm(value)
        if norm is not None:
            payload[key] = norm

    msg = json.dumps(payload, ensure_ascii=False, default=str)
    if error or payload["event"] in _ERROR_EVENTS:
        logger.error("stage_event %s", msg)
    elif payload["event"] in _WARN_EVENTS:
        logger.warning("stage_event %s", msg)
    else:
        logger.info("stage_event %s", msg)

# User value: This file stops expensive transcriptions before they run when a caller is near their usage cap.
import logging
import math
from typing import Protocol

from schemas.pipeline import ClipRange, UsageSnapshot
from services.errors import QuotaExceeded

logger = logging.getLogger("api.quota")

# Pre-check only: a duration-based guess. Billing uses the word-count
# estimate in services.ledger; the two are intentionally not reconciled.
PRECHECK_TOKENS_PER_SECOND = 10


class UsageReader(Protocol):
    async def get_usage_count(self, token: str) -> int: ...


# User value: gives a deterministic cost guess from the requested window before any audio work.
def estimate_precheck_tokens(duration_sec: float) -> int:
    return math.ceil(duration_sec * PRECHECK_TOKENS_PER_SECOND)


# User value: rejects requests that would push the caller past their cap, so no upstream cost is incurred.
async def enforce_usage_quota(
    *,
    ledger: UsageReader,
    token: str,
    clip: ClipRange,
    usage_limit: int,
    request_id: str = "",
) -> UsageSnapshot:
    estimated_tokens = estimate_precheck_tokens(clip.duration)
    current_usage = await ledger.get_usage_count(token)

    snapshot = UsageSnapshot(
        current_usage=max(0, int(current_usage or 0)),
        estimated_tokens=estimated_tokens,
        limit=usage_limit,
    )

    if snapshot.exceeds_limit:
        logger.warning(
            "quota_check_rejected request_id=%s current_usage=%s estimated_tokens=%s limit=%s",
            request_id,
            snapshot.current_usage,
            snapshot.estimated_tokens,
            snapshot.limit,
        )
        raise QuotaExceeded(f"Projected usage {snapshot.projected_usage} exceeds limit {snapshot.limit}")

    logger.info(
        "quota_check_pass request_id=%s current_usage=%s estimated_tokens=%s limit=%s duration_sec=%s",
        request_id,
        snapshot.current_usage,
        snapshot.estimated_tokens,
        snapshot.limit,
        clip.duration,
    )
    return snapshot

# User value: This file turns the caller's mm:ss boundaries into seconds for quota and trimming.
from schemas.pipeline import ClipRange

DEFAULT_TIMESTAMP = "0:00"


# User value: reads a mm:ss value; malformed input becomes NaN so trimming is skipped instead of failing the request.
def timestamp_to_seconds(value: str) -> float:
    parts = str(value).split(":")
    if len(parts) != 2:
        return float("nan")
    try:
        minutes = int(parts[0].strip())
        seconds = int(parts[1].strip())
    except ValueError:
        return float("nan")
    return float(minutes * 60 + seconds)


# User value: builds the clip window with "0:00" defaults for absent fields.
def parse_clip_range(start_time: str | None, end_time: str | None) -> ClipRange:
    return ClipRange(
        start=timestamp_to_seconds(start_time or DEFAULT_TIMESTAMP),
        end=timestamp_to_seconds(end_time or DEFAULT_TIMESTAMP),
    )

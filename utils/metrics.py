# User value: This file keeps lightweight request/stage counters so operators can see how clip transcription behaves.
import threading
from typing import Any

_LOCK = threading.Lock()
_COUNTERS: dict[tuple, float] = {}
_LATENCIES: dict[tuple, dict] = {}


def _key(name: str, labels: dict[str, Any]) -> tuple:
    return (name, tuple(sorted((k, str(v)) for k, v in labels.items())))


# User value: counts events so failures and usage trends are visible without a metrics backend.
def incr(name: str, amount: float = 1, **labels: Any) -> None:
    key = _key(name, labels)
    with _LOCK:
        _COUNTERS[key] = _COUNTERS.get(key, 0) + amount


# User value: tracks latency so slow encodes or upstream calls are easy to spot.
def observe_ms(name: str, value_ms: float, **labels: Any) -> None:
    key = _key(name, labels)
    with _LOCK:
        bucket = _LATENCIES.setdefault(key, {"count": 0, "sum_ms": 0.0, "max_ms": 0.0})
        bucket["count"] += 1
        bucket["sum_ms"] += float(value_ms)
        bucket["max_ms"] = max(bucket["max_ms"], float(value_ms))


def snapshot() -> dict:
    with _LOCK:
        counters = [
            {"name": name, "labels": dict(labels), "value": value}
            for (name, labels), value in sorted(_COUNTERS.items())
        ]
        latencies = [
            {"name": name, "labels": dict(labels), **stats}
            for (name, labels), stats in sorted(_LATENCIES.items())
        ]
    return {"counters": counters, "latencies": latencies}


def get_counter(name: str, **labels: Any) -> float:
    with _LOCK:
        return _COUNTERS.get(_key(name, labels), 0)


def reset() -> None:
    with _LOCK:
        _COUNTERS.clear()
        _LATENCIES.clear()

"""ffmpeg-backed media transcoding for uploaded clips."""
import asyncio
import logging
import time
from pathlib import Path

from services.errors import ConversionFailure, PipelineError, SliceFailure
from utils.metrics import observe_ms

logger = logging.getLogger("api.transcoder")

MP3_CODEC = "libmp3lame"
_STDERR_TAIL_CHARS = 2000


def _format_seconds(value: float) -> str:
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return f"{value:.3f}"


def build_convert_command(ffmpeg_binary: str, source: Path, destination: Path) -> list[str]:
    # -vn: drop any video stream a browser recorder may have attached
    return [
        ffmpeg_binary,
        "-y",
        "-i", str(source),
        "-vn",
        "-acodec", MP3_CODEC,
        str(destination),
    ]


def build_slice_command(
    ffmpeg_binary: str,
    source: Path,
    destination: Path,
    *,
    start: float,
    duration: float,
) -> list[str]:
    return [
        ffmpeg_binary,
        "-y",
        "-ss", _format_seconds(start),
        "-i", str(source),
        "-t", _format_seconds(duration),
        "-acodec", MP3_CODEC,
        str(destination),
    ]


async def _terminate(process) -> None:
    if process.returncode is not None:
        return
    try:
        process.kill()
    except ProcessLookupError:
        pass
    await process.wait()


class FFmpegTranscoder:
    def __init__(self, *, ffmpeg_binary: str = "ffmpeg", timeout_sec: float | None = None):
        self.ffmpeg_binary = ffmpeg_binary
        self.timeout_sec = timeout_sec

    async def convert(self, source: Path, destination: Path) -> Path:
        cmd = build_convert_command(self.ffmpeg_binary, source, destination)
        await self._run(cmd, destination, operation="convert", failure=ConversionFailure)
        return destination

    async def slice(self, source: Path, destination: Path, *, start: float, duration: float) -> Path:
        cmd = build_slice_command(self.ffmpeg_binary, source, destination, start=start, duration=duration)
        await self._run(cmd, destination, operation="slice", failure=SliceFailure)
        return destination

    async def _run(
        self,
        cmd: list[str],
        destination: Path,
        *,
        operation: str,
        failure: type[PipelineError],
    ) -> None:
        logger.info("ffmpeg_%s_started cmd=%s", operation, " ".join(cmd))
        started = time.perf_counter()

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            logger.error("ffmpeg_%s_spawn_failed error=%s", operation, exc)
            raise failure(f"ffmpeg could not be started: {exc}") from exc

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout_sec)
        except asyncio.TimeoutError as exc:
            await _terminate(process)
            logger.error("ffmpeg_%s_timeout timeout_sec=%s", operation, self.timeout_sec)
            raise failure(f"ffmpeg {operation} timed out after {self.timeout_sec}s") from exc
        except BaseException:
            # Cancelled request: ffmpeg must not outlive it and rewrite released files.
            await _terminate(process)
            raise
        finally:
            observe_ms("ffmpeg_run_latency_ms", (time.perf_counter() - started) * 1000.0, operation=operation)

        if process.returncode != 0:
            error_msg = (stderr or b"").decode(errors="replace").strip()[-_STDERR_TAIL_CHARS:]
            logger.error("ffmpeg_%s_failed returncode=%s stderr=%s", operation, process.returncode, error_msg)
            raise failure(f"ffmpeg {operation} exited with {process.returncode}")

        if not destination.exists():
            logger.error("ffmpeg_%s_no_output destination=%s", operation, destination)
            raise failure(f"ffmpeg {operation} produced no output")

        logger.info("ffmpeg_%s_completed destination=%s", operation, destination)

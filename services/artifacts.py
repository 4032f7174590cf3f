"""Per-request temporary audio files.

``RequestArtifacts`` is an async context manager: every path is registered
before the file is written, and leaving the scope (normally or by exception)
archives the final upload, if one was selected, then deletes every
registered path. Release never raises.
"""
import asyncio
import logging
import os
import shutil
from pathlib import Path
from typing import BinaryIO

from services.archive import ArchiveStore
from utils.stage_logging import log_stage

logger = logging.getLogger("api.artifacts")

ARTIFACT_ORIGINAL = "original"
ARTIFACT_CONVERTED = "converted"
ARTIFACT_SLICED = "sliced"


def get_upload_size_bytes(file_obj) -> int:
    pos = file_obj.tell()
    file_obj.seek(0, os.SEEK_END)
    size = file_obj.tell()
    file_obj.seek(pos, os.SEEK_SET)
    return int(size)


class RequestArtifacts:
    def __init__(self, *, upload_id: str, upload_dir: Path, archive: ArchiveStore, request_id: str = ""):
        self.upload_id = upload_id
        self.upload_dir = Path(upload_dir)
        self.archive = archive
        self.request_id = request_id
        self.final_upload: Path | None = None
        self.archived_to: str | None = None
        self._paths = {
            ARTIFACT_ORIGINAL: self.upload_dir / upload_id,
            ARTIFACT_CONVERTED: self.upload_dir / f"{upload_id}.mp3",
            ARTIFACT_SLICED: self.upload_dir / f"{upload_id}-sliced.mp3",
        }
        self._acquired: dict[str, Path] = {}

    async def __aenter__(self) -> "RequestArtifacts":
        await asyncio.to_thread(self.upload_dir.mkdir, parents=True, exist_ok=True)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self.release()
        return False

    def path_for(self, kind: str) -> Path:
        return self._paths[kind]

    def acquire(self, kind: str) -> Path:
        path = self._paths[kind]
        self._acquired[kind] = path
        return path

    def is_acquired(self, kind: str) -> bool:
        return kind in self._acquired

    async def stage_original(self, file_obj: BinaryIO) -> Path:
        path = self.acquire(ARTIFACT_ORIGINAL)
        await asyncio.to_thread(self._write_stream, file_obj, path)
        return path

    @staticmethod
    def _write_stream(file_obj: BinaryIO, path: Path) -> None:
        file_obj.seek(0)
        with open(path, "wb") as fh:
            shutil.copyfileobj(file_obj, fh)

    def select_final_upload(self) -> Path:
        sliced = self._paths[ARTIFACT_SLICED]
        if self.is_acquired(ARTIFACT_SLICED) and sliced.exists():
            self.final_upload = sliced
        else:
            self.final_upload = self._paths[ARTIFACT_CONVERTED]
        return self.final_upload

    async def release(self) -> None:
        if self.final_upload is not None:
            await self._archive_final()

        acquired = list(self._acquired.items())
        self._acquired.clear()
        await asyncio.gather(*(self._delete(kind, path) for kind, path in acquired))

    async def _archive_final(self) -> None:
        try:
            self.archived_to = await self.archive.store(self.final_upload, upload_id=self.upload_id)
        except Exception as exc:
            log_stage(
                stage="ARTIFACT_ARCHIVE",
                event="FAILED",
                request_id=self.request_id,
                upload_id=self.upload_id,
                error=f"{exc.__class__.__name__}: {exc}",
            )
            return
        log_stage(
            stage="ARTIFACT_ARCHIVE",
            event="COMPLETED",
            request_id=self.request_id,
            upload_id=self.upload_id,
            archived_to=self.archived_to,
        )

    async def _delete(self, kind: str, path: Path) -> None:
        try:
            await asyncio.to_thread(os.remove, path)
        except FileNotFoundError:
            # Acquired but never written, e.g. the encoder failed before creating it.
            logger.info("artifact_absent kind=%s path=%s upload_id=%s", kind, path, self.upload_id)
        except OSError as exc:
            logger.error(
                "artifact_delete_failed kind=%s path=%s upload_id=%s error=%s",
                kind,
                path,
                self.upload_id,
                exc,
            )
        else:
            logger.info("artifact_deleted kind=%s path=%s upload_id=%s", kind, path, self.upload_id)

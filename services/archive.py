# User value: This file keeps a durable copy of exactly what was sent upstream so odd transcripts can be investigated.
import asyncio
import shutil
from pathlib import Path
from typing import Protocol

from config import PipelineConfig
from services import gcs


class ArchiveStore(Protocol):
    async def store(self, local_path: Path, *, upload_id: str) -> str: ...


def archive_name(upload_id: str) -> str:
    return f"{upload_id}.mp3"


class LocalArchiveStore:
    # User value: keeps debug copies on local disk, outliving the request's temp files.
    def __init__(self, debug_dir: Path):
        self.debug_dir = Path(debug_dir)

    async def store(self, local_path: Path, *, upload_id: str) -> str:
        destination = self.debug_dir / archive_name(upload_id)
        await asyncio.to_thread(self._copy, Path(local_path), destination)
        return str(destination)

    def _copy(self, source: Path, destination: Path) -> None:
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, destination)


class GcsArchiveStore:
    # User value: keeps debug copies in a bucket when the service runs on ephemeral disks.
    def __init__(self, *, bucket_name: str, prefix: str = "debug"):
        self.bucket_name = bucket_name
        self.prefix = prefix.strip("/")

    async def store(self, local_path: Path, *, upload_id: str) -> str:
        result = await asyncio.to_thread(
            gcs.upload_local_file,
            bucket_name=self.bucket_name,
            local_path=str(local_path),
            destination_path=f"{self.prefix}/{archive_name(upload_id)}",
        )
        return result["gcs_uri"]


# User value: picks the archive target from config so deployments choose disk or bucket without code changes.
def build_archive_store(config: PipelineConfig) -> ArchiveStore:
    if config.archive_backend == "gcs":
        return GcsArchiveStore(bucket_name=config.archive_gcs_bucket or "", prefix=config.archive_gcs_prefix)
    return LocalArchiveStore(config.debug_dir)

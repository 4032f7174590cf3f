import shutil

from fastapi import APIRouter

from config import resolve_ffmpeg_binary

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health():
    ffmpeg = resolve_ffmpeg_binary()
    return {
        "status": "OK",
        "ffmpeg": "available" if shutil.which(ffmpeg) else "missing",
    }

# User value: This endpoint turns a short recorded clip into text while keeping each caller inside their usage cap.
# routes/transcribe.py
from functools import lru_cache

from fastapi import APIRouter, Depends, Form, Header, Request

from config import load_pipeline_config
from schemas.responses import ErrorResponse, TranscribeResponse
from services.pipeline import TranscriptionPipeline, build_pipeline

router = APIRouter()


@lru_cache(maxsize=1)
def get_pipeline() -> TranscriptionPipeline:
    return build_pipeline(load_pipeline_config())


@router.post(
    "/transcribe",
    response_model=TranscribeResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def transcribe(
    request: Request,
    start_time: str | None = Form(default=None, alias="startTime"),
    end_time: str | None = Form(default=None, alias="endTime"),
    authorization: str | None = Header(default=None),
    pipeline: TranscriptionPipeline = Depends(get_pipeline),
):
    # "audio" is read from the parsed form rather than declared as File():
    # a text value there must fail as a missing file after the auth and
    # quota checks, not as a 422 before them.
    form = await request.form()
    result = await pipeline.run(
        authorization=authorization,
        audio=form.get("audio"),
        start_time=start_time,
        end_time=end_time,
    )
    return TranscribeResponse(transcript=result.text, estimatedTokens=result.token_estimate)

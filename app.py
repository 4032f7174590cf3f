# User value: This file wires the clip transcription service: logging, env checks, middleware, error bodies, routes.
# app.py
import os
import logging
import time

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from utils.json_logging import configure_json_logging
from utils.metrics import incr, observe_ms

# Load env before importing modules that read os.getenv at import time.
load_dotenv(os.path.join(os.path.dirname(__file__), ".env"))


# User value: prepares consistent structured logs before any request is served.
def configure_logging() -> None:
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    configure_json_logging(service="clip-transcribe-api", level=level)


configure_logging()
logger = logging.getLogger("api.error")
from startup_env import validate_startup_env
from utils.request_id import REQUEST_ID_HEADER, get_request_id, normalize_request_id, set_request_id

validate_startup_env()

from routes.transcribe import router as transcribe_router
from routes.health import router as health_router
from routes.metrics import router as metrics_router
from services.errors import PipelineError

app = FastAPI(title="Clip Transcribe API")


# User value: normalizes data so allowlists behave the same however they are written.
def _parse_csv_env(name: str) -> list[str]:
    raw = os.getenv(name, "")
    values = [x.strip() for x in raw.split(",") if x.strip()]
    seen = set()
    ordered = []
    for item in values:
        if item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered


@app.middleware("http")
# User value: tags every request with an id so one clip's logs can be followed end to end.
async def request_id_middleware(request: Request, call_next):
    request_id = normalize_request_id(request.headers.get(REQUEST_ID_HEADER))
    set_request_id(request_id)
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = int(getattr(response, "status_code", 500))
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
    finally:
        duration_ms = (time.perf_counter() - started) * 1000.0
        method = request.method.upper()
        # Route template, never the raw URL: unmatched paths must not mint new series.
        route = request.scope.get("route")
        path = getattr(route, "path", None) or "unmatched"
        status_class = f"{status_code // 100}xx"
        incr("api_http_requests_total", method=method, path=path, status_class=status_class, status_code=status_code)
        observe_ms("api_http_request_latency_ms", duration_ms, method=method, path=path, status_class=status_class)
        set_request_id(None)


# User value: keeps error text readable whatever shape the raised detail has.
def _extract_error_message(detail) -> str:
    if isinstance(detail, dict):
        return str(detail.get("error") or detail.get("message") or detail.get("detail") or detail)
    if isinstance(detail, list):
        return "; ".join(str(x) for x in detail)
    return str(detail)


@app.exception_handler(PipelineError)
# User value: returns the documented status and body for each pipeline failure, with no internal detail.
async def pipeline_exception_handler(request: Request, exc: PipelineError):
    request_id = get_request_id() or normalize_request_id(request.headers.get(REQUEST_ID_HEADER))
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "request_failed status=%s path=%s request_id=%s error_code=%s error=%s",
        exc.status_code,
        request.url.path,
        request_id,
        exc.error_code,
        exc,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
# User value: malformed requests get a short JSON error instead of a framework dump.
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(
        "request_failed_validation status=422 path=%s request_id=%s errors=%s",
        request.url.path,
        get_request_id(),
        exc.errors(),
    )
    return JSONResponse(status_code=422, content={"error": "Request validation failed"})


@app.exception_handler(StarletteHTTPException)
# User value: routing errors (404/405) use the same {"error": ...} shape as pipeline errors.
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = _extract_error_message(exc.detail)
    logger.warning(
        "request_failed status=%s path=%s request_id=%s error=%s",
        exc.status_code,
        request.url.path,
        get_request_id(),
        message,
    )
    return JSONResponse(status_code=exc.status_code, content={"error": message})


@app.exception_handler(Exception)
# User value: any unexpected failure still yields a JSON error, never a stack trace.
async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = get_request_id() or normalize_request_id(request.headers.get(REQUEST_ID_HEADER))
    logger.exception(
        "request_failed_unhandled path=%s request_id=%s error=%s: %s",
        request.url.path,
        request_id,
        exc.__class__.__name__,
        exc,
    )
    return JSONResponse(status_code=500, content={"error": "Internal server error."})


CORS_ALLOW_ORIGINS = _parse_csv_env("CORS_ALLOW_ORIGINS")
CORS_ALLOW_ORIGIN_REGEX = (os.getenv("CORS_ALLOW_ORIGIN_REGEX") or "").strip() or None
logger.info(
    "cors_configured allow_origins=%s allow_origin_regex=%s",
    CORS_ALLOW_ORIGINS,
    CORS_ALLOW_ORIGIN_REGEX or "",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_origin_regex=CORS_ALLOW_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[REQUEST_ID_HEADER],
)

app.include_router(health_router)
app.include_router(metrics_router)
app.include_router(transcribe_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "3000")))

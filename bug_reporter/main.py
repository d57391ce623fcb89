# bug_reporter/main.py
import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from bug_reporter.batch import GENERIC_FAILURE_MESSAGE
from bug_reporter.errors import (
    BatchGenerationError,
    InputValidationError,
    InvalidResponseFormat,
    LLMConnectionError,
)
from bug_reporter.metrics import REGISTRY
from bug_reporter.routes import routers

# ----------------------------------------------------------------------
# Logger configuration
# ----------------------------------------------------------------------
logger = logging.getLogger("bug-report-generator")
logger.setLevel(logging.INFO)
handler = logging.StreamHandler()
formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
handler.setFormatter(formatter)

if not logger.handlers:
    logger.addHandler(handler)
else:
    for h in logger.handlers:
        h.setFormatter(formatter)

# ----------------------------------------------------------------------
# FastAPI app + CORS
# ----------------------------------------------------------------------
app = FastAPI(title="AI Bug Report Generator")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ----------------------------------------------------------------------
# Routers (single source of truth: bug_reporter/routes/__init__.py)
# ----------------------------------------------------------------------
for r in routers:
    app.include_router(r)

# ----------------------------------------------------------------------
# Metrics
# ----------------------------------------------------------------------
app.mount("/metrics", make_asgi_app(registry=REGISTRY))

# ----------------------------------------------------------------------
# Exception handlers
# Upstream details are logged, never returned: callers get a generic message.
# ----------------------------------------------------------------------
@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled exception on {request.url.path}: {exc}\n{traceback.format_exc()}"
    )
    detail = str(exc) if app.debug else "Internal server error"
    return JSONResponse(
        status_code=500,
        content={"error": "internal_server_error", "detail": detail},
    )


@app.exception_handler(InputValidationError)
async def validation_error_handler(request: Request, exc: InputValidationError):
    logger.info(f"Rejected input on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=400,
        content={"error": "validation_error", "detail": str(exc)},
    )


@app.exception_handler(BatchGenerationError)
async def batch_error_handler(request: Request, exc: BatchGenerationError):
    logger.error(f"Batch failed on {request.url.path} (bug #{exc.bug_id}): {exc.cause!r}")
    return JSONResponse(
        status_code=502,
        content={"error": "generation_failed", "detail": GENERIC_FAILURE_MESSAGE},
    )


@app.exception_handler(InvalidResponseFormat)
async def invalid_response_handler(request: Request, exc: InvalidResponseFormat):
    logger.error(f"Invalid LLM response on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=502,
        content={"error": "invalid_response_format", "detail": GENERIC_FAILURE_MESSAGE},
    )


@app.exception_handler(LLMConnectionError)
async def llm_error_handler(request: Request, exc: LLMConnectionError):
    logger.error(f"LLM error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=502,
        content={"error": "llm_unavailable", "detail": GENERIC_FAILURE_MESSAGE},
    )

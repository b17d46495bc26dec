"""
FastAPI Application Entry Point
Bundle Builder - pricing preview API
"""
from fastapi import FastAPI, Request, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse
import os
from dotenv import load_dotenv
import logging
import json
import sys
import time
import uuid as _uuid
from typing import Callable

# Load environment variables before settings are read
load_dotenv()

from settings import LOG_LEVEL, cors_origins  # noqa: E402
from routers import bundle_builder  # noqa: E402


# ---- Logging setup (JSON; good for Cloud Run) ----
class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "severity": record.levelname,
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S%z"),
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Include traceback if present
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


handler = logging.StreamHandler(sys.stdout)
handler.setFormatter(JsonFormatter())

root = logging.getLogger()
root.handlers = [handler]
root.setLevel(LOG_LEVEL)

logging.getLogger("uvicorn.access").setLevel(logging.INFO)
logging.getLogger("uvicorn.error").setLevel(logging.INFO)
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Bundle Builder API",
    description="Live pricing and validation for shopper-built bundles",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---- Request/Response logging middleware ----
class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable):
        request_id = request.headers.get("X-Request-Id") or str(_uuid.uuid4())
        start = time.time()

        # Attach request_id so handlers can use it
        request.state.request_id = request_id

        logger.info(
            f"REQ {request.method} {request.url.path} "
            f"ip={request.client.host if request.client else '-'} rid={request_id}"
        )
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"Uncaught exception in request pipeline rid={request_id}")
            raise

        dur_ms = int((time.time() - start) * 1000)
        logger.info(
            f"RES {request.method} {request.url.path} "
            f"status={response.status_code} durMs={dur_ms} rid={request_id}"
        )
        # Make request id visible to clients
        response.headers["X-Request-Id"] = request_id
        return response


app.add_middleware(RequestIDMiddleware)


@app.get("/")
async def root_info():
    return {"ok": True, "service": "bundle-builder"}


@app.get("/healthz")
async def healthz():
    """Basic health check for load balancers."""
    return {"ok": True}


# --- Error handlers ---
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation error: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors()), "error": "Validation failed"})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


# --- Routers ---
app.include_router(bundle_builder.router, prefix="/api", tags=["bundle-builder"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8080)),
        reload=os.getenv("NODE_ENV") != "production"
    )

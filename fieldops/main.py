"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from fieldops import __version__
from fieldops.api.router import api_router
from fieldops.config import get_settings
from fieldops.db.engine import create_all, engine
from fieldops.errors import FieldOpsError

logger = logging.getLogger(__name__)

_HTTP_CODES = {401: "UNAUTHORIZED", 403: "FORBIDDEN", 404: "NOT_FOUND", 405: "METHOD_NOT_ALLOWED"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(
        level=settings.logging.level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    await create_all()
    yield
    await engine.dispose()


app = FastAPI(
    title="FieldOps Dispatch",
    description="Technician assignment, scheduling validation and dispatch lifecycle tracking.",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(api_router)


def _failure(status_code: int, error: dict) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


@app.exception_handler(FieldOpsError)
async def fieldops_error_handler(request: Request, exc: FieldOpsError):
    logger.info("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _failure(exc.status_code, exc.to_error())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return _failure(400, {"code": "VALIDATION_ERROR", "message": details or "Invalid request"})


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    code = _HTTP_CODES.get(exc.status_code, "HTTP_ERROR")
    return _failure(exc.status_code, {"code": code, "message": str(exc.detail)})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _failure(500, {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred"})


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}

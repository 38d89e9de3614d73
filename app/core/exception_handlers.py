import logging
import traceback
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException

from app.core.exceptions import CanteenError, VerificationFailed
from app.schemas.response import ErrorDetail, ErrorResponse

log = logging.getLogger("uvicorn")
security_log = logging.getLogger("payment.security")


def _error_body(code: str, message, details=None):
    return ErrorResponse(error=ErrorDetail(code=code, message=message, details=details)).model_dump(exclude_none=True)


# ----------- Exception Handlers (called by FastAPI) -----------

def canteen_exception_handler(request: Request, exc: CanteenError):
    """Maps expected business outcomes (stock races, bad transitions...) to their status."""
    if isinstance(exc, VerificationFailed):
        security_log.warning(f"Verification failure on path: {request.url.path}")
    else:
        log.info(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.code, exc.message))


def http_exception_handler(request: Request, exc: HTTPException):
    """Handles HTTPException from routes and dependencies, and Starlette's own 404/405."""
    return JSONResponse(status_code=exc.status_code, content=_error_body("http_error", exc.detail))


def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handles Pydantic validation errors (422 Unprocessable Entity)."""
    body = _error_body("validation_error", "Invalid input data", details=jsonable_errors(exc))
    return JSONResponse(status_code=422, content=body)


def jsonable_errors(exc: RequestValidationError):
    # ctx may hold exception instances that JSON cannot encode
    return [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]


def generic_exception_handler(request: Request, exc: Exception):
    """Handles all unhandled exceptions (500 Internal Server Error)."""
    log.error(f"Unhandled exception on path: {request.url.path}\n{traceback.format_exc()}")
    return JSONResponse(status_code=500, content=_error_body("server_error", "Internal Server Error"))


# ----------- Registration Function -----------

def setup_exception_handlers(app: FastAPI):
    """Registers all custom exception handlers with the FastAPI application."""
    app.add_exception_handler(CanteenError, canteen_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    return app

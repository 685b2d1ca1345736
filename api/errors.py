"""
api/errors.py -- Single boundary where every failure becomes an HTTP response.

Pattern: Normalizer + Serializer. normalize() classifies any exception into
a StructuredError from core.errors; serialize() renders that error for the
current mode; register_exception_handlers() routes every exception type the
app can raise through one handler so there is exactly one place that writes
error bodies.

Classification rules:
  StructuredError                 -> itself
  RequestValidationError (body)   -> BAD_REQUEST, one detail per field
  pydantic.ValidationError        -> VALIDATION_FAILURE, one detail per field
                                     (storage schema, see auth/store.py)
  CastError (bad identifier)      -> BAD_REQUEST
  IntegrityError, unique          -> CONFLICT with field and value
  IntegrityError, not null        -> VALIDATION_FAILURE with field
  jose ExpiredSignatureError      -> UNAUTHORIZED ("token expired")
  jose JWTError                   -> UNAUTHORIZED ("token malformed ...")
  Starlette HTTPException         -> kind with the same status
  anything else                   -> INTERNAL_ERROR (non-operational)

Serialization:
  development (DEBUG=true): {status, message, errorType, details, reason,
      stack, timestamp} for every error, operational or not.
  otherwise, operational: {status, message, errorType, details, timestamp}.
  otherwise, non-operational: full traceback to the log, and the client
      gets {status: "error", message: "Something went wrong!", timestamp}
      with 500. Nothing from the original failure leaks.

status is "fail" for 4xx and "error" for 5xx. details is always a list,
empty when there is nothing field-specific. Detail values are scrubbed:
password fields and non-scalar values are never echoed back.
"""

from __future__ import annotations

import logging
import re
import traceback
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from jose import ExpiredSignatureError, JWTError
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth.store import COLUMN_FIELDS, CastError
from core.errors import ErrorDetail, ErrorKind, StructuredError

logger = logging.getLogger("ridehail.errors")

MASKED_MESSAGE = "Something went wrong!"
INVALID_PAYLOAD_MESSAGE = "Invalid request payload. Kindly specify all required fields."

_SCALARS = (str, int, float, bool)

# SQLite: "UNIQUE constraint failed: users.email"
# PostgreSQL: 'duplicate key value ... DETAIL:  Key (email)=(a@b.com) already exists.'
_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: \w+\.(\w+)")
_PG_UNIQUE = re.compile(r"Key \((\w+)\)=\((.*?)\) already exists")
_SQLITE_NOT_NULL = re.compile(r"NOT NULL constraint failed: \w+\.(\w+)")
_PG_NOT_NULL = re.compile(r'null value in column "(\w+)"')


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def normalize(exc: BaseException) -> StructuredError:
    """Classify any exception into the fixed taxonomy."""
    if isinstance(exc, StructuredError):
        return exc

    if isinstance(exc, RequestValidationError):
        error = StructuredError(ErrorKind.BAD_REQUEST, INVALID_PAYLOAD_MESSAGE, details=_pydantic_details(exc.errors()))
    elif isinstance(exc, ValidationError):
        error = StructuredError(ErrorKind.VALIDATION_FAILURE, details=_pydantic_details(exc.errors()))
    elif isinstance(exc, CastError):
        error = StructuredError(ErrorKind.BAD_REQUEST, f"Invalid {exc.path}: {_scrub(exc.path, exc.value)}")
    elif isinstance(exc, IntegrityError):
        error = _from_integrity_error(exc)
    elif isinstance(exc, ExpiredSignatureError):
        error = StructuredError(ErrorKind.UNAUTHORIZED, reason="token expired")
    elif isinstance(exc, JWTError):
        error = StructuredError(ErrorKind.UNAUTHORIZED, reason="token malformed or signature invalid")
    elif isinstance(exc, StarletteHTTPException):
        kind = ErrorKind.for_status(exc.status_code)
        message = exc.detail if isinstance(exc.detail, str) and kind.operational else None
        error = StructuredError(kind, message)
    else:
        error = StructuredError(ErrorKind.INTERNAL_ERROR, str(exc) or "Internal Server Error")

    error.__cause__ = exc
    return error


def _from_integrity_error(exc: IntegrityError) -> StructuredError:
    text = str(exc.orig) if exc.orig is not None else str(exc)
    params = exc.params if isinstance(exc.params, dict) else {}

    match = _SQLITE_UNIQUE.search(text) or _PG_UNIQUE.search(text)
    if match:
        column = match.group(1)
        value = match.group(2) if match.lastindex and match.lastindex >= 2 else params.get(column)
        field = COLUMN_FIELDS.get(column, column)
        value = _scrub(field, value)
        return StructuredError(
            ErrorKind.CONFLICT,
            f"Duplicate field value: {field} = {value}. Please use another value!",
            details=[ErrorDetail(field=field, message=f"{value} already exists", value=value)],
        )

    match = _SQLITE_NOT_NULL.search(text) or _PG_NOT_NULL.search(text)
    if match:
        field = COLUMN_FIELDS.get(match.group(1), match.group(1))
        return StructuredError(
            ErrorKind.VALIDATION_FAILURE,
            details=[ErrorDetail(field=field, message=f"{field} is required")],
        )

    return StructuredError(ErrorKind.INTERNAL_ERROR, text)


def _pydantic_details(errors) -> list[ErrorDetail]:
    """One ErrorDetail per pydantic error, every field at once."""
    details = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or None
        value = None if err.get("type") == "missing" else err.get("input")
        details.append(ErrorDetail(field=field, message=err.get("msg", "Invalid value"), value=_scrub(field, value)))
    return details


def _scrub(field: str | None, value: object) -> object:
    """Drop values that could carry secrets or internal structure."""
    if field and "password" in field.lower():
        return None
    if value is None or isinstance(value, _SCALARS):
        return value
    return None


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _stack(error: StructuredError) -> str:
    origin = error.__cause__ or error
    return "".join(traceback.format_exception(type(origin), origin, origin.__traceback__))


def serialize(error: StructuredError, development: bool) -> tuple[int, dict]:
    """Return (status_code, body) for error in the given mode."""
    if not development and not error.operational:
        return ErrorKind.INTERNAL_ERROR.status, {
            "status": "error",
            "message": MASKED_MESSAGE,
            "timestamp": _timestamp(),
        }

    body: dict = {
        "status": "fail" if 400 <= error.status < 500 else "error",
        "message": error.message,
        "errorType": error.kind.error_type,
        "details": [d.to_dict() for d in error.details],
    }
    if development:
        if error.reason:
            body["reason"] = error.reason
        body["stack"] = _stack(error)
    body["timestamp"] = _timestamp()
    return error.status, body


# ---------------------------------------------------------------------------
# FastAPI wiring
# ---------------------------------------------------------------------------


async def handle_error(request: Request, exc: Exception) -> JSONResponse:
    """The one exception handler: normalize, log, serialize."""
    if isinstance(exc, StarletteHTTPException) and exc.status_code == 404 and exc.detail == "Not Found":
        error = StructuredError(ErrorKind.NOT_FOUND, f"Can't find {request.url.path} on this server!")
    else:
        error = normalize(exc)

    if error.operational:
        logger.warning(
            "%s %s -> %d %s%s",
            request.method,
            request.url.path,
            error.status,
            error.message,
            f" ({error.reason})" if error.reason else "",
        )
    else:
        logger.error(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
            exc_info=(type(exc), exc, exc.__traceback__),
        )

    development = bool(getattr(request.app.state.settings, "debug", False))
    status_code, body = serialize(error, development)
    return JSONResponse(status_code=status_code, content=body)


_HANDLED_TYPES: tuple[type[Exception], ...] = (
    StructuredError,
    RequestValidationError,
    ValidationError,
    CastError,
    IntegrityError,
    JWTError,
    StarletteHTTPException,
)


def register_exception_handlers(app: FastAPI) -> None:
    """Route every exception type through handle_error.

    Known types are registered individually so Starlette's ExceptionMiddleware
    handles them; the Exception catch-all is served by ServerErrorMiddleware,
    which also re-raises after responding so the server logs it.
    """
    for exc_type in _HANDLED_TYPES:
        app.add_exception_handler(exc_type, handle_error)
    app.add_exception_handler(Exception, handle_error)

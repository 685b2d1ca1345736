"""
api/responses.py -- Uniform success envelope.

Every successful response body has the shape

    {"success": true, "message"?: str, "data"?: any, "meta": {"timestamp": str}}

message and data are omitted when not given. Note that the error envelope
(api/errors.py) uses "status" where this one uses "success"; clients depend
on both shapes as they are, so they are kept apart.

no_content() answers 204 but still writes the JSON envelope. HTTP clients
and proxies may drop a 204 body; callers that need the message should not
rely on it arriving.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi.responses import JSONResponse

DEFAULT_CREATED_MESSAGE = "Resource created successfully"
DEFAULT_NO_CONTENT_MESSAGE = "No content"


def _envelope(data: Any = None, message: str | None = None) -> dict:
    body: dict = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body["meta"] = {"timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")}
    return body


def ok(data: Any = None, message: str | None = None) -> JSONResponse:
    return JSONResponse(status_code=200, content=_envelope(data, message))


def created(data: Any = None, message: str | None = None) -> JSONResponse:
    return JSONResponse(status_code=201, content=_envelope(data, message or DEFAULT_CREATED_MESSAGE))


def no_content(message: str | None = None) -> JSONResponse:
    return JSONResponse(status_code=204, content=_envelope(message=message or DEFAULT_NO_CONTENT_MESSAGE))

"""Tests for core/errors.py and api/errors.py -- taxonomy, normalizer, serializer.

Covers:
- every ErrorKind has a fixed status and operational flag
- normalize() classifies library exceptions into the taxonomy
- serialize() in production: operational errors verbatim, internal errors masked
- serialize() in development: stack and reason added for every error
- password fields and non-scalar values never appear in details
- an unhandled exception inside a route is masked end to end
"""

from __future__ import annotations

from typing import Optional

import pytest
from fastapi.exceptions import RequestValidationError
from jose import ExpiredSignatureError, JWTError
from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.errors import INVALID_PAYLOAD_MESSAGE, MASKED_MESSAGE, normalize, serialize
from api.main import create_app
from auth.store import CastError
from conftest import TEST_SECRET, make_client
from core.config import Settings
from core.errors import ErrorDetail, ErrorKind, StructuredError


class _Sample(BaseModel):
    name: str = Field(min_length=3)
    password: str = Field(min_length=8)
    tags: Optional[list[str]] = None


def _validation_error(**data) -> ValidationError:
    try:
        _Sample.model_validate(data)
    except ValidationError as exc:
        return exc
    raise AssertionError("expected a ValidationError")


class TestErrorKind:
    @pytest.mark.parametrize(
        "kind,status,operational",
        [
            (ErrorKind.BAD_REQUEST, 400, True),
            (ErrorKind.UNAUTHORIZED, 401, True),
            (ErrorKind.FORBIDDEN, 403, True),
            (ErrorKind.NOT_FOUND, 404, True),
            (ErrorKind.CONFLICT, 409, True),
            (ErrorKind.VALIDATION_FAILURE, 422, True),
            (ErrorKind.INTERNAL_ERROR, 500, False),
            (ErrorKind.NOT_IMPLEMENTED, 501, True),
            (ErrorKind.UNAVAILABLE, 503, True),
        ],
    )
    def test_status_and_operational(self, kind: ErrorKind, status: int, operational: bool) -> None:
        assert kind.status == status
        assert kind.operational is operational

    def test_error_type_is_reason_phrase(self) -> None:
        assert ErrorKind.VALIDATION_FAILURE.error_type == "Unprocessable Entity"

    def test_for_status_falls_back(self) -> None:
        assert ErrorKind.for_status(409) is ErrorKind.CONFLICT
        assert ErrorKind.for_status(418) is ErrorKind.BAD_REQUEST
        assert ErrorKind.for_status(502) is ErrorKind.INTERNAL_ERROR

    def test_default_message(self) -> None:
        assert StructuredError(ErrorKind.UNAUTHORIZED).message == "Unauthorized access"


class TestNormalize:
    def test_structured_error_passes_through(self) -> None:
        err = StructuredError(ErrorKind.CONFLICT, "taken")
        assert normalize(err) is err

    def test_request_validation_is_bad_request(self) -> None:
        exc = RequestValidationError(
            [
                {"type": "missing", "loc": ("body", "email"), "msg": "Field required", "input": {}},
                {"type": "string_too_short", "loc": ("body", "fullName", "firstName"), "msg": "too short", "input": "Al"},
            ]
        )
        err = normalize(exc)
        assert err.kind is ErrorKind.BAD_REQUEST
        assert err.message == INVALID_PAYLOAD_MESSAGE
        assert [d.field for d in err.details] == ["email", "fullName.firstName"]
        assert err.details[0].value is None
        assert err.details[1].value == "Al"

    def test_pydantic_validation_lists_every_field(self) -> None:
        err = normalize(_validation_error(name="Al", password="short"))
        assert err.kind is ErrorKind.VALIDATION_FAILURE
        assert {d.field for d in err.details} == {"name", "password"}

    def test_password_value_is_scrubbed(self) -> None:
        err = normalize(_validation_error(name="Alice", password="short"))
        (detail,) = err.details
        assert detail.field == "password"
        assert detail.value is None

    def test_non_scalar_value_is_scrubbed(self) -> None:
        err = normalize(_validation_error(name="Alice", password="longenough", tags={"a": 1}))
        assert all(d.value is None for d in err.details)

    def test_cast_error_is_bad_request(self) -> None:
        err = normalize(CastError("id", "xyz"))
        assert err.kind is ErrorKind.BAD_REQUEST
        assert err.message == "Invalid id: xyz"

    def test_unique_violation_is_conflict(self) -> None:
        exc = IntegrityError("INSERT", {"email": "a@b.com"}, Exception("UNIQUE constraint failed: users.email"))
        err = normalize(exc)
        assert err.kind is ErrorKind.CONFLICT
        assert err.message == "Duplicate field value: email = a@b.com. Please use another value!"
        assert err.details == [ErrorDetail(field="email", message="a@b.com already exists", value="a@b.com")]

    def test_postgres_unique_violation_is_conflict(self) -> None:
        orig = Exception('duplicate key value violates unique constraint\nDETAIL:  Key (email)=(a@b.com) already exists.')
        err = normalize(IntegrityError("INSERT", {}, orig))
        assert err.kind is ErrorKind.CONFLICT
        assert err.details[0].value == "a@b.com"

    def test_not_null_violation_is_validation_failure(self) -> None:
        exc = IntegrityError("INSERT", {}, Exception("NOT NULL constraint failed: captains.vehicle_type"))
        err = normalize(exc)
        assert err.kind is ErrorKind.VALIDATION_FAILURE
        assert err.details[0].field == "vehicle.type"

    def test_jose_errors_are_unauthorized(self) -> None:
        assert normalize(ExpiredSignatureError("exp")).reason == "token expired"
        err = normalize(JWTError("bad"))
        assert err.kind is ErrorKind.UNAUTHORIZED
        assert err.message == "Unauthorized access"

    def test_http_exception_keeps_status(self) -> None:
        err = normalize(StarletteHTTPException(status_code=403, detail="nope"))
        assert err.kind is ErrorKind.FORBIDDEN
        assert err.message == "nope"

    def test_unknown_exception_is_internal(self) -> None:
        err = normalize(RuntimeError("db password is hunter2"))
        assert err.kind is ErrorKind.INTERNAL_ERROR
        assert not err.operational
        assert isinstance(err.__cause__, RuntimeError)


class TestSerialize:
    def test_operational_in_production(self) -> None:
        err = StructuredError(
            ErrorKind.CONFLICT,
            "User already exists",
            details=[ErrorDetail(field="email", message="taken", value="a@b.com")],
            reason="pre-check",
        )
        status, body = serialize(err, development=False)
        assert status == 409
        assert body["status"] == "fail"
        assert body["message"] == "User already exists"
        assert body["errorType"] == "Conflict"
        assert body["details"] == [{"field": "email", "message": "taken", "value": "a@b.com"}]
        assert "timestamp" in body
        assert "stack" not in body
        assert "reason" not in body

    def test_internal_is_masked_in_production(self) -> None:
        status, body = serialize(normalize(RuntimeError("secret detail")), development=False)
        assert status == 500
        assert set(body) == {"status", "message", "timestamp"}
        assert body["status"] == "error"
        assert body["message"] == MASKED_MESSAGE

    def test_development_adds_stack_and_reason(self) -> None:
        err = StructuredError(ErrorKind.UNAUTHORIZED, reason="token expired")
        status, body = serialize(err, development=True)
        assert status == 401
        assert body["reason"] == "token expired"
        assert "stack" in body

    def test_development_shows_internal_errors(self) -> None:
        status, body = serialize(normalize(RuntimeError("boom")), development=True)
        assert status == 500
        assert body["status"] == "error"
        assert body["message"] == "boom"
        assert "RuntimeError" in body["stack"]

    def test_details_present_when_empty(self) -> None:
        _, body = serialize(StructuredError(ErrorKind.NOT_FOUND), development=False)
        assert body["details"] == []


def _exploding_client(debug: bool):
    app = create_app(Settings(_env_file=None, secret_key=TEST_SECRET, bcrypt_rounds=4, debug=debug))

    @app.get("/explode")
    def explode():
        raise RuntimeError("connection string postgres://admin:hunter2@db")

    return make_client(raise_server_exceptions=False, app=app)


class TestUnhandledExceptionEndToEnd:
    def test_masked_in_production(self) -> None:
        with _exploding_client(debug=False) as client:
            resp = client.get("/explode")
        assert resp.status_code == 500
        body = resp.json()
        assert body["message"] == MASKED_MESSAGE
        assert "hunter2" not in resp.text

    def test_detailed_in_development(self) -> None:
        with _exploding_client(debug=True) as client:
            resp = client.get("/explode")
        assert resp.status_code == 500
        body = resp.json()
        assert "hunter2" in body["message"]
        assert "stack" in body

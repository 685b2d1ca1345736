"""Unit tests for api/responses.py -- success envelope."""

from __future__ import annotations

import json

from api.responses import created, no_content, ok


def _body(resp) -> dict:
    return json.loads(resp.body)


def test_ok_with_data_and_message() -> None:
    resp = ok({"id": "1"}, "Fetched")
    body = _body(resp)
    assert resp.status_code == 200
    assert body["success"] is True
    assert body["message"] == "Fetched"
    assert body["data"] == {"id": "1"}
    assert body["meta"]["timestamp"].endswith("Z")


def test_ok_omits_absent_fields() -> None:
    body = _body(ok())
    assert set(body) == {"success", "meta"}


def test_created_default_message() -> None:
    resp = created({"id": "1"})
    assert resp.status_code == 201
    assert _body(resp)["message"] == "Resource created successfully"


def test_created_custom_message() -> None:
    assert _body(created(message="User created successfully"))["message"] == "User created successfully"


def test_no_content_still_writes_envelope() -> None:
    resp = no_content()
    assert resp.status_code == 204
    body = _body(resp)
    assert body["message"] == "No content"
    assert "data" not in body

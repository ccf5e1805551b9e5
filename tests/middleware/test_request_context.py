"""Tests for the request context middleware.

Every response gets an X-Request-ID header (generated or echoed from
the request), and every request is logged once with its timing.
"""

from __future__ import annotations

import logging
import uuid

import pytest
from fastapi.testclient import TestClient


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    resp = client.get("/health")
    req_id = resp.headers.get("x-request-id")
    assert req_id is not None
    uuid.UUID(req_id)  # raises ValueError if invalid


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    custom_id = "my-custom-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": custom_id})
    assert resp.headers.get("x-request-id") == custom_id


def test_request_id_present_on_error_responses(client: TestClient) -> None:
    resp = client.get("/api/students/search")  # no q → 400
    assert resp.status_code == 400
    assert resp.headers.get("x-request-id") is not None


def test_each_request_gets_its_own_id(client: TestClient) -> None:
    first = client.get("/health").headers["x-request-id"]
    second = client.get("/health").headers["x-request-id"]
    assert first != second


def test_request_summary_logged(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.INFO, logger="teachme.middleware.request_context"):
        client.get("/health", headers={"X-Request-ID": "req-log"})
    records = [r for r in caplog.records if getattr(r, "request_id", None) == "req-log"]
    assert records
    assert records[-1].path == "/health"  # type: ignore[attr-defined]
    assert records[-1].status_code == 200  # type: ignore[attr-defined]


@pytest.mark.parametrize(
    "sent",
    ["x" * 129, "has spaces", "semi;colon", "path/like"],
)
def test_malformed_request_id_replaced(client: TestClient, sent: str) -> None:
    resp = client.get("/health", headers={"X-Request-ID": sent})
    echoed = resp.headers["x-request-id"]
    assert echoed != sent
    uuid.UUID(echoed)


def test_request_id_at_column_width_accepted(client: TestClient) -> None:
    sent = "a" * 128
    resp = client.get("/health", headers={"X-Request-ID": sent})
    assert resp.headers["x-request-id"] == sent

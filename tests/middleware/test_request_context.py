"""Tests for the request context middleware."""

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


def test_malformed_request_id_replaced(client: TestClient) -> None:
    """Ids that could forge log lines are swapped for a fresh UUID."""
    resp = client.get("/health", headers={"X-Request-ID": "abc def\tinjected"})
    req_id = resp.headers.get("x-request-id")
    assert req_id != "abc def\tinjected"
    uuid.UUID(req_id)


def test_request_id_present_on_error_responses(client: TestClient) -> None:
    resp = client.get("/v1/enrollments/00000000-0000-0000-0000-000000000001/progress")
    assert resp.status_code == 404
    assert resp.headers.get("x-request-id") is not None


def test_request_id_attached_to_domain_logs(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.INFO)
    client.post(
        "/v1/courses",
        json={"slug": "logged", "title": "Logged"},
        headers={"X-Request-ID": "req-course-1"},
    )
    created = [r for r in caplog.records if r.getMessage().startswith("Created course")]
    assert created
    assert created[0].request_id == "req-course-1"  # type: ignore[attr-defined]

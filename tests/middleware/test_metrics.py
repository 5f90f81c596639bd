"""Tests for Prometheus metrics middleware and the access-engine counters.

The default registry is global and counters cannot be reset, so every
assertion is on a delta: read before, act, read after.
"""

from __future__ import annotations

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from access_gate.models.resources import LessonPlanExport
from access_gate.repos.access_record_repo import InMemoryAccessRecordRepo
from access_gate.services.identity_provider import InMemoryIdentityProvider
from tests.conftest import mint_token


def _get_sample(name: str, labels: dict | None = None) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def test_request_counter_increments(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/health")
    assert _get_sample("http_requests_total", labels) - before >= 1


def test_request_duration_histogram_observes(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health"}
    before = _get_sample("http_request_duration_seconds_count", labels)
    client.get("/health")
    assert _get_sample("http_request_duration_seconds_count", labels) - before >= 1


def test_endpoint_label_uses_route_template(
    client: TestClient, identity: InMemoryIdentityProvider
) -> None:
    labels = {
        "method": "GET",
        "endpoint": "/resources/{resource_id}/download",
        "status_code": "404",
    }
    before = _get_sample("http_requests_total", labels)
    client.get(
        "/resources/abc/download",
        headers={"Authorization": f"Bearer {mint_token(identity)}"},
    )
    assert _get_sample("http_requests_total", labels) - before == 1


def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    client.get("/health")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
    assert "access_decisions_total" in resp.text


def test_metrics_endpoint_not_self_instrumented(client: TestClient) -> None:
    before = _get_sample(
        "http_requests_total",
        {"method": "GET", "endpoint": "/metrics", "status_code": "200"},
    )
    client.get("/metrics")
    client.get("/metrics")
    after = _get_sample(
        "http_requests_total",
        {"method": "GET", "endpoint": "/metrics", "status_code": "200"},
    )
    assert after == before


def test_access_decisions_and_signed_urls_are_counted(
    client: TestClient,
    identity: InMemoryIdentityProvider,
    records: InMemoryAccessRecordRepo,
) -> None:
    records.add_lesson_plan(
        LessonPlanExport(id="p", owner_id="user-1", latest_export_path="e/p.pdf")
    )
    granted = {"family": "lesson_plan_export", "decision": "granted"}
    forbidden = {"family": "lesson_plan_export", "decision": "forbidden"}
    signed = {"bucket": "lesson-plans"}
    before = (
        _get_sample("access_decisions_total", granted),
        _get_sample("access_decisions_total", forbidden),
        _get_sample("signed_urls_issued_total", signed),
    )

    params = {"bucket": "lesson-plans", "path": "e/p.pdf"}
    client.get(
        "/files/signed",
        params=params,
        headers={"Authorization": f"Bearer {mint_token(identity, 'user-1')}"},
    )
    client.get(
        "/files/signed",
        params=params,
        headers={"Authorization": f"Bearer {mint_token(identity, 'user-2')}"},
    )

    assert _get_sample("access_decisions_total", granted) - before[0] == 1
    assert _get_sample("access_decisions_total", forbidden) - before[1] == 1
    assert _get_sample("signed_urls_issued_total", signed) - before[2] == 1

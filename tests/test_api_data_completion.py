"""
HTTP tests for the data completion endpoints.
"""

from unittest.mock import patch

import pytest

from completion_tracker.core.exceptions import DataStoreError
from completion_tracker.services.broadcaster import DATA_COMPLETION_EVENT, NET_REDUCTION_EVENT
from factories import (
    FULL_ACCESS_HEADERS,
    create_entry,
    create_reduction_project,
    create_scope,
    seed_single_scope,
    utc,
)

URL = "/api/v1/clients/acme-001/data-completion"


class TestGetDataCompletion:
    def test_full_access(self, client):
        seed_single_scope()
        create_entry(utc(2025, 3, 2))
        res = client.get(f"{URL}?month=3&year=2025", headers=FULL_ACCESS_HEADERS)
        assert res.status_code == 200
        body = res.get_json()
        assert body["success"] is True
        data = body["data"]
        assert data["clientId"] == "acme-001"
        assert data["period"]["month"] == 3
        assert data["summary"]["completionPercentage"] == 100
        assert data["summary"]["isFiltered"] is False

    def test_no_data_for_month(self, client):
        seed_single_scope()
        res = client.get(f"{URL}?month=3&year=2025", headers=FULL_ACCESS_HEADERS)
        s = res.get_json()["data"]["summary"]
        assert (s["totalScopes"], s["completedScopes"], s["pendingScopes"], s["completionPercentage"]) == (1, 0, 1, 0)

    def test_defaults_to_current_month(self, client):
        seed_single_scope()
        res = client.get(URL, headers=FULL_ACCESS_HEADERS)
        assert res.status_code == 200
        assert set(res.get_json()["data"]["period"]) == {"month", "year", "from", "to"}

    @pytest.mark.parametrize("query", ["month=13&year=2025", "month=0", "month=abc", "year=1800", "year=x"])
    def test_invalid_period_is_400(self, client, query):
        seed_single_scope()
        res = client.get(f"{URL}?{query}", headers=FULL_ACCESS_HEADERS)
        assert res.status_code == 400
        body = res.get_json()
        assert body["success"] is False
        assert body["code"] == "ERR_VALIDATION_INVALID"

    def test_unknown_client_is_404(self, client):
        res = client.get("/api/v1/clients/ghost/data-completion", headers=FULL_ACCESS_HEADERS)
        assert res.status_code == 404
        assert res.get_json()["success"] is False

    def test_head_of_no_nodes_gets_empty_stats(self, client):
        seed_single_scope()
        res = client.get(
            f"{URL}?month=3&year=2025",
            headers={"X-User-Id": "nobody", "X-User-Role": "client_employee_head"},
        )
        assert res.status_code == 200
        summary = res.get_json()["data"]["summary"]
        assert summary["totalScopes"] == 0
        assert summary["isFiltered"] is True

    def test_employee_sees_assigned_scopes(self, client):
        _c, _chart, node, _scope = seed_single_scope()
        create_scope(node, scope_identifier="S2-POWER", assigned_employees=["emp-1"])
        res = client.get(f"{URL}?month=3&year=2025",
                         headers={"X-User-Id": "emp-1", "X-User-Role": "employee"})
        data = res.get_json()["data"]
        assert [s["scopeIdentifier"] for s in data["scopes"]] == ["S2-POWER"]

    @pytest.mark.parametrize("headers", [{}, {"X-User-Id": "u1", "X-User-Role": "intern"}])
    def test_anonymous_or_unknown_role_sees_nothing(self, client, headers):
        seed_single_scope()
        res = client.get(f"{URL}?month=3&year=2025", headers=headers)
        assert res.status_code == 200
        assert res.get_json()["data"]["summary"]["totalScopes"] == 0

    def test_store_failure_is_500(self, client):
        seed_single_scope()
        with patch(
            "completion_tracker.blueprints.data_completion_bp.calculate_client_completion",
            side_effect=DataStoreError("completion lookup", "database is locked"),
        ):
            res = client.get(f"{URL}?month=3&year=2025", headers=FULL_ACCESS_HEADERS)
        assert res.status_code == 500
        body = res.get_json()
        assert body["success"] is False
        assert body["error"] == "database is locked"

    def test_timing_headers(self, client):
        seed_single_scope()
        res = client.get(URL, headers=FULL_ACCESS_HEADERS)
        assert "X-Request-ID" in res.headers
        assert "X-Request-Duration-Ms" in res.headers


class TestNetReductionCompletion:
    def test_stats(self, client):
        seed_single_scope()
        create_reduction_project()
        res = client.get("/api/v1/net-reduction/acme-001/data-completion", headers=FULL_ACCESS_HEADERS)
        assert res.status_code == 200
        body = res.get_json()
        assert body["success"] is True
        assert body["clientId"] == "acme-001"
        assert body["stats"]["totals"]["projects"] == 1

    def test_store_failure_is_500(self, client):
        with patch(
            "completion_tracker.blueprints.data_completion_bp.calculate_net_reduction_stats",
            side_effect=DataStoreError("net reduction completion", "timeout"),
        ):
            res = client.get("/api/v1/net-reduction/acme-001/data-completion", headers=FULL_ACCESS_HEADERS)
        assert res.status_code == 500
        assert res.get_json()["error"] == "timeout"

    @pytest.mark.parametrize("headers", [{}, {"X-User-Id": "u1", "X-User-Role": "intern"}])
    def test_denied_caller_gets_empty_stats(self, client, headers):
        seed_single_scope()
        create_reduction_project()
        res = client.get("/api/v1/net-reduction/acme-001/data-completion", headers=headers)
        assert res.status_code == 200
        stats = res.get_json()["stats"]
        assert stats["byProject"] == []
        assert stats["totals"] == {"projects": 0, "expected": 0, "completed": 0, "completionPercent": 0}


class TestBroadcastEndpoint:
    def test_full_access_broadcasts(self, client, transport):
        seed_single_scope()
        received = []
        transport.subscribe("acme-001", lambda event, payload: received.append(event))
        res = client.post(f"{URL}/broadcast", headers=FULL_ACCESS_HEADERS)
        assert res.status_code == 200
        body = res.get_json()
        assert body["delivered"] == {DATA_COMPLETION_EVENT: True, NET_REDUCTION_EVENT: True}
        assert sorted(received) == sorted([DATA_COMPLETION_EVENT, NET_REDUCTION_EVENT])

    def test_restricted_caller_is_403(self, client):
        seed_single_scope()
        res = client.post(f"{URL}/broadcast", headers={"X-User-Id": "emp-1", "X-User-Role": "employee"})
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"


class TestHealth:
    def test_ready(self, client):
        assert client.get("/api/v1/health/ready").status_code == 200

    def test_live(self, client):
        res = client.get("/api/v1/health/live")
        assert res.status_code == 200
        assert res.get_json()["checks"]["database"]["status"] == "ok"

    def test_unknown_api_path_is_json_404(self, client):
        res = client.get("/api/v1/nope")
        assert res.status_code == 404
        assert res.get_json()["success"] is False

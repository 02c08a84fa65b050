"""
Unit tests for the HTTP API.
Services are swapped through the get_services dependency so no network is touched.
"""
from types import SimpleNamespace

from fastapi.testclient import TestClient

from tools.signal_sources import NullSignalSource
from agents.agent_orchestrator import DashboardOrchestrator, SyntheticMetricsSource
from agents.swarm_coordinator import SwarmCoordinator
from main import app, get_services
from fakes import FAST_AGENT_CONFIG


class TestAPI:

    def setup_method(self):
        self.services = SimpleNamespace(
            orchestrator=DashboardOrchestrator([SyntheticMetricsSource()]),
            swarm_coordinator=SwarmCoordinator(NullSignalSource(), dict(FAST_AGENT_CONFIG)),
        )
        app.dependency_overrides[get_services] = lambda: self.services
        self.client = TestClient(app)

    def teardown_method(self):
        app.dependency_overrides.clear()

    def test_create_dashboard(self):
        response = self.client.post("/api/v1/metrics", json={"company_name": "Acme Corp", "period": "30d"})

        assert response.status_code == 200
        body = response.json()
        assert body["company_name"] == "Acme Corp"
        assert body["data_source"] == "synthetic"
        assert body["period"] == "30d"
        assert body["metrics"]["validation"]["is_valid"] is True

    def test_invalid_company_name(self):
        response = self.client.post("/api/v1/metrics", json={"company_name": "<bad>"})

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["message"] == "Invalid company name"
        assert 'Company name contains invalid characters' in detail["errors"]

    def test_reproject_company_metrics(self):
        response = self.client.get("/api/v1/companies/Acme Corp/metrics", params={"period": "7d"})
        assert response.status_code == 200
        assert response.json()["period"] == "7d"

    def test_unknown_period_is_rejected(self):
        response = self.client.get("/api/v1/companies/Acme Corp/metrics", params={"period": "90d"})
        assert response.status_code == 422

    def test_date_range(self):
        response = self.client.get("/api/v1/date-range", params={"period": "24h"})

        assert response.status_code == 200
        body = response.json()
        assert body["date_range"]["period"] == "24h"
        assert body["date_range"]["total_days"] == 1
        assert body["collection_status"]["data_points"] == 1000

    def test_swarm_lifecycle(self):
        assert self.client.get("/api/v1/swarm").status_code == 404
        assert self.client.get("/api/v1/swarm/collection-metrics").status_code == 404

        response = self.client.post("/api/v1/swarm", json={"company_name": "Acme Corp"})
        assert response.status_code == 200
        started = response.json()
        assert started["company_name"] == "Acme Corp"
        assert len(started["agents"]) == 12

        # the background run has finished by the time the client returns
        swarm = self.client.get("/api/v1/swarm").json()
        assert swarm["status"] == "completed"
        assert self.client.get("/api/v1/swarm/collection-metrics").status_code == 200

    def test_swarm_rejects_invalid_name(self):
        response = self.client.post("/api/v1/swarm", json={"company_name": "x"})
        assert response.status_code == 400

    def test_health(self):
        response = self.client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] in ("ok", "degraded")

    def test_system_stats(self):
        self.client.post("/api/v1/metrics", json={"company_name": "Acme Corp"})

        stats = self.client.get("/api/v1/system/stats").json()

        assert stats["orchestrator"]["synthetic_results"] == 1
        assert stats["swarm"]["total_runs"] == 0
        assert "metrics" in stats

    def test_prometheus_metrics(self):
        self.client.post("/api/v1/metrics", json={"company_name": "Acme Corp"})
        response = self.client.get("/metrics")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")

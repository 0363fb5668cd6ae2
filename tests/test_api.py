"""HTTP tests for the payroll run API."""

from collections.abc import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from planilla_engine.api.app import create_app
from planilla_engine.api.dependencies import get_db_session

from .conftest import add_employee, seed_tax_tables

pytestmark = pytest.mark.asyncio

RUN = {
    "period_start": "2025-01-01",
    "period_end": "2025-01-31",
    "pay_date": "2025-01-31",
}


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client bound to the test database."""
    app = create_app()

    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def headers(company_id):
    return {"X-Company-ID": str(company_id)}


class TestHealthEndpoints:
    """Test health check endpoints."""

    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["database"] == "healthy"

    async def test_not_ready_without_contribution_rates(self, client: AsyncClient):
        response = await client.get("/ready")
        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"

    async def test_ready_once_rates_are_seeded(self, client, session, company_id):
        await seed_tax_tables(session, company_id)

        response = await client.get("/ready")

        assert response.status_code == 200
        assert response.json() == {
            "status": "ready",
            "contribution_rates_effective_from": "2025-01-01",
        }

    async def test_liveness(self, client: AsyncClient):
        assert (await client.get("/live")).json() == {"status": "alive"}


class TestPayrollRunApi:
    """Test the payroll run endpoints end to end."""

    async def test_company_header_is_required(self, client):
        response = await client.get("/api/v1/payroll-runs")
        assert response.status_code == 400
        assert response.json()["code"] == "BAD_REQUEST"

        response = await client.get(
            "/api/v1/payroll-runs", headers={"X-Company-ID": "not-a-uuid"}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "BAD_REQUEST"
        assert response.json()["context"] is None

    async def test_malformed_body(self, client, headers):
        response = await client.post(
            "/api/v1/payroll-runs", json={**RUN, "pay_date": "soon"}, headers=headers
        )
        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["context"]["errors"][0]["loc"][-1] == "pay_date"

    async def test_create_and_fetch(self, client, headers):
        response = await client.post("/api/v1/payroll-runs", json=RUN, headers=headers)
        assert response.status_code == 201
        run = response.json()
        assert run["status"] == "draft"
        assert run["payroll_number"] == "2025-001"

        response = await client.get(
            f"/api/v1/payroll-runs/{run['payroll_header_id']}", headers=headers
        )
        assert response.status_code == 200
        assert response.json()["payroll_header_id"] == run["payroll_header_id"]

        response = await client.get("/api/v1/payroll-runs", headers=headers)
        assert response.json()["total"] == 1

    async def test_invalid_period(self, client, headers):
        response = await client.post(
            "/api/v1/payroll-runs",
            json={**RUN, "period_end": "2024-12-31"},
            headers=headers,
        )
        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_INPUT"

    async def test_unknown_run(self, client, headers):
        response = await client.get(f"/api/v1/payroll-runs/{uuid4()}", headers=headers)
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    async def test_other_company_cannot_see_run(self, client, headers):
        created = await client.post("/api/v1/payroll-runs", json=RUN, headers=headers)
        run_id = created.json()["payroll_header_id"]

        response = await client.get(
            f"/api/v1/payroll-runs/{run_id}", headers={"X-Company-ID": str(uuid4())}
        )
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    async def test_full_lifecycle(self, client, headers, session, company_id):
        await seed_tax_tables(session, company_id)
        await add_employee(session, company_id)
        created = await client.post("/api/v1/payroll-runs", json=RUN, headers=headers)
        run_id = created.json()["payroll_header_id"]
        base = f"/api/v1/payroll-runs/{run_id}"

        response = await client.post(f"{base}/calculate", headers=headers)
        assert response.status_code == 200
        assert response.json()["status"] == "calculated"
        assert response.json()["total_net_pay"] == "2406.25"

        response = await client.get(f"{base}/details", headers=headers)
        assert response.status_code == 200
        [detail] = response.json()["items"]
        assert detail["base_pay"] == "3000.00"
        assert detail["overtime_pay"] == "0.00"
        assert detail["income_tax"] == "312.50"
        assert detail["deduction_lines"] == []

        response = await client.post(f"{base}/approve", json={"actor": "ana"}, headers=headers)
        assert response.status_code == 200
        assert response.json()["approved_by"] == "ana"

        response = await client.post(
            f"{base}/pay", json={"payment_reference": "TRX-9"}, headers=headers
        )
        assert response.status_code == 200
        assert response.json()["status"] == "paid"

    async def test_illegal_transition_is_conflict(self, client, headers):
        created = await client.post("/api/v1/payroll-runs", json=RUN, headers=headers)
        run_id = created.json()["payroll_header_id"]

        response = await client.post(f"/api/v1/payroll-runs/{run_id}/pay", headers=headers)

        assert response.status_code == 409
        body = response.json()
        assert body["code"] == "INVALID_STATE_TRANSITION"
        assert body["context"] == {"from_status": "draft", "to_status": "paid"}
        assert body["detail"].startswith("Invalid transition from 'draft' to 'paid'")

    async def test_missing_configuration_is_unprocessable(
        self, client, headers, session, company_id
    ):
        await add_employee(session, company_id)
        created = await client.post("/api/v1/payroll-runs", json=RUN, headers=headers)
        run_id = created.json()["payroll_header_id"]

        response = await client.post(
            f"/api/v1/payroll-runs/{run_id}/calculate", headers=headers
        )

        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "CONFIGURATION_MISSING"
        assert body["context"] == {"config_kind": "income tax", "as_of_date": "2025-01-31"}
        assert isinstance(body["detail"], str)

    async def test_cancel_requires_reason(self, client, headers):
        created = await client.post("/api/v1/payroll-runs", json=RUN, headers=headers)
        base = f"/api/v1/payroll-runs/{created.json()['payroll_header_id']}"

        response = await client.post(f"{base}/cancel", json={"reason": ""}, headers=headers)
        assert response.status_code == 422

        response = await client.post(
            f"{base}/cancel", json={"reason": "Duplicate", "actor": "ana"}, headers=headers
        )
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

import pytest
import httpx
from uuid import uuid4
from decimal import Decimal

from tests.constants import PERIOD_START, PERIOD_END


@pytest.mark.anyio
class TestBalancesAPI:

    async def test_status_counts_and_reminders(self, client: httpx.AsyncClient, make_balance):
        await make_balance("0")
        pending_id = await make_balance("700")
        await make_balance("-50")

        counts = (await client.get("/balances/status-counts")).json()
        assert counts == {"paid": 1, "pending": 1, "excess": 1, "total": 3}

        reminders = (await client.get("/balances/reminders")).json()
        assert [r["student_id"] for r in reminders] == [str(pending_id)]
        assert Decimal(reminders[0]["amount_due"]) == Decimal("700.00")

    async def test_list_balances_with_status_filter(self, client: httpx.AsyncClient, make_balance):
        excess_id = await make_balance("-50")
        await make_balance("700")

        response = await client.get("/balances/", params={"status": "excess"})

        assert response.status_code == 200
        assert [b["student_id"] for b in response.json()] == [str(excess_id)]

    async def test_student_status(self, client: httpx.AsyncClient, make_balance):
        student_id = await make_balance("-50")

        response = await client.get(f"/balances/{student_id}/status")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "excess"
        assert Decimal(data["amount"]) == Decimal("50.00")
        assert data["currency"] == "INR"

    async def test_unknown_student_status(self, client: httpx.AsyncClient, db_session):
        response = await client.get(f"/balances/{uuid4()}/status")
        assert response.status_code == 404


@pytest.mark.anyio
class TestReconciliationsAPI:

    async def test_run_and_list(self, client: httpx.AsyncClient, make_balance):
        student_id = await make_balance("500")

        response = await client.post("/reconciliations/", json={
            "period_start": PERIOD_START.isoformat(),
            "period_end": PERIOD_END.isoformat(),
        })

        assert response.status_code == 200, response.json()
        data = response.json()
        assert data["status"] == "SUCCESS"
        assert data["reconciled"] == [str(student_id)]

        balance = (await client.get(f"/balances/{student_id}")).json()
        assert Decimal(balance["current_balance"]) == Decimal("1500.00")

        runs = (await client.get("/reconciliations/")).json()
        assert len(runs) == 1
        assert runs[0]["trigger_source"] == "api"

    async def test_invalid_period(self, client: httpx.AsyncClient, db_session):
        response = await client.post("/reconciliations/", json={
            "period_start": PERIOD_END.isoformat(),
            "period_end": PERIOD_START.isoformat(),
        })
        assert response.status_code == 422

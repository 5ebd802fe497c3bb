import pytest
import httpx
from uuid import uuid4
from decimal import Decimal


STUDENT_PAYLOAD = {
    "student_code": "TUT-301",
    "name": "Rohan Iyer",
    "fee": "800.00",
    "phone": "+919800000002",
}


@pytest.mark.anyio
class TestStudentsAPI:

    async def test_health_check(self, client: httpx.AsyncClient):
        response = await client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    async def test_create_and_fetch_student(self, client: httpx.AsyncClient):
        response = await client.post("/students/", json=STUDENT_PAYLOAD)

        assert response.status_code == 201, response.json()
        created = response.json()
        assert created["student_code"] == "TUT-301"

        response = await client.get(f"/students/{created['id']}")
        assert response.status_code == 200
        assert response.json()["name"] == "Rohan Iyer"

        response = await client.get(f"/balances/{created['id']}")
        assert response.status_code == 200
        assert Decimal(response.json()["current_balance"]) == Decimal("800.00")
        assert response.json()["status"] == "pending"

    async def test_duplicate_code_conflict(self, client: httpx.AsyncClient):
        await client.post("/students/", json=STUDENT_PAYLOAD)

        response = await client.post("/students/", json=STUDENT_PAYLOAD)

        assert response.status_code == 409
        assert "TUT-301" in response.json()["detail"]

    async def test_negative_fee_rejected(self, client: httpx.AsyncClient):
        response = await client.post("/students/", json={**STUDENT_PAYLOAD, "fee": "-1"})
        assert response.status_code == 422

    async def test_update_fee(self, client: httpx.AsyncClient):
        created = (await client.post("/students/", json=STUDENT_PAYLOAD)).json()

        response = await client.patch(f"/students/{created['id']}/fee", json={"fee": "950.00"})

        assert response.status_code == 200, response.json()
        assert Decimal(response.json()["fee"]) == Decimal("950.00")

    async def test_delete_student(self, client: httpx.AsyncClient):
        created = (await client.post("/students/", json=STUDENT_PAYLOAD)).json()

        response = await client.delete(f"/students/{created['id']}")
        assert response.status_code == 200

        response = await client.get(f"/students/{created['id']}")
        assert response.status_code == 404

    async def test_unknown_student_not_found(self, client: httpx.AsyncClient):
        response = await client.get(f"/students/{uuid4()}")
        assert response.status_code == 404
        assert "detail" in response.json()

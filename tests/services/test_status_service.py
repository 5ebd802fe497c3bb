import pytest
from decimal import Decimal

from tutor_ledger.services.finance_service import BalanceStatusService
from tutor_ledger.database.db_enums import BalanceStatusEnum


@pytest.mark.anyio
class TestBalanceStatusService:

    async def test_counts_partition_all_students(
        self,
        balance_status_service: BalanceStatusService,
        make_balance
    ):
        for value in ["0", "500", "300", "-200", "0"]:
            await make_balance(value)

        counts = await balance_status_service.list_status_counts()

        assert counts.paid == 2
        assert counts.pending == 2
        assert counts.excess == 1
        assert counts.total == 5

    async def test_counts_empty_ledger(self, balance_status_service: BalanceStatusService, db_session):
        counts = await balance_status_service.list_status_counts()
        assert (counts.paid, counts.pending, counts.excess, counts.total) == (0, 0, 0, 0)

    async def test_list_balances_filtered_by_status(
        self,
        balance_status_service: BalanceStatusService,
        make_balance
    ):
        await make_balance("0")
        excess_id = await make_balance("-150")

        excess = await balance_status_service.list_balances(BalanceStatusEnum.EXCESS)
        everyone = await balance_status_service.list_balances()

        assert [b.student_id for b in excess] == [excess_id]
        assert excess[0].status_amount == Decimal("150.00")
        assert len(everyone) == 2

    async def test_reminders_list_pending_students_largest_first(
        self,
        balance_status_service: BalanceStatusService,
        make_balance
    ):
        small_id = await make_balance("300")
        large_id = await make_balance("1500")
        await make_balance("0")
        await make_balance("-100")

        reminders = await balance_status_service.list_reminders()

        assert [r.student_id for r in reminders] == [large_id, small_id]
        assert reminders[0].amount_due == Decimal("1500.00")
        assert reminders[0].currency == "INR"

'''
API endpoints for reading balances and their derived status.
'''
from typing import Annotated, Any
from uuid import UUID
from fastapi import APIRouter, Depends, Query

from ..database.db_enums import BalanceStatusEnum
from ..models import finance as finance_models
from ..services.finance_service import LedgerService, BalanceStatusService

class BalancesAPI:
    """
    A class to encapsulate the read-only ledger endpoints.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/balances",
            tags=["Balances"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route("/", self.list_balances, methods=["GET"], response_model=list[finance_models.BalanceRead])
        self.router.add_api_route("/status-counts", self.get_status_counts, methods=["GET"], response_model=finance_models.StatusCounts)
        self.router.add_api_route("/reminders", self.list_reminders, methods=["GET"], response_model=list[finance_models.ReminderRead])
        self.router.add_api_route("/{student_id}", self.get_balance, methods=["GET"], response_model=finance_models.BalanceRead)
        self.router.add_api_route("/{student_id}/status", self.get_status, methods=["GET"], response_model=finance_models.BalanceStatusRead)

    async def list_balances(
        self,
        status_service: Annotated[BalanceStatusService, Depends(BalanceStatusService)],
        status: Annotated[BalanceStatusEnum | None, Query(description="Optional filter: paid, pending or excess")] = None
    ) -> list[Any]:
        return await status_service.list_balances(status)

    async def get_status_counts(
        self,
        status_service: Annotated[BalanceStatusService, Depends(BalanceStatusService)]
    ) -> Any:
        """
        Number of students in each bucket; the buckets add up to all students.
        """
        return await status_service.list_status_counts()

    async def list_reminders(
        self,
        status_service: Annotated[BalanceStatusService, Depends(BalanceStatusService)]
    ) -> list[Any]:
        """
        Pending students and the amount due, for payment reminder messages.
        """
        return await status_service.list_reminders()

    async def get_balance(
        self,
        student_id: UUID,
        ledger_service: Annotated[LedgerService, Depends(LedgerService)]
    ) -> Any:
        return await ledger_service.get_balance(student_id)

    async def get_status(
        self,
        student_id: UUID,
        ledger_service: Annotated[LedgerService, Depends(LedgerService)]
    ) -> Any:
        return await ledger_service.get_status(student_id)

# Instantiate the class and export its router
balances_api = BalancesAPI()
router = balances_api.router

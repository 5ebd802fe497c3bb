'''
API endpoints for recording and removing Payments.
'''
from typing import Annotated, Any
from uuid import UUID
from fastapi import APIRouter, Depends, status, Query

from ..models import finance as finance_models
from ..services.finance_service import LedgerService
from ..services.import_service import PaymentImportService

class PaymentsAPI:
    """
    A class to encapsulate endpoints for Payments.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/payments",
            tags=["Payments"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/",
                self.list_payments,
                methods=["GET"],
                response_model=list[finance_models.PaymentRead])
        self.router.add_api_route(
                "/",
                self.apply_payment,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=finance_models.PaymentApplyResult)
        self.router.add_api_route(
                "/import",
                self.import_payments,
                methods=["POST"],
                response_model=finance_models.PaymentImportResult)
        self.router.add_api_route(
                "/{payment_id}",
                self.remove_payment,
                methods=["DELETE"],
                response_model=finance_models.BalanceRead)

    async def list_payments(
        self,
        ledger_service: Annotated[LedgerService, Depends(LedgerService)],
        student_id: Annotated[UUID | None, Query(description="Optional filter for Student ID")] = None
    ) -> list[Any]:
        """
        Retrieves the payments of the open billing period.
        """
        return await ledger_service.list_payments(student_id)

    async def apply_payment(
        self,
        payment_data: finance_models.PaymentCreate,
        ledger_service: Annotated[LedgerService, Depends(LedgerService)]
    ) -> Any:
        """
        Records a payment. A transaction_ref seen before is skipped
        (applied = false, duplicate = true) instead of being counted twice.
        """
        return await ledger_service.apply_payment(payment_data.model_dump())

    async def import_payments(
        self,
        import_data: finance_models.PaymentImportRequest,
        import_service: Annotated[PaymentImportService, Depends(PaymentImportService)]
    ) -> Any:
        """
        Applies the rows of a parsed bank / UPI statement.
        """
        rows = [row.model_dump() for row in import_data.rows]
        return await import_service.import_statement(import_data.file_name, rows)

    async def remove_payment(
        self,
        payment_id: UUID,
        ledger_service: Annotated[LedgerService, Depends(LedgerService)]
    ) -> Any:
        """
        Deletes a payment and puts its amount back on the balance.
        """
        return await ledger_service.remove_payment(payment_id)

# Instantiate the class and export its router
payments_api = PaymentsAPI()
router = payments_api.router

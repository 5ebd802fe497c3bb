'''
API endpoints for running and reviewing monthly reconciliations.
'''
from typing import Annotated, Any
from fastapi import APIRouter, Depends

from ..models import finance as finance_models
from ..services.reconciliation_service import ReconciliationService

class ReconciliationsAPI:
    """
    A class to encapsulate endpoints for Reconciliation runs.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/reconciliations",
            tags=["Reconciliations"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/",
                self.run_reconciliation,
                methods=["POST"],
                response_model=finance_models.ReconciliationResult)
        self.router.add_api_route(
                "/",
                self.list_runs,
                methods=["GET"],
                response_model=list[finance_models.ReconciliationRunRead])

    async def run_reconciliation(
        self,
        request: finance_models.ReconciliationRequest,
        reconciliation_service: Annotated[ReconciliationService, Depends(ReconciliationService)]
    ) -> Any:
        """
        Closes a billing period. Students that fail are listed in `failures`
        and can be retried by passing them as student_ids.
        """
        return await reconciliation_service.reconcile_all(
            request.period_start,
            request.period_end,
            student_ids=request.student_ids,
            trigger_source=request.trigger_source or "api"
        )

    async def list_runs(
        self,
        reconciliation_service: Annotated[ReconciliationService, Depends(ReconciliationService)]
    ) -> list[Any]:
        return await reconciliation_service.list_runs()

# Instantiate the class and export its router
reconciliations_api = ReconciliationsAPI()
router = reconciliations_api.router

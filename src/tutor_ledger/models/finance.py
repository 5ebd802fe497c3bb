'''

'''
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field

from ..database.db_enums import PaymentMethodEnum, BalanceStatusEnum, RunStatusEnum, UploadStatusEnum
from ..core.ledger import status_of
from ..common.config import settings
from ..common.exceptions import PartialReconciliationFailure

# --- 1. API Input Models (for POST) ---

class PaymentCreate(BaseModel):
    """
    Validates the request body for recording a payment.
    The amount is checked by the ledger so that a non-positive value is
    reported as an InvalidAmountError rather than a schema error.
    """
    student_id: UUID
    amount: Decimal
    payment_date: date
    method: PaymentMethodEnum = PaymentMethodEnum.MANUAL
    transaction_ref: Optional[str] = None
    remarks: Optional[str] = None

class PaymentImportRow(BaseModel):
    """
    One statement row handed over by the upload front-end.
    Either student_code is set, or remarks contains the code.
    """
    row_number: Optional[int] = None
    student_code: Optional[str] = None
    remarks: Optional[str] = None
    amount: Decimal
    payment_date: Optional[date] = None
    transaction_ref: Optional[str] = None

class PaymentImportRequest(BaseModel):
    file_name: str
    rows: list[PaymentImportRow]

class ReconciliationRequest(BaseModel):
    """
    Closes the billing period [period_start, period_end] (both inclusive).
    Pass student_ids to retry only the students that failed in a previous run.
    """
    period_start: date
    period_end: date
    student_ids: Optional[list[UUID]] = None
    trigger_source: Optional[str] = None


# --- 2. API Output Models (for GET) ---

class PaymentRead(BaseModel):
    id: UUID
    student_id: UUID
    amount: Decimal
    payment_date: date
    method: PaymentMethodEnum
    transaction_ref: Optional[str] = None
    remarks: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class BalanceRead(BaseModel):
    """
    A student's ledger row. Status is derived from current_balance only.
    """
    student_id: UUID
    student_code: str
    student_name: str
    current_balance: Decimal
    total_paid: Decimal
    total_fees: Decimal
    last_payment_date: Optional[date] = None
    last_reconciled_period_end: Optional[date] = None

    @computed_field
    @property
    def status(self) -> BalanceStatusEnum:
        return status_of(self.current_balance).status

    @computed_field
    @property
    def status_amount(self) -> Decimal:
        return status_of(self.current_balance).amount

    model_config = ConfigDict(from_attributes=True)

class BalanceStatusRead(BaseModel):
    student_id: UUID
    status: BalanceStatusEnum
    amount: Decimal
    currency: str = settings.CURRENCY

class PaymentApplyResult(BaseModel):
    """
    Outcome of applying a payment. A duplicate transaction_ref is not an
    error: applied is False, duplicate is True and the balance is unchanged.
    """
    applied: bool
    duplicate: bool = False
    payment: Optional[PaymentRead] = None
    balance: BalanceRead

class StatusCounts(BaseModel):
    paid: int = 0
    pending: int = 0
    excess: int = 0

    @computed_field
    @property
    def total(self) -> int:
        return self.paid + self.pending + self.excess

class ReminderRead(BaseModel):
    """A pending student and the amount to put in the reminder message."""
    student_id: UUID
    student_code: str
    student_name: str
    phone: Optional[str] = None
    amount_due: Decimal
    currency: str = settings.CURRENCY


# --- 3. Reconciliation & Import Models (Output) ---

class ReconciliationResult(BaseModel):
    run_id: UUID
    period_start: date
    period_end: date
    reconciled: list[UUID] = Field(default_factory=list)
    # Already rolled forward for this period by an earlier run
    skipped: list[UUID] = Field(default_factory=list)
    failures: list[UUID] = Field(default_factory=list)

    @computed_field
    @property
    def reconciled_count(self) -> int:
        return len(self.reconciled)

    @computed_field
    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @computed_field
    @property
    def status(self) -> RunStatusEnum:
        if not self.failures:
            return RunStatusEnum.SUCCESS
        if self.reconciled or self.skipped:
            return RunStatusEnum.PARTIAL
        return RunStatusEnum.FAILED

    def raise_for_failures(self) -> None:
        """Raises PartialReconciliationFailure if any student failed."""
        if self.failures:
            raise PartialReconciliationFailure(self.failures, run_id=self.run_id)

class ReconciliationRunRead(BaseModel):
    id: UUID
    period_start: date
    period_end: date
    run_started_at: datetime
    status: RunStatusEnum
    reconciled_count: int
    skipped_count: int
    failed_student_ids: list[UUID] = Field(default_factory=list)
    run_duration_ms: Optional[int] = None
    trigger_source: Optional[str] = None
    error_message: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class PaymentImportResult(BaseModel):
    upload_id: UUID
    status: UploadStatusEnum
    total: int
    processed: int
    skipped: int
    failed: int
    errors: list[str] = Field(default_factory=list)

"""
This file contains custom, application-specific exceptions.
"""
from uuid import UUID


class LedgerError(Exception):
    """Base class for every error the ledger raises on purpose."""
    pass

class InvalidAmountError(LedgerError):
    """Raised when a payment amount is zero or negative."""
    pass

class UnknownStudentError(LedgerError):
    """Raised when a student ID (or its balance row) is not found in the database."""
    pass

class PaymentNotFoundError(LedgerError):
    """Raised when a payment ID is not found among the open-period payments."""
    pass

class DuplicateStudentCodeError(LedgerError):
    """Raised when a new student reuses an existing student code."""
    pass

class InvalidPeriodError(LedgerError):
    """Raised when a reconciliation period ends before it starts."""
    pass

class PartialReconciliationFailure(LedgerError):
    """
    Raised when one or more students could not be reconciled.
    The failed IDs can be passed back to the reconciler to retry only them.
    """
    def __init__(self, student_ids: list[UUID], run_id: UUID | None = None):
        self.student_ids = list(student_ids)
        self.run_id = run_id
        super().__init__(
            f"Reconciliation failed for {len(self.student_ids)} student(s): "
            f"{', '.join(str(s) for s in self.student_ids)}"
        )

'''
Monthly cycle reconciliation.

Each student is rolled forward in its own transaction:
lock balance -> apply carry-forward rule -> archive the closed period's
payments -> stamp last_reconciled_period_end -> commit.
A student is therefore either fully reconciled or untouched, and the stamp
makes a second run for the same period a no-op for that student.
'''
import time
import uuid
from datetime import date, datetime, timezone
from typing import Optional, Annotated
from uuid import UUID
from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..database.engine import get_db_session
from ..database import models as db_models
from ..models import finance as finance_models
from ..core.ledger import roll_forward
from ..common.logger import log
from ..common.config import settings
from ..common.exceptions import InvalidPeriodError, UnknownStudentError


class ReconciliationService:
    """Service for closing a billing period and opening the next one."""

    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    # --- Private Helpers ---

    async def _get_target_student_ids(self, student_ids: Optional[list[UUID]]) -> list[UUID]:
        stmt = select(db_models.Students.id).order_by(db_models.Students.student_code)
        if student_ids is not None:
            stmt = stmt.filter(db_models.Students.id.in_(student_ids))
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def _reconcile_student(
        self,
        student_id: UUID,
        period_start: date,
        period_end: date,
        run_id: UUID,
        run_date: date
    ) -> bool:
        """
        Rolls one student forward. Returns False when the student was already
        reconciled for this period. Does not commit.
        """
        stmt = select(db_models.StudentBalances).options(
            selectinload(db_models.StudentBalances.student)
        ).filter(
            db_models.StudentBalances.student_id == student_id
        ).with_for_update().execution_options(populate_existing=True)
        balance = (await self.db.execute(stmt)).scalars().first()
        if balance is None:
            raise UnknownStudentError(f"Balance for student {student_id} not found.")

        if balance.last_reconciled_period_end is not None and balance.last_reconciled_period_end >= period_end:
            log.info(f"Student {student_id} already reconciled up to {balance.last_reconciled_period_end}; skipping.")
            return False

        fee = balance.student.fee
        previous_balance = balance.current_balance
        transition = roll_forward(previous_balance, fee, settings.RECORD_ABSORBED_FEE_AS_PAID)

        balance.current_balance = transition.new_balance
        balance.total_paid = transition.new_total_paid
        balance.last_payment_date = run_date if transition.absorbed_as_payment else None
        balance.total_fees = fee
        balance.last_reconciled_period_end = period_end
        await self.db.flush()

        closed = await self._close_period_payments(student_id, period_start, period_end, run_id)
        log.info(
            f"Reconciled student {student_id}: {previous_balance} -> {transition.new_balance} "
            f"(fee {fee}), closed {closed} payment(s)."
        )
        return True

    async def _close_period_payments(
        self,
        student_id: UUID,
        period_start: date,
        period_end: date,
        run_id: UUID
    ) -> int:
        """Archives (or deletes) the student's payments dated inside the period."""
        stmt = select(db_models.Payments).filter(
            db_models.Payments.student_id == student_id,
            db_models.Payments.payment_date >= period_start,
            db_models.Payments.payment_date <= period_end
        ).execution_options(populate_existing=True)
        payments = list((await self.db.execute(stmt)).scalars().all())

        for payment in payments:
            if settings.ARCHIVE_CLOSED_PAYMENTS:
                self.db.add(db_models.PaymentsArchive(
                    id=payment.id,
                    student_id=payment.student_id,
                    amount=payment.amount,
                    payment_date=payment.payment_date,
                    method=payment.method,
                    transaction_ref=payment.transaction_ref,
                    remarks=payment.remarks,
                    created_at=payment.created_at,
                    reconciliation_run_id=run_id,
                ))
            await self.db.delete(payment)

        await self.db.flush()
        return len(payments)

    async def _record_run(
        self,
        result: finance_models.ReconciliationResult,
        started_at: datetime,
        duration_ms: int,
        trigger_source: Optional[str],
        errors: dict[UUID, str]
    ) -> None:
        error_message = None
        if errors:
            error_message = "; ".join(f"{sid}: {msg}" for sid, msg in errors.items())

        self.db.add(db_models.ReconciliationRuns(
            id=result.run_id,
            period_start=result.period_start,
            period_end=result.period_end,
            run_started_at=started_at,
            status=result.status.value,
            reconciled_count=result.reconciled_count,
            skipped_count=result.skipped_count,
            failed_student_ids=[str(sid) for sid in result.failures],
            run_duration_ms=duration_ms,
            trigger_source=trigger_source,
            error_message=error_message,
        ))
        await self.db.commit()

    # --- Public Methods ---

    async def reconcile_all(
        self,
        period_start: date,
        period_end: date,
        student_ids: Optional[list[UUID]] = None,
        trigger_source: Optional[str] = None
    ) -> finance_models.ReconciliationResult:
        """
        Closes [period_start, period_end] for every student, or only for
        student_ids when given (e.g. the failures of an earlier run).

        Commits once per student, so anything pending on the session is
        committed first. A failing student is rolled back on its own and
        reported in `failures`; the batch carries on.
        """
        if period_end < period_start:
            raise InvalidPeriodError(f"Period end {period_end} is before period start {period_start}.")

        run_id = uuid.uuid4()
        started_at = datetime.now(timezone.utc)
        clock = time.perf_counter()
        log.info(f"Starting reconciliation run {run_id} for period {period_start} .. {period_end}.")

        await self.db.commit()

        target_ids = await self._get_target_student_ids(student_ids)
        result = finance_models.ReconciliationResult(
            run_id=run_id,
            period_start=period_start,
            period_end=period_end
        )
        errors: dict[UUID, str] = {}

        if student_ids is not None:
            for missing_id in set(student_ids) - set(target_ids):
                log.warning(f"Requested student {missing_id} does not exist.")
                result.failures.append(missing_id)
                errors[missing_id] = "Student not found."

        for student_id in target_ids:
            try:
                reconciled = await self._reconcile_student(
                    student_id, period_start, period_end, run_id, started_at.date()
                )
                await self.db.commit()
            except Exception as e:
                await self.db.rollback()
                log.error(f"Reconciliation failed for student {student_id}: {e}", exc_info=True)
                result.failures.append(student_id)
                errors[student_id] = str(e)
                continue

            if reconciled:
                result.reconciled.append(student_id)
            else:
                result.skipped.append(student_id)

        duration_ms = int((time.perf_counter() - clock) * 1000)
        await self._record_run(result, started_at, duration_ms, trigger_source, errors)

        log.info(
            f"Reconciliation run {run_id} finished with status {result.status.value}: "
            f"{result.reconciled_count} reconciled, {result.skipped_count} skipped, {len(result.failures)} failed."
        )
        if result.failures:
            log.warning(f"Re-run reconciliation for these students: {[str(s) for s in result.failures]}")
        return result

    async def list_runs(self) -> list[finance_models.ReconciliationRunRead]:
        stmt = select(db_models.ReconciliationRuns).order_by(db_models.ReconciliationRuns.run_started_at.desc())
        result = await self.db.execute(stmt)
        return [finance_models.ReconciliationRunRead.model_validate(run) for run in result.scalars().all()]

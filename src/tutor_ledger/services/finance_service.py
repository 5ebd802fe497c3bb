'''

'''
from typing import Optional, Annotated
from uuid import UUID
from decimal import Decimal
from pydantic import ValidationError
from fastapi import Depends
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import BalanceStatusEnum
from ..models import finance as finance_models
from ..core.ledger import ZERO, derive_status, status_of, latest_date
from ..common.logger import log
from ..common.exceptions import LedgerError, InvalidAmountError, UnknownStudentError, PaymentNotFoundError

CENT = Decimal("0.01")

# --- Service 1: Balance Ledger ---

class LedgerService:
    """
    Keeps every student's current_balance consistent with the payments
    applied to it. All writes go through a locked read of the balance row.
    """
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    # --- 1. Internal Data-Fetching ---

    async def _get_balance_internal(self, student_id: UUID) -> db_models.StudentBalances:
        stmt = select(db_models.StudentBalances).options(
            selectinload(db_models.StudentBalances.student)
        ).filter(db_models.StudentBalances.student_id == student_id)
        result = await self.db.execute(stmt)
        balance = result.scalars().first()
        if not balance:
            log.warning(f"No balance row for student {student_id}.")
            raise UnknownStudentError(f"Student {student_id} not found.")
        return balance

    async def _get_balance_for_update(self, student_id: UUID) -> db_models.StudentBalances:
        """
        Fetches the balance row with a row-level lock (SELECT ... FOR UPDATE)
        so two writers on one student never interleave their read-modify-write.
        The mapped version column catches anything that slips past the lock.
        """
        stmt = select(db_models.StudentBalances).options(
            selectinload(db_models.StudentBalances.student)
        ).filter(
            db_models.StudentBalances.student_id == student_id
        ).with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        balance = result.scalars().first()
        if not balance:
            log.warning(f"No balance row for student {student_id}.")
            raise UnknownStudentError(f"Student {student_id} not found.")
        return balance

    async def _get_payment_student_id(self, payment_id: UUID) -> UUID:
        """Owner of an open payment; read without a lock to find which balance to lock."""
        stmt = select(db_models.Payments.student_id).filter(db_models.Payments.id == payment_id)
        student_id = (await self.db.execute(stmt)).scalar()
        if student_id is None:
            log.warning(f"Tried to fetch non-existent payment id: {payment_id}")
            raise PaymentNotFoundError(f"Payment {payment_id} not found.")
        return student_id

    async def _get_payment_for_update(self, payment_id: UUID, student_id: UUID) -> db_models.Payments:
        """
        Re-reads the payment once the owner's balance is locked. A reconciliation
        that committed in between has archived it, so it is gone by now.
        """
        stmt = select(db_models.Payments).filter(
            db_models.Payments.id == payment_id,
            db_models.Payments.student_id == student_id
        ).execution_options(populate_existing=True)
        payment = (await self.db.execute(stmt)).scalars().first()
        if not payment:
            log.warning(f"Payment {payment_id} was closed or moved before it could be removed.")
            raise PaymentNotFoundError(f"Payment {payment_id} not found.")
        return payment

    async def _transaction_ref_exists(self, transaction_ref: str) -> bool:
        """
        Checks open and archived payments, so a statement re-imported after
        its period was closed is still recognized.
        """
        open_stmt = select(db_models.Payments.id).filter(
            db_models.Payments.transaction_ref == transaction_ref
        ).limit(1)
        if (await self.db.execute(open_stmt)).scalars().first():
            return True
        archived_stmt = select(db_models.PaymentsArchive.id).filter(
            db_models.PaymentsArchive.transaction_ref == transaction_ref
        ).limit(1)
        return (await self.db.execute(archived_stmt)).scalars().first() is not None

    async def _latest_open_payment_date(self, student_id: UUID):
        stmt = select(func.max(db_models.Payments.payment_date)).filter(
            db_models.Payments.student_id == student_id
        )
        return (await self.db.execute(stmt)).scalar()

    # --- 2. Read Methods ---

    async def get_balance(self, student_id: UUID) -> finance_models.BalanceRead:
        balance = await self._get_balance_internal(student_id)
        return self._format_balance_for_api(balance)

    async def get_status(self, student_id: UUID) -> finance_models.BalanceStatusRead:
        """Returns paid / pending / excess and the matching magnitude."""
        balance = await self._get_balance_internal(student_id)
        status, amount = status_of(balance.current_balance)
        return finance_models.BalanceStatusRead(student_id=student_id, status=status, amount=amount)

    async def list_payments(self, student_id: Optional[UUID] = None) -> list[finance_models.PaymentRead]:
        """Lists the payments of the open period, newest first."""
        stmt = select(db_models.Payments)
        if student_id:
            stmt = stmt.filter(db_models.Payments.student_id == student_id)
        stmt = stmt.order_by(db_models.Payments.payment_date.desc(), db_models.Payments.created_at.desc())
        result = await self.db.execute(stmt)
        return [finance_models.PaymentRead.model_validate(p) for p in result.scalars().all()]

    # --- 3. Write Methods ---

    async def apply_payment(self, payment_data: dict) -> finance_models.PaymentApplyResult:
        """
        Records a payment and subtracts it from the student's balance.

        With a transaction_ref that was already recorded (open or archived)
        nothing changes and the result is flagged as a duplicate. The ref
        check runs after the balance row is locked, so two imports of the
        same statement line for one student cannot both get through.
        """
        log.info(f"Attempting to apply payment for student {payment_data.get('student_id')}")
        try:
            input_model = finance_models.PaymentCreate.model_validate(payment_data)
            # Checked after rounding: 0.004 is stored as 0.00
            amount = input_model.amount.quantize(CENT)
            if amount <= ZERO:
                raise InvalidAmountError(f"Payment amount must be positive, got {input_model.amount}.")
            transaction_ref = (input_model.transaction_ref or "").strip() or None

            balance = await self._get_balance_for_update(input_model.student_id)

            if transaction_ref and await self._transaction_ref_exists(transaction_ref):
                log.warning(f"Skipping duplicate transaction ref {transaction_ref} for student {input_model.student_id}.")
                return finance_models.PaymentApplyResult(
                    applied=False,
                    duplicate=True,
                    balance=self._format_balance_for_api(balance)
                )

            new_payment = db_models.Payments(
                student_id=input_model.student_id,
                amount=amount,
                payment_date=input_model.payment_date,
                method=input_model.method.value,
                transaction_ref=transaction_ref,
                remarks=input_model.remarks,
            )
            # The ref check only serializes writers of this student; another
            # student's writer can still commit the same ref first.
            try:
                async with self.db.begin_nested():
                    self.db.add(new_payment)
                    await self.db.flush()
            except IntegrityError as e:
                if not transaction_ref or "transaction_ref" not in str(e.orig):
                    raise
                log.warning(f"Transaction ref {transaction_ref} was recorded concurrently; skipping for student {input_model.student_id}.")
                balance = await self._get_balance_for_update(input_model.student_id)
                return finance_models.PaymentApplyResult(
                    applied=False,
                    duplicate=True,
                    balance=self._format_balance_for_api(balance)
                )

            # No clamping: paying past zero leaves a credit (excess)
            balance.current_balance = balance.current_balance - amount
            balance.total_paid = balance.total_paid + amount
            balance.last_payment_date = latest_date(balance.last_payment_date, input_model.payment_date)
            await self.db.flush()

            log.info(f"Applied payment {new_payment.id} of {amount} to student {input_model.student_id}; balance now {balance.current_balance}.")
            return finance_models.PaymentApplyResult(
                applied=True,
                payment=finance_models.PaymentRead.model_validate(new_payment),
                balance=self._format_balance_for_api(balance)
            )

        except ValidationError as e:
            log.error(f"Pydantic validation failed for applying payment. Data: {payment_data}, Error: {e}")
            raise
        except LedgerError:
            raise
        except Exception as e:
            log.error(f"Error in apply_payment: {e}", exc_info=True)
            raise

    async def remove_payment(self, payment_id: UUID) -> finance_models.BalanceRead:
        """
        Reverses a single payment: the amount goes back onto the balance and
        last_payment_date falls back to the newest remaining payment.

        The payment is read again after the balance is locked, so a payment
        archived by a reconciliation in the meantime is reported as not found
        instead of being credited back onto the next period.
        """
        log.info(f"Attempting to remove payment {payment_id}")
        try:
            student_id = await self._get_payment_student_id(payment_id)
            balance = await self._get_balance_for_update(student_id)
            payment = await self._get_payment_for_update(payment_id, student_id)
            amount = payment.amount

            balance.current_balance = balance.current_balance + amount
            balance.total_paid = max(balance.total_paid - amount, ZERO)

            await self.db.delete(payment)
            await self.db.flush()

            balance.last_payment_date = await self._latest_open_payment_date(student_id)
            await self.db.flush()

            log.info(f"Removed payment {payment_id}; balance of student {student_id} now {balance.current_balance}.")
            return self._format_balance_for_api(balance)

        except LedgerError:
            raise
        except Exception as e:
            log.error(f"Database error removing payment {payment_id}: {e}", exc_info=True)
            raise

    # --- API Formatting Method ---

    def _format_balance_for_api(self, balance: db_models.StudentBalances) -> finance_models.BalanceRead:
        """Formats a single balance row (with its student loaded) for the API."""
        student = balance.student
        return finance_models.BalanceRead(
            student_id=balance.student_id,
            student_code=student.student_code,
            student_name=student.name,
            current_balance=balance.current_balance,
            total_paid=balance.total_paid,
            total_fees=balance.total_fees,
            last_payment_date=balance.last_payment_date,
            last_reconciled_period_end=balance.last_reconciled_period_end,
        )

# --- Service 2: Status / Reminder Projection ---

class BalanceStatusService:
    """
    Read-only projection of the ledger into paid / pending / excess buckets.
    Every bucket decision goes through derive_status.
    """
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        ledger_service: Annotated[LedgerService, Depends(LedgerService)]
    ):
        self.db = db
        self.ledger_service = ledger_service

    async def _get_all_balances(self) -> list[db_models.StudentBalances]:
        stmt = select(db_models.StudentBalances).join(
            db_models.Students
        ).options(
            selectinload(db_models.StudentBalances.student)
        ).order_by(db_models.Students.name)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_status_counts(self) -> finance_models.StatusCounts:
        """Counts each student exactly once: paid + pending + excess == total."""
        log.info("Computing balance status counts.")
        counts = {status: 0 for status in BalanceStatusEnum}
        for balance in await self._get_all_balances():
            counts[derive_status(balance.current_balance)] += 1
        return finance_models.StatusCounts(
            paid=counts[BalanceStatusEnum.PAID],
            pending=counts[BalanceStatusEnum.PENDING],
            excess=counts[BalanceStatusEnum.EXCESS],
        )

    async def list_balances(self, status: Optional[BalanceStatusEnum] = None) -> list[finance_models.BalanceRead]:
        balances = await self._get_all_balances()
        if status is not None:
            balances = [b for b in balances if derive_status(b.current_balance) == status]
        return [self.ledger_service._format_balance_for_api(b) for b in balances]

    async def list_reminders(self) -> list[finance_models.ReminderRead]:
        """Pending students with the amount due, largest first."""
        reminders = []
        for balance in await self._get_all_balances():
            status, amount = status_of(balance.current_balance)
            if status != BalanceStatusEnum.PENDING:
                continue
            student = balance.student
            reminders.append(finance_models.ReminderRead(
                student_id=student.id,
                student_code=student.student_code,
                student_name=student.name,
                phone=student.phone,
                amount_due=amount,
            ))
        reminders.sort(key=lambda r: r.amount_due, reverse=True)
        return reminders

'''
Student enrollment, fee changes and withdrawal.
Every student owns exactly one balance row, created here together with it.
'''
from typing import Annotated
from uuid import UUID
from decimal import Decimal
from pydantic import ValidationError
from fastapi import Depends
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..database.engine import get_db_session
from ..database import models as db_models
from ..models import student as student_models
from ..common.logger import log
from ..common.exceptions import LedgerError, UnknownStudentError, DuplicateStudentCodeError

ZERO = Decimal("0")


class StudentService:
    """
    Service for the student records the ledger is keyed on.
    """
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    # --- 1. Internal Data-Fetching ---

    async def get_student_by_id_internal(self, student_id: UUID) -> db_models.Students:
        """
        Fetches a single student with its balance row loaded.
        Raises UnknownStudentError if the student does not exist.
        """
        stmt = select(db_models.Students).options(
            selectinload(db_models.Students.balance)
        ).filter(db_models.Students.id == student_id)
        result = await self.db.execute(stmt)
        student = result.scalars().first()
        if not student:
            log.warning(f"Tried to fetch non-existent student id: {student_id}")
            raise UnknownStudentError(f"Student {student_id} not found.")
        return student

    async def get_student_by_code(self, student_code: str) -> db_models.Students | None:
        stmt = select(db_models.Students).filter(db_models.Students.student_code == student_code)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    # --- 2. Read Methods ---

    async def get_student(self, student_id: UUID) -> student_models.StudentRead:
        student = await self.get_student_by_id_internal(student_id)
        return student_models.StudentRead.model_validate(student)

    async def list_students(self) -> list[student_models.StudentRead]:
        log.info("Fetching all students.")
        stmt = select(db_models.Students).order_by(db_models.Students.name)
        result = await self.db.execute(stmt)
        return [student_models.StudentRead.model_validate(s) for s in result.scalars().all()]

    # --- 3. Write Methods ---

    async def create_student(self, student_data: dict) -> student_models.StudentRead:
        """
        Enrolls a student and initializes the balance row.
        A new student owes the first fee, unless mark_as_paid is set.
        """
        log.info(f"Attempting to create student with code {student_data.get('student_code')}")
        try:
            input_model = student_models.StudentCreate.model_validate(student_data)

            if await self.get_student_by_code(input_model.student_code):
                log.warning(f"Student code {input_model.student_code} is already taken.")
                raise DuplicateStudentCodeError(f"Student code '{input_model.student_code}' already exists.")

            new_student = db_models.Students(
                student_code=input_model.student_code,
                name=input_model.name,
                fee=input_model.fee,
                class_name=input_model.class_name,
                email=input_model.email,
                phone=input_model.phone,
                notes=input_model.notes,
            )
            new_student.balance = db_models.StudentBalances(
                current_balance=ZERO if input_model.mark_as_paid else input_model.fee,
                total_paid=ZERO,
                total_fees=input_model.fee,
            )

            self.db.add(new_student)
            await self.db.flush()
            # Load server-side defaults (created_at) for the response
            await self.db.refresh(new_student)

            log.info(f"Created student {new_student.id} ({new_student.student_code}).")
            return student_models.StudentRead.model_validate(new_student)

        except ValidationError as e:
            log.error(f"Pydantic validation failed for creating student. Data: {student_data}, Error: {e}")
            raise
        except LedgerError:
            raise
        except Exception as e:
            log.error(f"Error in create_student: {e}", exc_info=True)
            raise

    async def update_fee(self, student_id: UUID, fee: Decimal) -> student_models.StudentRead:
        """
        Changes the recurring fee. The current balance is left alone: the new
        fee is picked up by the next reconciliation via total_fees.
        """
        log.info(f"Updating fee of student {student_id} to {fee}")
        input_model = student_models.StudentFeeUpdate.model_validate({"fee": fee})
        student = await self.get_student_by_id_internal(student_id)

        stmt = select(db_models.StudentBalances).filter(
            db_models.StudentBalances.student_id == student_id
        ).with_for_update().execution_options(populate_existing=True)
        balance = (await self.db.execute(stmt)).scalars().first()
        if balance is None:
            raise UnknownStudentError(f"Balance for student {student_id} not found.")

        student.fee = input_model.fee
        balance.total_fees = input_model.fee
        await self.db.flush()
        return student_models.StudentRead.model_validate(student)

    async def delete_student(self, student_id: UUID) -> bool:
        """
        Withdraws a student. Cascades to the balance, the open payments and
        the archived payments.
        """
        log.info(f"Attempting to delete student {student_id}")
        stmt = select(db_models.Students).options(
            selectinload(db_models.Students.balance),
            selectinload(db_models.Students.payments)
        ).filter(db_models.Students.id == student_id)
        student = (await self.db.execute(stmt)).scalars().first()
        if not student:
            raise UnknownStudentError(f"Student {student_id} not found.")

        try:
            await self.db.execute(
                delete(db_models.PaymentsArchive).where(db_models.PaymentsArchive.student_id == student_id)
            )
            await self.db.delete(student)
            await self.db.flush()
            return True
        except Exception as e:
            log.error(f"Database error deleting student {student_id}: {e}", exc_info=True)
            raise

'''
Bulk payment intake from bank / UPI statements.

The upload front-end parses the file; this service receives the rows,
matches each one to a student and pushes it through the ledger with the
duplicate-reference guard on.
'''
import re
from datetime import date
from typing import Annotated, Optional
from uuid import UUID
from pydantic import ValidationError
from fastapi import Depends
from fastapi.encoders import jsonable_encoder
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import PaymentMethodEnum, UploadStatusEnum, UploadErrorTypeEnum
from ..models import finance as finance_models
from ..common.logger import log
from ..common.config import settings
from ..common.exceptions import InvalidAmountError, UnknownStudentError
from .finance_service import LedgerService


class PaymentImportService:
    """Applies statement rows one by one and keeps an upload record."""

    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        ledger_service: Annotated[LedgerService, Depends(LedgerService)]
    ):
        self.db = db
        self.ledger_service = ledger_service
        self.student_code_pattern = re.compile(settings.STUDENT_CODE_PATTERN)

    async def _get_student_codes(self) -> dict[str, UUID]:
        result = await self.db.execute(select(db_models.Students.student_code, db_models.Students.id))
        return {code.upper(): student_id for code, student_id in result.all()}

    def _resolve_student_code(self, row: finance_models.PaymentImportRow, known_codes: dict[str, UUID]) -> Optional[str]:
        """
        Uses the explicit student_code column if present, otherwise the first
        code-looking token of the remark that belongs to a known student.
        """
        if row.student_code and row.student_code.strip():
            return row.student_code.strip().upper()
        if row.remarks:
            for candidate in self.student_code_pattern.findall(row.remarks.upper()):
                if candidate in known_codes:
                    return candidate
        return None

    async def import_statement(self, file_name: str, rows: list[dict]) -> finance_models.PaymentImportResult:
        """
        Each row runs in its own transaction: a bad row is rolled back and
        recorded as an upload error without touching the rows around it.
        """
        log.info(f"Importing {len(rows)} statement row(s) from {file_name}.")
        await self.db.commit()

        known_codes = await self._get_student_codes()
        processed = skipped = 0
        error_rows: list[dict] = []

        for index, raw_row in enumerate(rows, start=1):
            row_number = raw_row.get("row_number") or index
            student_reference = raw_row.get("student_code") or raw_row.get("remarks")

            def record_error(error_type: UploadErrorTypeEnum, message: str):
                log.warning(f"Row {row_number} of {file_name} rejected: {message}")
                error_rows.append({
                    "row_number": row_number,
                    "student_reference": student_reference,
                    "error_type": error_type.value,
                    "error_message": message,
                    "raw_data": jsonable_encoder(raw_row),
                })

            try:
                row = finance_models.PaymentImportRow.model_validate(raw_row)
            except ValidationError as e:
                record_error(UploadErrorTypeEnum.PROCESSING_ERROR, f"Invalid row: {e.errors()[0]['msg']}")
                continue

            student_code = self._resolve_student_code(row, known_codes)
            if student_code is None or student_code not in known_codes:
                record_error(UploadErrorTypeEnum.STUDENT_NOT_FOUND, f"Student not found: {student_reference}")
                continue

            try:
                outcome = await self.ledger_service.apply_payment({
                    "student_id": known_codes[student_code],
                    "amount": row.amount,
                    "payment_date": row.payment_date or date.today(),
                    "method": PaymentMethodEnum.IMPORT,
                    "transaction_ref": row.transaction_ref,
                    "remarks": row.remarks or f"Uploaded from {file_name}",
                })
                await self.db.commit()
            except InvalidAmountError as e:
                await self.db.rollback()
                record_error(UploadErrorTypeEnum.INVALID_AMOUNT, str(e))
                continue
            except UnknownStudentError as e:
                await self.db.rollback()
                record_error(UploadErrorTypeEnum.STUDENT_NOT_FOUND, str(e))
                continue
            except Exception as e:
                await self.db.rollback()
                log.error(f"Unexpected error on row {row_number} of {file_name}: {e}", exc_info=True)
                record_error(UploadErrorTypeEnum.PROCESSING_ERROR, f"Error processing row: {e}")
                continue

            if outcome.applied:
                processed += 1
            else:
                skipped += 1

        failed = len(error_rows)
        if failed == 0:
            status = UploadStatusEnum.COMPLETED
        elif processed or skipped:
            status = UploadStatusEnum.COMPLETED_WITH_ERRORS
        else:
            status = UploadStatusEnum.FAILED

        upload = db_models.PaymentUploads(
            file_name=file_name,
            status=status.value,
            total_records=len(rows),
            processed_records=processed,
            skipped_records=skipped,
            failed_records=failed,
        )
        upload.errors = [db_models.PaymentUploadErrors(**error) for error in error_rows]
        self.db.add(upload)
        await self.db.flush()
        upload_id = upload.id
        await self.db.commit()

        log.info(f"Upload {upload_id} ({file_name}): processed {processed}, skipped {skipped}, failed {failed}.")
        return finance_models.PaymentImportResult(
            upload_id=upload_id,
            status=status,
            total=len(rows),
            processed=processed,
            skipped=skipped,
            failed=failed,
            errors=[f"Row {e['row_number']}: {e['error_message']}" for e in error_rows],
        )

from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, Date, DateTime, Enum, ForeignKeyConstraint, Index, Integer, JSON, Numeric, PrimaryKeyConstraint, Text, UniqueConstraint, Uuid, func, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
import datetime
import decimal
import uuid

from .db_enums import PaymentMethodEnum, RunStatusEnum, UploadStatusEnum, UploadErrorTypeEnum

class Base(DeclarativeBase):
    pass


# JSONB on PostgreSQL, plain JSON elsewhere (the test suite runs on SQLite)
JSONType = JSON().with_variant(JSONB(), 'postgresql')

# Shared by payments and payments_archive so the type is created once
PaymentMethodType = Enum(*PaymentMethodEnum.get_all_names(), name='payment_method_enum')


class Students(Base):
    __tablename__ = 'students'
    __table_args__ = (
        CheckConstraint('fee >= 0', name='non_negative_fee'),
        PrimaryKeyConstraint('id', name='students_pkey'),
        UniqueConstraint('student_code', name='students_student_code_key')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_code: Mapped[str] = mapped_column(Text)
    name: Mapped[str] = mapped_column(Text)
    fee: Mapped[decimal.Decimal] = mapped_column(Numeric(12, 2), server_default=text('0'))
    class_name: Mapped[Optional[str]] = mapped_column(Text)
    email: Mapped[Optional[str]] = mapped_column(Text)
    phone: Mapped[Optional[str]] = mapped_column(Text)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), server_default=func.now())
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), server_default=func.now(), onupdate=func.now())

    balance: Mapped[Optional['StudentBalances']] = relationship(
        'StudentBalances',
        back_populates='student',
        uselist=False,
        cascade='all, delete-orphan'
    )
    payments: Mapped[list['Payments']] = relationship(
        'Payments',
        back_populates='student',
        cascade='all, delete-orphan'
    )


class StudentBalances(Base):
    __tablename__ = 'student_balances'
    __table_args__ = (
        CheckConstraint('total_paid >= 0', name='non_negative_total_paid'),
        ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE', name='student_balances_student_id_fkey'),
        PrimaryKeyConstraint('id', name='student_balances_pkey'),
        UniqueConstraint('student_id', name='student_balances_student_id_key')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    # > 0 owed, < 0 credit, 0 settled. The only input to the derived status.
    current_balance: Mapped[decimal.Decimal] = mapped_column(Numeric(12, 2), server_default=text('0'))
    total_paid: Mapped[decimal.Decimal] = mapped_column(Numeric(12, 2), server_default=text('0'))
    total_fees: Mapped[decimal.Decimal] = mapped_column(Numeric(12, 2), server_default=text('0'))
    last_payment_date: Mapped[Optional[datetime.date]] = mapped_column(Date)
    last_reconciled_period_end: Mapped[Optional[datetime.date]] = mapped_column(Date)
    version: Mapped[int] = mapped_column(Integer, server_default=text('1'))
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), server_default=func.now(), onupdate=func.now())

    student: Mapped['Students'] = relationship('Students', back_populates='balance')

    __mapper_args__ = {'version_id_col': version}


class Payments(Base):
    __tablename__ = 'payments'
    __table_args__ = (
        CheckConstraint('amount > 0', name='positive_amount'),
        ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE', name='payments_student_id_fkey'),
        PrimaryKeyConstraint('id', name='payments_pkey'),
        UniqueConstraint('transaction_ref', name='payments_transaction_ref_key'),
        Index('idx_payments_student_date', 'student_id', 'payment_date')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    amount: Mapped[decimal.Decimal] = mapped_column(Numeric(12, 2))
    payment_date: Mapped[datetime.date] = mapped_column(Date)
    method: Mapped[str] = mapped_column(PaymentMethodType, server_default=text("'manual'"))
    transaction_ref: Mapped[Optional[str]] = mapped_column(Text)
    remarks: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), server_default=func.now())

    student: Mapped['Students'] = relationship('Students', back_populates='payments')


class PaymentsArchive(Base):
    __tablename__ = 'payments_archive'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='payments_archive_pkey'),
        Index('idx_payments_archive_student', 'student_id'),
        Index('idx_payments_archive_transaction_ref', 'transaction_ref')
    )

    # Keeps the original payment id
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    amount: Mapped[decimal.Decimal] = mapped_column(Numeric(12, 2))
    payment_date: Mapped[datetime.date] = mapped_column(Date)
    method: Mapped[str] = mapped_column(PaymentMethodType)
    transaction_ref: Mapped[Optional[str]] = mapped_column(Text)
    remarks: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(True))
    archived_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), server_default=func.now())
    reconciliation_run_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)


class ReconciliationRuns(Base):
    __tablename__ = 'reconciliation_runs'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='reconciliation_runs_pkey'),
        Index('idx_reconciliation_runs_period', 'period_start', 'period_end')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    period_start: Mapped[datetime.date] = mapped_column(Date)
    period_end: Mapped[datetime.date] = mapped_column(Date)
    run_started_at: Mapped[datetime.datetime] = mapped_column(DateTime(True))
    status: Mapped[str] = mapped_column(Enum(*RunStatusEnum.get_all_names(), name='run_status_enum'))
    reconciled_count: Mapped[int] = mapped_column(Integer, server_default=text('0'))
    skipped_count: Mapped[int] = mapped_column(Integer, server_default=text('0'))
    failed_student_ids: Mapped[list] = mapped_column(JSONType, default=list)
    run_duration_ms: Mapped[Optional[int]] = mapped_column(BigInteger)
    trigger_source: Mapped[Optional[str]] = mapped_column(Text)
    error_message: Mapped[Optional[str]] = mapped_column(Text)


class PaymentUploads(Base):
    __tablename__ = 'payment_uploads'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='payment_uploads_pkey'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    file_name: Mapped[str] = mapped_column(Text)
    status: Mapped[str] = mapped_column(Enum(*UploadStatusEnum.get_all_names(), name='upload_status_enum'))
    total_records: Mapped[int] = mapped_column(Integer, server_default=text('0'))
    processed_records: Mapped[int] = mapped_column(Integer, server_default=text('0'))
    skipped_records: Mapped[int] = mapped_column(Integer, server_default=text('0'))
    failed_records: Mapped[int] = mapped_column(Integer, server_default=text('0'))
    upload_date: Mapped[datetime.datetime] = mapped_column(DateTime(True), server_default=func.now())

    errors: Mapped[list['PaymentUploadErrors']] = relationship(
        'PaymentUploadErrors',
        back_populates='upload',
        cascade='all, delete-orphan'
    )


class PaymentUploadErrors(Base):
    __tablename__ = 'payment_errors'
    __table_args__ = (
        ForeignKeyConstraint(['upload_id'], ['payment_uploads.id'], ondelete='CASCADE', name='payment_errors_upload_id_fkey'),
        PrimaryKeyConstraint('id', name='payment_errors_pkey')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    upload_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    error_type: Mapped[str] = mapped_column(Enum(*UploadErrorTypeEnum.get_all_names(), name='upload_error_type_enum'))
    error_message: Mapped[str] = mapped_column(Text)
    row_number: Mapped[Optional[int]] = mapped_column(Integer)
    student_reference: Mapped[Optional[str]] = mapped_column(Text)
    raw_data: Mapped[Optional[dict]] = mapped_column(JSONType)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), server_default=func.now())

    upload: Mapped['PaymentUploads'] = relationship('PaymentUploads', back_populates='errors')

'''

'''
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

# --- 1. API Input Models (for POST/PATCH) ---

class StudentCreate(BaseModel):
    """
    Validates the request body for enrolling a new student.
    """
    student_code: str = Field(min_length=1)
    name: str = Field(min_length=1)
    fee: Decimal = Field(ge=0)
    class_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    # Starts the student settled (balance 0) instead of owing the first fee
    mark_as_paid: bool = False

class StudentFeeUpdate(BaseModel):
    """
    Validates a fee change. The new fee is used from the next reconciliation on.
    """
    fee: Decimal = Field(ge=0)


# --- 2. API Output Models (for GET) ---

class StudentRead(BaseModel):
    id: UUID
    student_code: str
    name: str
    fee: Decimal
    class_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

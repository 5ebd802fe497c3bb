'''
Static enums mirrored by the database ENUM columns.
'''
import enum


class ListableEnum(str, enum.Enum):
    """A custom Enum base class that can list all member values."""
    @classmethod
    def get_all_names(cls) -> list[str]:
        return [member.value for member in cls]


class PaymentMethodEnum(ListableEnum):
    MANUAL = 'manual'
    CASH = 'cash'
    ONLINE = 'online'
    IMPORT = 'import'


class BalanceStatusEnum(ListableEnum):
    PAID = 'paid'
    PENDING = 'pending'
    EXCESS = 'excess'


class RunStatusEnum(ListableEnum):
    SUCCESS = 'SUCCESS'
    PARTIAL = 'PARTIAL'
    FAILED = 'FAILED'


class UploadStatusEnum(ListableEnum):
    COMPLETED = 'completed'
    COMPLETED_WITH_ERRORS = 'completed_with_errors'
    FAILED = 'failed'


class UploadErrorTypeEnum(ListableEnum):
    STUDENT_NOT_FOUND = 'student_not_found'
    INVALID_AMOUNT = 'invalid_amount'
    PROCESSING_ERROR = 'processing_error'

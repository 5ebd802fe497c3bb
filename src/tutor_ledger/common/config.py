'''
Holds all the configurations
'''
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """
    Manages application configuration using environment variables.
    """
    # Application Metadata
    APP_NAME: str = "TutorLedger Backend"
    APP_VERSION: str = "0.1.0"
    APP_DESCRIPTION: str = "Student fee balances and monthly reconciliation for independent tutors."
    TEST_MODE: bool = False
    # Create missing tables at start-up (no migration tool in front of the app)
    CREATE_TABLES_ON_STARTUP: bool = False

    # Database URL
    DATABASE_URL_PROD: str
    DATABASE_URL_TEST: str
    @property
    def database_url(self) -> str:
        """
        Dynamically returns the correct database URL based on the test_mode flag.
        """
        if self.TEST_MODE:
            return self.DATABASE_URL_TEST
        return self.DATABASE_URL_PROD

    # Billing policy
    CURRENCY: str = "INR"
    # When a credit fully absorbs the new period fee, count the fee as paid
    # (total_paid = fee, last_payment_date = run date) instead of leaving 0.
    RECORD_ABSORBED_FEE_AS_PAID: bool = True
    # Move closed-period payments to payments_archive instead of deleting them.
    ARCHIVE_CLOSED_PAYMENTS: bool = True

    # Bulk import: finds the student code inside a statement remark
    STUDENT_CODE_PATTERN: str = r"\b[A-Z]{2,5}-?\d{2,6}\b"

    # Other settings
    LOG_LEVEL: str = "INFO"
    BACKEND_CORS_ORIGINS: list[str] = []

    class Config:
        env_file = ".env" # automatically loads the .env

# Create a single, importable instance of the settings
settings = Settings()

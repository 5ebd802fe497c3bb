from decimal import Decimal
from datetime import date

MONTHLY_FEE = Decimal("1000.00")

# May 2024 billing period
PERIOD_START = date(2024, 5, 1)
PERIOD_END = date(2024, 5, 31)
IN_PERIOD_DATE = date(2024, 5, 15)
NEXT_PERIOD_DATE = date(2024, 6, 3)

NEXT_PERIOD_START = date(2024, 6, 1)
NEXT_PERIOD_END = date(2024, 6, 30)

STATEMENT_FILE_NAME = "hdfc_may_2024.xlsx"

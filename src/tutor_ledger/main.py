'''
FastAPI application: lifespan, middleware, error mapping and routers.
'''
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from .database.engine import create_db_engine_and_session_factory, create_all_tables, dispose_db_engine
from .common.logger import log
from .common.config import settings
from .common.exceptions import (
    LedgerError,
    InvalidAmountError,
    UnknownStudentError,
    PaymentNotFoundError,
    DuplicateStudentCodeError,
    InvalidPeriodError,
    PartialReconciliationFailure,
)
from .api import students, payments, balances, reconciliations

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Handles application startup and shutdown events.
    """
    # --- On App Startup ---
    log.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}...")
    create_db_engine_and_session_factory()
    if settings.CREATE_TABLES_ON_STARTUP:
        await create_all_tables()

    yield # --- Application is now running ---

    # --- On App Shutdown ---
    if not settings.TEST_MODE:
        log.info("Application lifespan shutdown...")
        await dispose_db_engine()
    else:
        log.info("Skipping database engine disposal in TEST_MODE.")


# ---- CREATING THE APP ----
app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# --- Add CORS Middleware ---
origins = [
    # URL of testing frontend
    "http://localhost",
    "http://localhost:3000",
]

# Extend with environment-specific origins
origins.extend(settings.BACKEND_CORS_ORIGINS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],)
# --- End of CORS Middleware ---

# --- Domain error -> HTTP status ---
ERROR_STATUS_CODES = {
    # 422 spelled out: the Starlette constant was renamed
    InvalidAmountError: 422,
    InvalidPeriodError: 422,
    UnknownStudentError: status.HTTP_404_NOT_FOUND,
    PaymentNotFoundError: status.HTTP_404_NOT_FOUND,
    DuplicateStudentCodeError: status.HTTP_409_CONFLICT,
    PartialReconciliationFailure: status.HTTP_409_CONFLICT,
}

@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    status_code = ERROR_STATUS_CODES.get(type(exc), status.HTTP_400_BAD_REQUEST)
    log.warning(f"{request.method} {request.url.path} -> {status_code}: {exc}")
    content = {"detail": str(exc)}
    if isinstance(exc, PartialReconciliationFailure):
        content["failed_student_ids"] = [str(s) for s in exc.student_ids]
    return JSONResponse(status_code=status_code, content=content)

@app.get("/")
async def health_check():
    return {"status": "ok", "message": f"{settings.APP_NAME} is running"}

app.include_router(students.router)
app.include_router(payments.router)
app.include_router(balances.router)
app.include_router(reconciliations.router)

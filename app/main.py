from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text

from app.db.base import get_db
from app.core.config import settings
from app.core.logging import configure_logging, get_logger
from app.routers import events as events_router
from app.routers import places as places_router
from app.routers import digests as digests_router
from app.core.errors import (
    AppException,
    app_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

configure_logging()
log = get_logger(__name__)

app = FastAPI(
    title="Stay Digest API",
    description=(
        "**Location event ingestion and stay digests**\n\n"
        "Devices post enter / exit / dwell events idempotently (keyed by `event_id`). "
        "A periodic worker folds unprocessed location events into stay segments, "
        "stores a digest and forwards it to the notification channel.\n\n"
        "All routes except `/health` require `Authorization: Bearer <API_TOKEN>`. "
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(events_router.router)
app.include_router(places_router.router)
app.include_router(digests_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down. No auth required.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception as exc:
        log.warning("health.db_unreachable", error=str(exc))
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}

import logging
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from fleetpay.core.config import settings
from fleetpay.database import check_database_connection, db_settings
from fleetpay.routes.payouts import router as payouts_router

logging.basicConfig(
    level=getattr(logging, (settings.LOG_LEVEL or "INFO").upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SESSION_SECRET_KEY,
    same_site="lax",
    https_only=settings.is_production,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(payouts_router)


@app.get("/health")
def health() -> dict[str, str]:
    database = "connected"
    status_value = "healthy"
    try:
        check_database_connection()
    except Exception:
        logger.exception("health: database check failed")
        database = "disconnected"
        status_value = "degraded"

    return {
        "status": status_value,
        "database": database,
        "environment": settings.ENV,
    }


@app.get("/heartbeat")
def heartbeat() -> dict[str, str | int]:
    return {
        "service": settings.APP_NAME,
        "status": "alive",
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
        "db_host": db_settings.db_host,
        "db_port": db_settings.db_port,
    }

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from coopdesk.api import auth, payroll, vouchers
from coopdesk.core.config import settings
from coopdesk.db.base import SessionLocal
from coopdesk.services.scheduler import get_scheduler_status, start_scheduler, stop_scheduler
from datetime import datetime, timezone
import logging

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

logger = logging.getLogger(__name__)
logger.info("Starting Coopdesk payroll API")

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.ENABLE_SCHEDULER:
        start_scheduler()
    yield
    stop_scheduler()


app = FastAPI(
    title="Coopdesk Payroll API",
    description="Cooperative payroll deduction vouchers and month-end reconciliation",
    version=VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

# Include routers
app.include_router(auth.router)
app.include_router(payroll.router)
app.include_router(vouchers.router)


@app.get("/")
def root():
    """Root endpoint."""
    return {"message": "Coopdesk Payroll API", "version": VERSION}


@app.get("/api/health")
def health_check():
    """Health check endpoint: API and database connectivity."""
    db_status = "unreachable"
    db_error = None
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError as e:
        db_error = str(e)
    finally:
        db.close()

    status = "healthy" if db_status == "connected" else "degraded"

    return {
        "status": status,
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "api": "ok",
            "database": db_status,
        },
        "scheduler": get_scheduler_status(),
        **({"database_error": db_error} if db_error else {})
    }

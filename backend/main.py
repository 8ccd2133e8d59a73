from dotenv import load_dotenv
load_dotenv()

import asyncio
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from database import get_db

# ENV
from config.env import ENV, CORS_ALLOWED_ORIGINS, LOG_LEVEL, validate_production_env

# ROUTES
from routes.admin import router as admin_router
from routes.seller import router as seller_router
from routes.webhooks import router as webhook_router

# ERRORS
from utils.errors import LedgerError, ReconciliationFailure
from utils.indexes import ensure_indexes

# WORKERS
from workers.commission_reconcile_worker import commission_reconcile_worker
from workers.audit_cleanup_worker import audit_cleanup_worker

logging.basicConfig(
    level=LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("commission_ledger")

validate_production_env()
logger.info("ENV: %s", ENV)

app = FastAPI(
    title="Seller Commission Ledger API",
    version="1.0.0",
    docs_url=None if ENV == "production" else "/docs",
    redoc_url=None if ENV == "production" else "/redoc",
    openapi_url=None if ENV == "production" else "/openapi.json",
)

# -----------------------------
# CORS
# -----------------------------

allowed_origins = [origin.strip() for origin in CORS_ALLOWED_ORIGINS if origin.strip()]
if not allowed_origins:
    allowed_origins = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------------
# LEDGER ERRORS
# -----------------------------

@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    if isinstance(exc, ReconciliationFailure):
        logger.error(
            "RECONCILIATION_FAILURE path=%s seller=%s",
            request.url.path,
            exc.seller_id,
        )

    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

# -----------------------------
# ROUTES
# -----------------------------

app.include_router(seller_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(webhook_router, prefix="/api")

# -----------------------------
# HEALTH CHECKS
# -----------------------------

@app.get("/api/health")
async def health():

    return {"status": "ok"}

@app.get("/api/health/db")
async def health_db():
    db = get_db()
    await db.command("ping")
    return {"status": "mongodb connected"}

# -----------------------------
# STARTUP (ONE PLACE ONLY)
# -----------------------------

@app.on_event("startup")
async def start_background_workers():
    await ensure_indexes(get_db())

    asyncio.create_task(commission_reconcile_worker())
    asyncio.create_task(audit_cleanup_worker())

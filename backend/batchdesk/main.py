"""
Batch Desk - FastAPI application entry point.

Wires together:
- structured JSON logging and the X-Request-ID middleware
- CORS for the coordinator web client
- routers for batches, points, best performers and attendance
- /health and / info endpoints

Layout:
- routes/: HTTP handlers and their pydantic schemas
- services/: matching, attendance, ledger and reporting logic
- models/: SQLAlchemy models
"""

import time
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from batchdesk.logging_config import (
    setup_logging, get_logger, log_with_context,
    request_id_var, generate_request_id
)
from batchdesk.routes import batches, points, best_performers, attendance
from batchdesk.database import IS_SQLITE, create_tables

# Registers every table on Base.metadata before create_tables()
from batchdesk.models import Batch, Student, Person, PointUpdate, WeeklyBestPerformer, SessionReport  # noqa: F401

APP_VERSION = "1.0.0"

setup_logging()
logger = get_logger("http")

if IS_SQLITE:
    logger.info("SQLite database, creating tables at startup")
    create_tables()

app = FastAPI(
    title="Batch Desk",
    description=(
        "Training batch administration: rosters, meeting-export attendance matching, "
        "a points ledger with reset/restore, and weekly best performers."
    ),
    version=APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc"
)

# TODO: restrict allow_origins to the deployed coordinator client once its domain is fixed
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"]
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Tag the request with a fresh id, echo it back and log start and end."""
    req_id = generate_request_id()
    request_id_var.set(req_id)
    started = time.time()
    route = f"{request.method} {request.url.path}"

    log_with_context(logger, "INFO", f"Request started: {route}",
                     context={"request_id": req_id},
                     extra_data={
                         "ip": request.client.host if request.client else "unknown",
                         "query_params": dict(request.query_params)
                     })

    response = await call_next(request)
    response.headers["X-Request-ID"] = req_id

    log_with_context(logger, "INFO", f"Request completed: {route} → {response.status_code}",
                     context={"request_id": req_id},
                     extra_data={
                         "duration_ms": round((time.time() - started) * 1000, 2),
                         "status_code": response.status_code
                     })
    return response


app.include_router(batches.router, tags=["Batches"])
app.include_router(points.router, tags=["Points"])
app.include_router(best_performers.router, tags=["Best Performers"])
app.include_router(attendance.router, tags=["Attendance"])


@app.get("/health", tags=["Health"])
def health_check():
    return {"status": "healthy", "service": "batchdesk-backend", "version": APP_VERSION}


@app.get("/", tags=["Root"])
def root():
    """Service info and a map of the main endpoints."""
    return {
        "service": "Batch Desk",
        "version": APP_VERSION,
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "batches": "GET|POST /api/batches",
            "roster": "PUT /api/batches/{id}/students",
            "attendance_import": "POST /api/batches/{id}/attendance/import",
            "session_reports": "GET|POST /api/session-reports",
            "points": "POST /api/batches/{id}/points",
            "points_leaderboard": "GET /api/batches/{id}/points/leaderboard",
            "points_reset": "POST /api/batches/{id}/points/reset",
            "points_restore": "POST /api/batches/{id}/points/restore",
            "best_performers": "GET /api/best-performers",
            "best_performer_save": "POST /api/batches/{id}/best-performers/save-and-reset",
            "best_performer_manual": "POST /api/batches/{id}/best-performers/manual"
        }
    }

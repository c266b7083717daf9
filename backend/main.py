"""
GradeWeights — Weighted course grade engine
FastAPI backend entry point.
"""

import logging
import os
import time

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from grading.letter_grades import grade_scale_thresholds
from routes.grades import router as grades_router
from routes.export import router as export_router

# Load environment
load_dotenv()

INSTITUTION_NAME = os.getenv("INSTITUTION_NAME", "My School")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()
# Comma-separated allowed origins, e.g. http://localhost:5173,https://app.example.com
raw_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
ALLOWED_ORIGINS = [o.strip() for o in raw_origins.split(",") if o.strip()]

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="GradeWeights API",
    description=(
        "Weighted course grades — group weight redistribution, zero-fill of "
        "overdue work and letter grade mapping."
    ),
    version="1.0.0",
)

# CORS — allow the React dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    t0 = time.perf_counter()
    logger.info("REQUEST  %s %s", request.method, request.url.path)
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - t0) * 1000
    logger.info("RESPONSE %s %s status=%d time=%.1fms", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


# Register route modules
app.include_router(grades_router, prefix="/api/grades", tags=["Grades"])
app.include_router(export_router, prefix="/api/export", tags=["Export"])


@app.get("/api/health")
async def health_check():
    return {
        "status": "ok",
        "institution_name": INSTITUTION_NAME,
    }


@app.get("/api/config")
async def get_config():
    """Return server configuration to the frontend."""
    return {
        "institution_name": INSTITUTION_NAME,
        "grade_scale": grade_scale_thresholds(),
    }

"""
Exam Cohort Analytics — rank, distribution and psychometric analysis
of periodic exam results.
FastAPI backend entry point.
"""

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from engine.settings import AnalysisSettings

# Load environment before route modules read it
load_dotenv()

from routes.analyze import router as analyze_router  # noqa: E402
from routes.reports import router as reports_router  # noqa: E402
from routes.state import router as state_router  # noqa: E402

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Comma-separated allowed origins, e.g. http://localhost:5173,https://app.example.com
raw_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
ALLOWED_ORIGINS = [o.strip() for o in raw_origins.split(",") if o.strip()]

app = FastAPI(
    title="Exam Cohort Analytics API",
    description=(
        "Longitudinal exam analytics — ranks, admission lines, "
        "class comparison, exam parameters and progress streaks."
    ),
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register route modules
app.include_router(analyze_router, prefix="/api/analyze", tags=["Analytics"])
app.include_router(state_router, prefix="/api/state", tags=["State"])
app.include_router(reports_router, prefix="/api/reports", tags=["Reports"])


@app.get("/api/health")
async def health_check():
    return {"status": "ok"}


@app.get("/api/config")
async def get_config():
    """Return default analysis settings to the frontend."""
    return AnalysisSettings().to_dict()

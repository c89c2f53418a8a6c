"""
Report routes — Excel ledger export.
"""

import logging
import os
import uuid
from pathlib import Path

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from engine.records import students_from_payload, subjects_of
from engine.report_builder import generate_ledger_excel
from engine.settings import AnalysisSettings
from engine.storage import DEFAULT_DATA_DIR

logger = logging.getLogger(__name__)

router = APIRouter()

REPORTS_DIR = Path(os.getenv("DATA_DIR") or DEFAULT_DATA_DIR) / "reports"
REPORTS_DIR.mkdir(parents=True, exist_ok=True)


def _safe_unlink(path: str):
    """File deletion after the response is sent."""
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not remove report %s: %s", path, e)


@router.post("/ledger-excel")
async def ledger_excel(payload: dict):
    """Export every student's period history with ranks and admission lines."""
    data = payload.get("students")
    if not data:
        raise HTTPException(400, "No students provided.")
    try:
        students = students_from_payload(data)
        settings = AnalysisSettings.from_dict(payload.get("settings"))
    except (TypeError, ValueError) as e:
        raise HTTPException(400, str(e))

    subjects = payload.get("subjects") or subjects_of(students)
    report_id = str(uuid.uuid4())[:8]
    output_path = REPORTS_DIR / f"ledger_{report_id}.xlsx"

    generate_ledger_excel(str(output_path), students, subjects, settings)
    logger.info("Generated ledger %s for %d students", output_path.name, len(students))

    return FileResponse(
        str(output_path),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        filename=f"Score_Ledger_{report_id}.xlsx",
        background=BackgroundTask(_safe_unlink, str(output_path)),
    )

"""
State routes — load, save and clear the persisted analysis.
"""

from fastapi import APIRouter, HTTPException

from engine.records import students_from_payload
from engine.settings import AnalysisSettings
from engine.storage import clear_state, load_state, save_state

router = APIRouter()


@router.get("")
async def get_state():
    """Return the stored students and settings."""
    state = load_state()
    if state is None:
        raise HTTPException(404, "No saved analysis found.")
    students, settings = state
    return {
        "students": [s.to_dict() for s in students],
        "settings": settings.to_dict(),
    }


@router.put("")
async def put_state(payload: dict):
    """
    Replace the stored analysis.
    Expects: { "students": [...], "settings": {...} }
    """
    if not payload.get("students"):
        raise HTTPException(400, "No students provided.")
    try:
        students = students_from_payload(payload["students"])
        settings = AnalysisSettings.from_dict(payload.get("settings"))
    except (TypeError, ValueError) as e:
        raise HTTPException(400, str(e))
    save_state(students, settings)
    return {"saved": len(students)}


@router.delete("")
async def delete_state():
    return {"cleared": clear_state()}

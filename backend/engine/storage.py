"""
storage.py — Persist the student collection and settings as one JSON record.

The whole analysis lives under a single well-known key; saving replaces it.
"""

import json
import logging
import os
from pathlib import Path
from typing import List, Optional, Tuple

from engine.models import StudentRecord
from engine.records import students_from_payload
from engine.settings import AnalysisSettings

logger = logging.getLogger(__name__)

STATE_KEY = "currentAnalysis"
DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"


def _data_dir() -> Path:
    return Path(os.getenv("DATA_DIR") or DEFAULT_DATA_DIR)


def _state_path() -> Path:
    return _data_dir() / f"{STATE_KEY}.json"


def save_state(students: List[StudentRecord], settings: AnalysisSettings) -> Path:
    """Write the full state, replacing any previous one."""
    path = _state_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "students": [s.to_dict() for s in students],
        "settings": settings.to_dict(),
    }
    tmp = path.with_suffix(".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False)
    tmp.replace(path)
    logger.info("Saved %d students to %s", len(students), path)
    return path


def load_state() -> Optional[Tuple[List[StudentRecord], AnalysisSettings]]:
    """Return (students, settings), or None when nothing usable is stored."""
    path = _state_path()
    if not path.is_file():
        return None
    try:
        with open(path, encoding="utf-8") as f:
            payload = json.load(f)
        students = students_from_payload(payload.get("students"))
        settings = AnalysisSettings.from_dict(payload.get("settings"))
    except (json.JSONDecodeError, ValueError, AttributeError) as exc:
        logger.warning("Ignoring unreadable state file %s: %s", path, exc)
        return None
    return students, settings


def clear_state() -> bool:
    """Delete the stored state. Returns True if something was removed."""
    path = _state_path()
    if not path.is_file():
        return False
    path.unlink()
    logger.info("Cleared stored state at %s", path)
    return True

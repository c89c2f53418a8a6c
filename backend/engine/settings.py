"""
settings.py — Threshold configuration passed explicitly to the engine.

The persisted `settings` object (manual thresholds, comparison thresholds,
threshold mode) round-trips through AnalysisSettings.from_dict / to_dict.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

# Admission lines ordered tightest-first.
ADMISSION_LABELS: Tuple[str, ...] = ("QingBei", "C9", "HighScore", "Prestige", "TeKong")
NOT_ADMITTED = "NotAdmitted"

DEFAULT_THRESHOLDS: Dict[str, float] = {
    "QingBei": 5,
    "C9": 30,
    "HighScore": 100,
    "Prestige": 300,
    "TeKong": 600,
}
DEFAULT_COMPARISON_THRESHOLDS: List[int] = [50, 100, 200, 400]

THRESHOLD_TYPES = ("rank", "percent")


def _default_threshold_type() -> str:
    return os.getenv("THRESHOLD_TYPE", "rank").strip().lower()


@dataclass
class AnalysisSettings:
    """Admission-line configuration for one analysis session."""

    manual_thresholds: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_THRESHOLDS))
    comparison_thresholds: List[int] = field(default_factory=lambda: list(DEFAULT_COMPARISON_THRESHOLDS))
    threshold_type: str = field(default_factory=_default_threshold_type)
    labels: Tuple[str, ...] = ADMISSION_LABELS

    def __post_init__(self):
        if self.threshold_type not in THRESHOLD_TYPES:
            raise ValueError(
                f"Unknown threshold type: {self.threshold_type}. Use 'rank' or 'percent'."
            )
        self.labels = tuple(self.labels)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AnalysisSettings":
        data = data or {}
        kwargs: Dict[str, Any] = {}
        if data.get("manual_thresholds"):
            kwargs["manual_thresholds"] = {
                str(k): float(v) for k, v in data["manual_thresholds"].items()
            }
        if data.get("comparison_thresholds"):
            kwargs["comparison_thresholds"] = [int(v) for v in data["comparison_thresholds"]]
        if data.get("threshold_type"):
            kwargs["threshold_type"] = str(data["threshold_type"]).strip().lower()
        if data.get("labels"):
            kwargs["labels"] = tuple(str(l) for l in data["labels"])
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "manual_thresholds": dict(self.manual_thresholds),
            "comparison_thresholds": list(self.comparison_thresholds),
            "threshold_type": self.threshold_type,
            "labels": list(self.labels),
        }

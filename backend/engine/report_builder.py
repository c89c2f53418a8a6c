"""
report_builder.py — Excel export of the longitudinal score ledger.

Sheets:
- Ledger: one row per student per period with ranks and admission line
- Overview: per-period participation, averages and admission distribution
- One sheet per class with that class's ledger rows
"""

from typing import Any, Dict, List, Optional

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils.dataframe import dataframe_to_rows

from engine.distribution import get_admission_distribution
from engine.models import StudentRecord
from engine.numeric import round_to
from engine.ranks import (
    all_periods,
    calculate_class_historical_ranks,
    calculate_historical_ranks,
    get_effective_cohort_size,
)
from engine.settings import NOT_ADMITTED, AnalysisSettings
from engine.snapshot import get_period_snapshot
from engine.thresholds import get_admission_category, resolve_thresholds

HEADER_COLOR = "1a1a2e"


def build_ledger_frame(
    students: List[StudentRecord],
    subjects: List[str],
    settings: Optional[AnalysisSettings] = None,
) -> pd.DataFrame:
    """Flatten every student's history into ledger rows."""
    settings = settings or AnalysisSettings()
    school_ranks = calculate_historical_ranks(students)
    class_ranks = calculate_class_historical_ranks(students)

    resolved = {}
    for period in all_periods(students):
        rows = get_period_snapshot(students, period, school_ranks)
        thresholds, threshold_type = resolve_thresholds(rows, settings)
        population = get_effective_cohort_size(period, rows, school_ranks)
        resolved[period] = (thresholds, threshold_type, population)

    records: List[Dict[str, Any]] = []
    for s in students:
        for snap in s.history:
            rank = school_ranks.get(snap.period, {}).get(s.name)
            thresholds, threshold_type, population = resolved[snap.period]
            record: Dict[str, Any] = {"Name": s.name, "Class": s.class_name, "Period": snap.period}
            for sub in subjects:
                record[sub] = snap.score(sub)
            record["Total"] = snap.total_score
            record["School Rank"] = rank
            record["Class Rank"] = class_ranks.get(snap.period, {}).get(s.name)
            record["Line"] = (
                get_admission_category(
                    rank, thresholds, threshold_type, population, snap.status, settings.labels
                )
                if rank else "-"
            )
            records.append(record)
    return pd.DataFrame(records)


def build_overview_frame(
    students: List[StudentRecord],
    settings: Optional[AnalysisSettings] = None,
) -> pd.DataFrame:
    """One row per period with head counts per admission line."""
    settings = settings or AnalysisSettings()
    school_ranks = calculate_historical_ranks(students)

    records = []
    for period in all_periods(students):
        rows = get_period_snapshot(students, period, school_ranks)
        sat = [r for r in rows if r.is_ranked]
        thresholds, threshold_type = resolve_thresholds(rows, settings)
        dist = {
            d["name"]: d["value"]
            for d in get_admission_distribution(rows, thresholds, threshold_type, settings.labels)
        }
        record: Dict[str, Any] = {
            "Period": period,
            "Participants": len(sat),
            "Average Total": round_to(sum(r.current_total for r in sat) / len(sat), 2) if sat else 0,
            "Max Total": max((r.current_total for r in sat), default=0),
        }
        for label in list(settings.labels) + [NOT_ADMITTED]:
            record[label] = dist.get(label, 0)
        records.append(record)
    return pd.DataFrame(records)


def generate_ledger_excel(
    output_path: str,
    students: List[StudentRecord],
    subjects: List[str],
    settings: Optional[AnalysisSettings] = None,
):
    """Write the ledger workbook to `output_path`."""
    ledger = build_ledger_frame(students, subjects, settings)
    overview = build_overview_frame(students, settings)
    # openpyxl cannot store NaN; blank cells instead.
    ledger = ledger.astype(object).where(ledger.notna(), None)

    header_font = Font(bold=True, color="FFFFFF", size=11)
    header_fill = PatternFill(start_color=HEADER_COLOR, end_color=HEADER_COLOR, fill_type="solid")
    green_fill = PatternFill(start_color="d5f5e3", end_color="d5f5e3", fill_type="solid")
    red_fill = PatternFill(start_color="fadbd8", end_color="fadbd8", fill_type="solid")
    thin_border = Border(
        left=Side(style="thin"), right=Side(style="thin"),
        top=Side(style="thin"), bottom=Side(style="thin"),
    )

    def _style_sheet(ws, dataframe):
        """Apply formatting to a worksheet."""
        for cell in ws[1]:
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal="center")
            cell.border = thin_border

        line_idx = None
        for idx, col_name in enumerate(dataframe.columns, 1):
            if col_name == "Line":
                line_idx = idx
                break

        for row in ws.iter_rows(min_row=2, max_row=ws.max_row):
            for cell in row:
                cell.border = thin_border
                cell.alignment = Alignment(horizontal="center")
            if line_idx:
                line = row[line_idx - 1].value
                if line == NOT_ADMITTED:
                    row[line_idx - 1].fill = red_fill
                elif line and line != "-":
                    row[line_idx - 1].fill = green_fill

        ws.freeze_panes = "A2"
        for col_cells in ws.columns:
            max_len = max(len(str(cell.value or "")) for cell in col_cells)
            ws.column_dimensions[col_cells[0].column_letter].width = min(max_len + 4, 30)

    wb = Workbook()

    # ── Sheet 1: Ledger ─────────────────────────────────────────────
    ws_ledger = wb.active
    ws_ledger.title = "Ledger"
    ws_ledger.sheet_properties.tabColor = HEADER_COLOR
    for row in dataframe_to_rows(ledger, index=False, header=True):
        ws_ledger.append(row)
    _style_sheet(ws_ledger, ledger)

    # ── Sheet 2: Overview ───────────────────────────────────────────
    ws_overview = wb.create_sheet(title="Overview")
    for row in dataframe_to_rows(overview, index=False, header=True):
        ws_overview.append(row)
    _style_sheet(ws_overview, overview)

    # ── Per-class sheets ────────────────────────────────────────────
    if not ledger.empty:
        tab_colors = ["0f3460", "e94560", "2ecc71", "f39c12", "9b59b6", "1abc9c"]
        for i, cls in enumerate(ledger["Class"].dropna().unique()):
            cls_df = ledger[ledger["Class"] == cls]
            safe_name = (str(cls).replace("/", "-")[:28]) or f"Class {i + 1}"
            if safe_name in wb.sheetnames:
                safe_name = f"{safe_name[:24]} ({i + 1})"
            ws = wb.create_sheet(title=safe_name)
            ws.sheet_properties.tabColor = tab_colors[i % len(tab_colors)]
            for row in dataframe_to_rows(cls_df, index=False, header=True):
                ws.append(row)
            _style_sheet(ws, cls_df)

    wb.save(output_path)

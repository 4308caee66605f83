# judging/routers/leaderboard.py
from __future__ import annotations

import threading
from datetime import datetime
from io import BytesIO
from typing import List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from sqlalchemy.orm import Session

from judging import crud, schemas
from judging.auth import get_db, require_admin
from judging.leaderboard import LeaderboardEntry, rank_movements, ranking_order
from judging.scoring_config import CRITERIA

router = APIRouter(prefix="/api/leaderboard", tags=["leaderboard"])

CRITERION_LABELS = {
    "project_design": "Project Design",
    "functionality": "Functionality",
    "presentation": "Presentation",
    "web_design": "Web Design",
    "impact": "Impact",
}


class RankingSnapshot:
    """
    Ordered participant ids of the last standings served by this process.
    Only used to report rank movement; the leaderboard itself is never cached.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._order: Optional[List[int]] = None

    def swap(self, order: List[int]) -> Optional[List[int]]:
        with self._lock:
            previous = self._order
            self._order = list(order)
            return previous

    def reset(self) -> None:
        with self._lock:
            self._order = None


ranking_snapshot = RankingSnapshot()


def _entry_payload(entry: LeaderboardEntry) -> dict:
    return {
        "id": entry.participant_id,
        "team_name": entry.team_name,
        "project_title": entry.project_title,
        "created_at": entry.created_at,
        "scores": entry.scores.as_dict(),
    }


@router.get("", response_model=List[schemas.LeaderboardEntryOut])
def get_leaderboard(db: Session = Depends(get_db)):
    """
    Full leaderboard, recomputed from the stored scores on every request.
    Sorted by final score (desc), ties by participant id (asc).
    """
    entries = crud.build_leaderboard(db)
    return [_entry_payload(e) for e in entries]


@router.get("/standings", response_model=List[schemas.StandingOut])
def get_standings(db: Session = Depends(get_db)):
    """
    Leaderboard with rank, judge count and movement relative to the previous
    standings request handled by this process.
    """
    entries = crud.build_leaderboard(db)
    previous = ranking_snapshot.swap(ranking_order(entries))
    movements = {m.participant_id: m for m in rank_movements(previous, entries)}

    out = []
    for e in entries:
        m = movements[e.participant_id]
        payload = _entry_payload(e)
        payload.update(
            rank=e.rank,
            judge_count=e.judge_count,
            movement=m.movement,
            previous_rank=m.previous_rank,
            position_change=m.position_change,
        )
        out.append(payload)
    return out


def create_leaderboard_workbook(entries: List[LeaderboardEntry], weights: dict) -> BytesIO:
    """Leaderboard as a single-sheet Excel workbook, scores shown to two decimals."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Leaderboard"

    headers = ["Rank", "Team", "Project Title", "Judges"]
    headers += [f"{CRITERION_LABELS[c]} ({weights[c] * 100:g}%)" for c in CRITERIA]
    headers.append("Final Score")

    header_fill = PatternFill(start_color="0F766E", end_color="0F766E", fill_type="solid")
    header_font = Font(bold=True, color="FFFFFF", size=11)
    header_alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
    border = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )
    podium_fills = {
        1: PatternFill(start_color="FCD34D", end_color="FCD34D", fill_type="solid"),
        2: PatternFill(start_color="FDE68A", end_color="FDE68A", fill_type="solid"),
        3: PatternFill(start_color="FEF3C7", end_color="FEF3C7", fill_type="solid"),
    }

    for col_idx, header in enumerate(headers, start=1):
        cell = ws.cell(row=1, column=col_idx)
        cell.value = header
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = header_alignment
        cell.border = border

    score_columns = range(5, 5 + len(CRITERIA) + 1)
    for row_idx, entry in enumerate(entries, start=2):
        scores = entry.scores.as_dict()
        row = [entry.rank, entry.team_name, entry.project_title, entry.judge_count]
        row += [scores[c] for c in CRITERIA]
        row.append(scores["final_score"])

        for col_idx, value in enumerate(row, start=1):
            cell = ws.cell(row=row_idx, column=col_idx)
            cell.value = value
            cell.border = border
            if col_idx in score_columns:
                cell.number_format = '0.00'
                cell.alignment = Alignment(horizontal="right", vertical="center")
            if entry.rank in podium_fills:
                cell.fill = podium_fills[entry.rank]

    column_widths = [8, 24, 36, 8] + [16] * len(CRITERIA) + [12]
    for col_idx, width in enumerate(column_widths, start=1):
        ws.column_dimensions[get_column_letter(col_idx)].width = width

    ws.freeze_panes = "A2"

    output = BytesIO()
    wb.save(output)
    output.seek(0)
    return output


@router.get("/export")
def export_leaderboard(db: Session = Depends(get_db), _=Depends(require_admin)):
    config = crud.get_scoring_config(db)
    entries = crud.build_leaderboard(db)
    excel_file = create_leaderboard_workbook(entries, config.weights)
    filename = f"Leaderboard_{datetime.utcnow().strftime('%Y%m%d_%H%M')}.xlsx"
    print(f"[LEADERBOARD] Exported {len(entries)} entries to {filename}")
    return StreamingResponse(
        iter([excel_file.getvalue()]),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )

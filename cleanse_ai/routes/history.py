from typing import List

from fastapi import APIRouter, Depends

from cleanse_ai.schemas.cleaning import CleaningReport, HistoryStats
from cleanse_ai.services.history import ReportHistory, get_history

router = APIRouter(prefix="/history", tags=["history"])


@router.get("", response_model=List[CleaningReport])
def list_history(history: ReportHistory = Depends(get_history)):
    """Past run reports, newest first."""
    return history.entries()


@router.delete("", status_code=204)
def clear_history(history: ReportHistory = Depends(get_history)):
    history.clear()


@router.get("/stats", response_model=HistoryStats)
def history_stats(history: ReportHistory = Depends(get_history)):
    """Totals across the stored runs plus the most recent ones for trend display."""
    return history.stats()

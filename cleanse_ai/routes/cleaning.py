from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import ValidationError

from cleanse_ai.schemas.cleaning import CleaningOptions, CleaningRun, CleanRequest
from cleanse_ai.services.history import ReportHistory, get_history
from cleanse_ai.services.ingest import decode_upload, parse_delimited_text, validate_upload
from cleanse_ai.services.pipeline import run_cleaning

router = APIRouter(prefix="/clean", tags=["cleaning"])


def _parse_options(raw: Optional[str]) -> CleaningOptions:
    if not raw:
        return CleaningOptions()
    try:
        return CleaningOptions.model_validate_json(raw)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid cleaning options: {e}")


@router.post("", response_model=CleaningRun)
async def clean_rows(
    payload: CleanRequest,
    history: ReportHistory = Depends(get_history),
):
    """Clean rows sent as JSON. Columns default to the keys of the rows."""
    return await run_cleaning(
        payload.rows,
        payload.options,
        columns=payload.columns,
        file_name=payload.file_name,
        history=history,
    )


@router.post("/upload", response_model=CleaningRun)
async def clean_upload(
    file: UploadFile = File(...),
    options: Optional[str] = Form(None),
    history: ReportHistory = Depends(get_history),
):
    """
    Upload a CSV and clean it in one go.

    ``options`` is a JSON-encoded CleaningOptions form field; omitted means defaults.
    """
    raw = await file.read()
    validate_upload(file.filename, len(raw))
    cleaning_options = _parse_options(options)

    rows, columns = parse_delimited_text(decode_upload(raw))
    return await run_cleaning(
        rows,
        cleaning_options,
        columns=columns,
        file_name=file.filename,
        history=history,
    )

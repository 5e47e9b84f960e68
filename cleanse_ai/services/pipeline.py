"""
Cleaning run orchestration.

  1. Rule-based cleaning        (dedup + per-cell normalisation)
  2. Schema validation          (if validate_schema and a schema is given)
  3. AI anomaly scan            (if use_ai; the only await)
  4. Report assembly            (counts are additive, never undone)
  5. History persistence        (newest first, capped)

A failure in stages 1-4 aborts the run and nothing is saved.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from cleanse_ai.exceptions import HistoryStoreError, PipelineError
from cleanse_ai.schemas.cleaning import (
    AIProvider,
    Anomaly,
    CleaningOptions,
    CleaningReport,
    CleaningRun,
    Row,
)
from cleanse_ai.services.ai_analysis import AnomalyProvider, find_anomalies, get_anomaly_provider
from cleanse_ai.services.cleaning import clean, infer_columns
from cleanse_ai.services.history import ReportHistory
from cleanse_ai.services.schema_validation import validate_against_schema

logger = logging.getLogger(__name__)

DEFAULT_FILE_NAME = "Untitled.csv"
FAILURE_MESSAGE = "Something went wrong during the cleaning process."


def representative_anomalies(anomalies: List[Anomaly]) -> Dict[Tuple[int, str], Anomaly]:
    """First anomaly found for each (row, column) cell."""
    by_cell: Dict[Tuple[int, str], Anomaly] = {}
    for a in anomalies:
        by_cell.setdefault((a.row, a.column), a)
    return by_cell


async def run_cleaning(
    rows: List[Row],
    options: CleaningOptions,
    *,
    columns: Optional[List[str]] = None,
    file_name: Optional[str] = None,
    history: Optional[ReportHistory] = None,
    provider_factory: Callable[[AIProvider], AnomalyProvider] = get_anomaly_provider,
) -> CleaningRun:
    columns = list(dict.fromkeys(columns)) if columns is not None else infer_columns(rows)
    file_name = file_name or DEFAULT_FILE_NAME
    logger.info(f"Cleaning run started: {file_name} ({len(rows)} rows, {len(columns)} columns)")

    try:
        # ── Rule-based cleaning ───────────────────────────────────────
        cleaned_rows, counts = clean(rows, options, columns)

        anomalies: List[Anomaly] = []

        # ── Schema validation ─────────────────────────────────────────
        if options.validate_schema and options.schema_fields:
            schema_issues = validate_against_schema(cleaned_rows, options.schema_fields, columns)
            anomalies.extend(schema_issues)
            counts["validation_issues_count"] = len(schema_issues)
            counts["total_changes"] += len(schema_issues)

        # ── AI scan ───────────────────────────────────────────────────
        if options.use_ai:
            provider = provider_factory(options.ai_provider)
            ai_anomalies = await find_anomalies(cleaned_rows, columns, provider, options.ai_model or None)
            anomalies.extend(ai_anomalies)
            counts["anomalies_detected"] = len(ai_anomalies)
            counts["total_changes"] += len(ai_anomalies)

        report = CleaningReport(
            id=uuid.uuid4().hex,
            date=datetime.now(timezone.utc),
            file_name=file_name,
            row_count=len(cleaned_rows),
            **counts,
        )
    except Exception as e:
        logger.exception(f"Cleaning run aborted: {file_name}")
        raise PipelineError(FAILURE_MESSAGE) from e

    if history is not None:
        try:
            history.save(report)
        except HistoryStoreError as e:
            logger.warning(f"Report {report.id} not saved to history: {e}")

    logger.info(
        f"Cleaning run finished: {file_name}: {report.total_changes} changes, "
        f"{len(anomalies)} anomalies, {report.row_count} rows"
    )
    return CleaningRun(
        rows=cleaned_rows,
        columns=columns,
        anomalies=anomalies,
        cell_anomalies=list(representative_anomalies(anomalies).values()),
        report=report,
    )

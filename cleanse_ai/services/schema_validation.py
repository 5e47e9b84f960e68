"""
SchemaValidator — per-cell checks against user-declared SchemaFields.

Runs after rule-based cleaning, so it sees cleaned values. Rows are never
modified; every finding becomes an Anomaly tagged ``schema``. Bad data never
raises: unparseable numbers/dates are findings and a broken regex in a field
is logged and skipped.
"""

import logging
import math
import re
from typing import Any, Dict, List, Optional, Pattern

from dateutil import parser as dateutil_parser

from cleanse_ai.schemas.cleaning import Anomaly, AnomalyType, FieldType, Row, SchemaField
from cleanse_ai.services.cleaning import infer_columns, to_text

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")


def parse_number(text: str) -> Optional[float]:
    """Finite decimal numbers only: '1_000', 'inf' and 'nan' are rejected."""
    if "_" in text:
        return None
    try:
        num = float(text)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(num):
        return None
    return num


def is_parseable_date(text: str) -> bool:
    try:
        dateutil_parser.parse(text)
    except (ValueError, TypeError, OverflowError):
        return False
    return True


def _fmt(bound: float) -> str:
    return to_text(bound)


class SchemaValidator:
    def __init__(self, schema: List[SchemaField], columns: Optional[List[str]] = None):
        self.schema = schema
        self.columns = columns
        self.anomalies: List[Anomaly] = []
        self._patterns: Dict[str, Optional[Pattern]] = {}

        for field in schema:
            if field.regex:
                self._patterns[field.name] = self._compile(field)

    @staticmethod
    def _compile(field: SchemaField) -> Optional[Pattern]:
        try:
            return re.compile(field.regex)
        except re.error as e:
            logger.warning(f"Invalid regex for field '{field.name}' ({field.regex!r}): {e}. Skipping pattern check.")
            return None

    def _flag(self, row_index: int, field: SchemaField, value: Any, reason: str, suggestion: str):
        self.anomalies.append(
            Anomaly(
                row=row_index,
                column=field.name,
                value=value,
                reason=reason,
                suggestion=suggestion,
                type=AnomalyType.SCHEMA,
            )
        )

    def check_cell(self, row_index: int, field: SchemaField, value: Any) -> None:
        text = to_text(value).strip()

        if field.required and not text:
            self._flag(row_index, field, value, f"Missing required field: {field.name}", "Provide a valid value")
            return
        if not text:
            return

        if field.type == FieldType.NUMBER:
            num = parse_number(text)
            if num is None:
                self._flag(row_index, field, value, "Value is not a valid number", "Correct numeric format")
            else:
                if field.min is not None and num < field.min:
                    self._flag(
                        row_index, field, value,
                        f"Value below minimum ({_fmt(field.min)})",
                        f"Increase value to at least {_fmt(field.min)}",
                    )
                if field.max is not None and num > field.max:
                    self._flag(
                        row_index, field, value,
                        f"Value above maximum ({_fmt(field.max)})",
                        f"Decrease value to at most {_fmt(field.max)}",
                    )

        elif field.type == FieldType.EMAIL:
            if not EMAIL_PATTERN.fullmatch(text):
                self._flag(row_index, field, value, "Invalid email format", "Enter a valid email address")

        elif field.type == FieldType.DATE:
            if not is_parseable_date(text):
                self._flag(row_index, field, value, "Invalid date format", "Use YYYY-MM-DD format")

        pattern = self._patterns.get(field.name)
        if pattern is not None and not pattern.search(text):
            self._flag(
                row_index, field, value,
                f"Value does not match pattern: {field.regex}",
                "Align with required pattern",
            )

    def run_all(self, rows: List[Row]) -> List[Anomaly]:
        self.anomalies = []
        columns = set(self.columns if self.columns is not None else infer_columns(rows))
        active = []
        for field in self.schema:
            if field.name in columns:
                active.append(field)
            else:
                logger.debug(f"Schema field '{field.name}' has no matching column; skipped")

        for row_index, row in enumerate(rows):
            for field in active:
                self.check_cell(row_index, field, row.get(field.name))

        return self.anomalies


def validate_against_schema(
    rows: List[Row], schema: List[SchemaField], columns: Optional[List[str]] = None
) -> List[Anomaly]:
    return SchemaValidator(schema, columns).run_all(rows)

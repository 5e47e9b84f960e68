"""
RuleBasedCleaner — deterministic row/cell cleaning.

Phase 1: Structural cleanup  (remove_duplicates)
Phase 2: Per-cell normalisation  (trim, case, email check, date rewrite)

Every cell of the output is text. Nothing here consults an external service.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from cleanse_ai.schemas.cleaning import CleaningOptions, Row

logger = logging.getLogger(__name__)

# Whole value is capitals, digits and whitespace ("ACME CORP 2").
ALL_CAPS_PATTERN = re.compile(r"[A-Z0-9\s]+")

# D/M/Y with a 1-2 digit day and month and a 2 or 4 digit year.
SLASH_DATE_PATTERN = re.compile(r"([0-9]{1,2})/([0-9]{1,2})/([0-9]{4}|[0-9]{2})")


def to_text(value: Any) -> str:
    """Render a cell the way it is compared and displayed."""
    if value is None:
        return ""
    if isinstance(value, float):
        if pd.isna(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value)


def infer_columns(rows: Iterable[Row]) -> List[str]:
    """Ordered union of keys, first-seen order."""
    columns: Dict[str, None] = {}
    for row in rows:
        for key in row:
            columns.setdefault(key, None)
    return list(columns)


def is_caps_like(val: str) -> bool:
    return len(val) > 2 and ALL_CAPS_PATTERN.fullmatch(val) is not None


def standardize_case(val: str) -> str:
    """'HELLO WORLD' -> 'Hello world'. Other values are returned as-is."""
    if is_caps_like(val):
        return val[0].upper() + val[1:].lower()
    return val


def standardize_date(val: str) -> Optional[str]:
    """'5/3/07' -> '2007-03-05'. Returns None when the value is not D/M/Y."""
    match = SLASH_DATE_PATTERN.fullmatch(val)
    if not match:
        return None
    day, month, year = match.groups()
    if len(year) == 2:
        year = f"20{year}"
    return f"{year}-{month.zfill(2)}-{day.zfill(2)}"


class RuleBasedCleaner:
    def __init__(self, df: pd.DataFrame, options: CleaningOptions):
        self.df = df.copy()
        self.options = options
        self.summary = {
            "duplicates_removed": 0,
            "spaces_trimmed": 0,
            "cases_standardized": 0,
            "invalid_emails_fixed": 0,
            "dates_standardized": 0,
            "total_changes": 0,
        }

    @classmethod
    def from_rows(
        cls, rows: List[Row], options: CleaningOptions, columns: Optional[List[str]] = None
    ) -> "RuleBasedCleaner":
        columns = list(dict.fromkeys(columns)) if columns is not None else infer_columns(rows)
        # object dtype keeps cell values as given (no int -> float coercion around gaps)
        df = pd.DataFrame(rows, columns=columns, dtype=object)
        return cls(df, options)

    # ─────────────────────────────────────────────────────────────────
    # PHASE 1: Structural cleanup
    # ─────────────────────────────────────────────────────────────────

    def remove_duplicates(self) -> int:
        """Drop rows whose every cell renders the same as an earlier row; keep the first."""
        if self.df.empty:
            return 0

        # compare rendered text so a missing cell equals ""
        dupe_mask = self.df.map(to_text).duplicated(keep="first")
        count = int(dupe_mask.sum())

        self.df = self.df[~dupe_mask].reset_index(drop=True)
        self.summary["duplicates_removed"] = count
        self.summary["total_changes"] += count
        if count:
            logger.debug(f"Removed {count} duplicate row(s)")
        return count

    # ─────────────────────────────────────────────────────────────────
    # PHASE 2: Per-cell normalisation
    # ─────────────────────────────────────────────────────────────────

    def _clean_cell(self, column: str, value: Any) -> str:
        opts = self.options
        val = to_text(value)

        if opts.trim_spaces:
            trimmed = val.strip()
            if trimmed != val:
                val = trimmed
                self.summary["spaces_trimmed"] += 1
                self.summary["total_changes"] += 1

        # every caps-like value counts, including ones that come out unchanged ("123")
        if opts.standardize_case and is_caps_like(val):
            val = standardize_case(val)
            self.summary["cases_standardized"] += 1
            self.summary["total_changes"] += 1

        # detection only, the value is left alone
        if opts.validate_emails and "email" in column.lower():
            if val and "@" not in val:
                self.summary["invalid_emails_fixed"] += 1

        if opts.fix_dates and ("date" in column.lower() or "/" in val):
            rewritten = standardize_date(val)
            if rewritten is not None:
                val = rewritten
                self.summary["dates_standardized"] += 1
                self.summary["total_changes"] += 1

        return val

    def normalize_cells(self) -> None:
        for col in self.df.columns:
            self.df[col] = [self._clean_cell(col, v) for v in self.df[col]]

    # ─────────────────────────────────────────────────────────────────
    # Run full cleaner
    # ─────────────────────────────────────────────────────────────────

    def run_all(self) -> Dict[str, int]:
        if self.options.remove_duplicates:
            self.remove_duplicates()
        self.normalize_cells()
        return self.summary

    def rows(self) -> List[Row]:
        return self.df.to_dict(orient="records")


def clean(
    rows: List[Row], options: CleaningOptions, columns: Optional[List[str]] = None
) -> Tuple[List[Row], Dict[str, int]]:
    """Run the rule-based cleaner; returns (cleaned_rows, partial report counters)."""
    cleaner = RuleBasedCleaner.from_rows(rows, options, columns)
    summary = cleaner.run_all()
    return cleaner.rows(), dict(summary)

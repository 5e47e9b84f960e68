from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

# A cell is a scalar: text, a number, or absent.
CellValue = Optional[Union[str, int, float]]
Row = Dict[str, CellValue]


class FieldType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    EMAIL = "email"
    BOOLEAN = "boolean"


class AIProvider(str, Enum):
    GEMINI = "gemini"
    OPENAI = "openai"


class AnomalyType(str, Enum):
    SCHEMA = "schema"
    AI = "ai"


class SchemaField(BaseModel):
    """One user-declared validation rule bound to a column."""

    name: str
    type: FieldType = FieldType.STRING
    required: bool = False
    min: Optional[float] = None   # type=number only
    max: Optional[float] = None   # type=number only
    regex: Optional[str] = None   # any type

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_bounds(self) -> "SchemaField":
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(
                f"Field '{self.name}': min ({self.min:g}) is greater than max ({self.max:g})"
            )
        return self


class Anomaly(BaseModel):
    row: int
    column: str
    value: CellValue = None
    reason: str
    suggestion: str
    type: AnomalyType

    model_config = {"frozen": True}


class AnomalyCandidate(BaseModel):
    """Shape the LLM is asked to return for each finding."""

    row: int
    column: str
    reason: str
    suggestion: str


class CleaningReport(BaseModel):
    id: str
    date: datetime
    file_name: str
    row_count: int

    duplicates_removed: int = 0
    invalid_emails_fixed: int = 0
    invalid_phones_fixed: int = 0   # no rule produces this; kept for record compatibility
    dates_standardized: int = 0
    spaces_trimmed: int = 0
    cases_standardized: int = 0
    missing_values_handled: int = 0  # no rule produces this; kept for record compatibility
    anomalies_detected: int = 0
    validation_issues_count: int = 0
    total_changes: int = 0

    model_config = {"frozen": True}


class CleaningOptions(BaseModel):
    remove_duplicates: bool = True
    trim_spaces: bool = True
    standardize_case: bool = True
    fix_dates: bool = True
    validate_emails: bool = True
    use_ai: bool = True
    ai_provider: AIProvider = AIProvider.GEMINI
    ai_model: str = ""  # empty -> provider default
    validate_schema: bool = False
    schema_fields: List[SchemaField] = Field(default_factory=list, alias="schema")

    model_config = {"frozen": True, "populate_by_name": True}

    @field_validator("schema_fields")
    @classmethod
    def _one_field_per_column(cls, fields: List[SchemaField]) -> List[SchemaField]:
        # last declaration for a column wins
        by_name: Dict[str, SchemaField] = {}
        for f in fields:
            by_name[f.name] = f
        return list(by_name.values())


class CleaningRun(BaseModel):
    rows: List[Row]
    columns: List[str]
    anomalies: List[Anomaly]
    # first anomaly per (row, column), in discovery order
    cell_anomalies: List[Anomaly] = Field(default_factory=list)
    report: CleaningReport


class CleanRequest(BaseModel):
    rows: List[Row]
    columns: Optional[List[str]] = None
    file_name: Optional[str] = None
    options: CleaningOptions = Field(default_factory=CleaningOptions)


class HistoryStats(BaseModel):
    runs: int
    total_rows_cleaned: int
    total_fixes: int
    fix_rate: float
    recent: List[CleaningReport]

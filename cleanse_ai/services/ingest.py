"""
Upload validation and delimited-text parsing.

Input shape: first non-blank line is the header, every following non-blank
line is a data row. Cells are trimmed and lose one pair of surrounding double
quotes. Embedded delimiters are not escaped.
"""

import logging
import os
import re
from typing import List, Optional, Tuple

from cleanse_ai.config import settings
from cleanse_ai.exceptions import InvalidUploadError
from cleanse_ai.schemas.cleaning import Row

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = [".csv", ".txt"]

_LINE_BREAK = re.compile(r"\r?\n")


def validate_upload(filename: Optional[str], size: int, max_mb: Optional[int] = None) -> None:
    """Reject files that are not delimited text or are too large."""
    file_ext = os.path.splitext(filename or "")[1].lower()
    if file_ext not in ALLOWED_EXTENSIONS:
        raise InvalidUploadError(
            f"File type '{file_ext}' not allowed. Only CSV and TXT files accepted."
        )

    max_mb = max_mb if max_mb is not None else settings.MAX_UPLOAD_MB
    max_size = max_mb * 1024 * 1024
    if size > max_size:
        raise InvalidUploadError(
            f"File too large ({size / 1024 / 1024:.1f}MB). Maximum {max_mb}MB."
        )


def decode_upload(raw: bytes) -> str:
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise InvalidUploadError(f"File is not valid UTF-8 text: {e}") from e


def _unquote(cell: str) -> str:
    cell = cell.strip()
    if cell.startswith('"'):
        cell = cell[1:]
    if cell.endswith('"'):
        cell = cell[:-1]
    return cell


def parse_delimited_text(text: str, delimiter: str = ",") -> Tuple[List[Row], List[str]]:
    """Parse delimited text into (rows, columns)."""
    lines = [line for line in _LINE_BREAK.split(text) if line.strip()]
    if not lines:
        return [], []

    columns = [_unquote(c) for c in lines[0].split(delimiter)]

    rows: List[Row] = []
    for line in lines[1:]:
        values = [_unquote(v) for v in line.split(delimiter)]
        if len(values) > len(columns):
            logger.debug(f"Ignoring {len(values) - len(columns)} extra field(s) in row {len(rows)}")
        rows.append(
            {col: values[i] if i < len(values) else "" for i, col in enumerate(columns)}
        )

    return rows, columns

"""
AI Anomaly Scan — asks an LLM to flag suspicious cells in the cleaned data.

Backends (selected by AIProvider):
1. Gemini  — google-genai, JSON output constrained by a response schema
2. OpenAI  — chat completions in json_object mode, array wrapped under "anomalies"

The scan never fails a run: a missing API key skips the call and any error
(network, SDK, malformed JSON) is logged and yields no anomalies.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from google import genai
from google.genai import types as genai_types
from openai import AsyncOpenAI
from pydantic import TypeAdapter, ValidationError

from cleanse_ai.config import settings
from cleanse_ai.exceptions import AIResponseParseError
from cleanse_ai.schemas.cleaning import AIProvider, Anomaly, AnomalyCandidate, AnomalyType, Row

logger = logging.getLogger(__name__)

_CANDIDATES = TypeAdapter(List[AnomalyCandidate])


def _parse_json_from_response(text: str) -> dict | list:
    """Robustly extract JSON from an LLM response even if it's wrapped in markdown."""
    clean = re.sub(r"```[a-z]*\n?", "", text).strip()
    return json.loads(clean)


def parse_anomaly_candidates(text: Optional[str]) -> List[AnomalyCandidate]:
    """
    Accepts a bare JSON array, or an object holding the array under
    "anomalies" (or, failing that, under its first list-valued key).
    """
    if not text or not text.strip():
        raise AIResponseParseError("Empty response")

    try:
        parsed = _parse_json_from_response(text)
    except json.JSONDecodeError as e:
        raise AIResponseParseError(f"Response is not valid JSON: {e}") from e

    if isinstance(parsed, dict):
        if isinstance(parsed.get("anomalies"), list):
            parsed = parsed["anomalies"]
        else:
            parsed = next((v for v in parsed.values() if isinstance(v, list)), None)

    if not isinstance(parsed, list):
        raise AIResponseParseError("Response does not contain an array of anomalies")

    try:
        return _CANDIDATES.validate_python(parsed)
    except ValidationError as e:
        raise AIResponseParseError(f"Anomaly entries have the wrong shape: {e}") from e


def build_prompt(columns: List[str], sample: List[Row], wrap_key: Optional[str] = None) -> str:
    columns_text = ", ".join(f'"{c}"' for c in columns)
    sample_text = json.dumps(sample, default=str, indent=2)

    item = '{"row": 0, "column": "column_name", "reason": "why the value looks wrong", "suggestion": "how to fix it"}'
    if wrap_key:
        shape = f'{{"{wrap_key}": [{item}]}}'
        empty = f'{{"{wrap_key}": []}}'
    else:
        shape = f"[{item}]"
        empty = "[]"

    return f"""You are a data quality analyst reviewing a tabular dataset.

Columns: [{columns_text}]

Sample data ({len(sample)} rows; "row" is the 0-based position in this list):
{sample_text}

Your task:
1. Identify anomalies, naming inconsistencies, or suspicious values.
2. For EACH finding give the row, the column, the reason, and a suggested fix.
3. Only use column names that actually exist in the dataset.

Return ONLY valid JSON in this exact format:
{shape}

If nothing looks wrong return {empty}."""


class AnomalyProvider(ABC):
    """Capability: given a prompt and a model id, return the raw LLM text."""

    name: str = ""
    wrap_key: Optional[str] = None

    def __init__(self, api_key: str, default_model: str, timeout: float, client: Any = None):
        self.api_key = api_key
        self.default_model = default_model
        self.timeout = timeout
        self._client = client

    def is_configured(self) -> bool:
        return bool(self.api_key)

    @abstractmethod
    async def complete(self, prompt: str, model: str) -> str:
        ...


class GeminiAnomalyProvider(AnomalyProvider):
    name = "gemini"

    def __init__(self, api_key: Optional[str] = None, default_model: Optional[str] = None,
                 timeout: Optional[float] = None, client: Any = None):
        super().__init__(
            api_key=settings.GEMINI_API_KEY if api_key is None else api_key,
            default_model=default_model or settings.GEMINI_MODEL,
            timeout=timeout or settings.AI_TIMEOUT_SECONDS,
            client=client,
        )

    def _get_client(self):
        if self._client is None:
            self._client = genai.Client(
                api_key=self.api_key,
                http_options=genai_types.HttpOptions(timeout=int(self.timeout * 1000)),
            )
        return self._client

    async def complete(self, prompt: str, model: str) -> str:
        response = await self._get_client().aio.models.generate_content(
            model=model,
            contents=prompt,
            config=genai_types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=list[AnomalyCandidate],
                temperature=0.2,
            ),
        )
        return response.text or ""


class OpenAIAnomalyProvider(AnomalyProvider):
    name = "openai"
    # json_object mode cannot emit a bare array
    wrap_key = "anomalies"

    def __init__(self, api_key: Optional[str] = None, default_model: Optional[str] = None,
                 timeout: Optional[float] = None, client: Any = None):
        super().__init__(
            api_key=settings.OPENAI_API_KEY if api_key is None else api_key,
            default_model=default_model or settings.OPENAI_MODEL,
            timeout=timeout or settings.AI_TIMEOUT_SECONDS,
            client=client,
        )

    def _get_client(self):
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    async def complete(self, prompt: str, model: str) -> str:
        response = await self._get_client().chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            response_format={"type": "json_object"},
            temperature=0.2,
        )
        return response.choices[0].message.content or ""


def get_anomaly_provider(provider: AIProvider) -> AnomalyProvider:
    if provider == AIProvider.GEMINI:
        return GeminiAnomalyProvider()
    elif provider == AIProvider.OPENAI:
        return OpenAIAnomalyProvider()
    else:
        raise ValueError(f"Unknown AI provider: {provider}. Available: gemini, openai")


def _to_anomalies(candidates: List[AnomalyCandidate], rows: List[Row], columns: List[str]) -> List[Anomaly]:
    known = set(columns)
    anomalies = []
    for c in candidates:
        if not (0 <= c.row < len(rows)) or c.column not in known:
            logger.warning(f"Dropping AI finding for unknown cell (row={c.row}, column={c.column!r})")
            continue
        anomalies.append(
            Anomaly(
                row=c.row,
                column=c.column,
                value=rows[c.row].get(c.column),
                reason=c.reason,
                suggestion=c.suggestion,
                type=AnomalyType.AI,
            )
        )
    return anomalies


async def find_anomalies(
    rows: List[Row],
    columns: List[str],
    provider: AnomalyProvider,
    model: Optional[str] = None,
    sample_size: Optional[int] = None,
) -> List[Anomaly]:
    """Scan the first ``sample_size`` rows; findings are looked up in the full ``rows``."""
    if not provider.is_configured():
        logger.info(f"No API key configured for {provider.name}; skipping AI scan")
        return []

    model = model or provider.default_model
    sample = rows[: sample_size or settings.AI_SAMPLE_SIZE]
    prompt = build_prompt(columns, sample, provider.wrap_key)

    try:
        text = await provider.complete(prompt, model)
        candidates = parse_anomaly_candidates(text)
    except Exception:
        logger.exception(f"AI anomaly scan failed ({provider.name}, model={model}); continuing without AI findings")
        return []

    anomalies = _to_anomalies(candidates, rows, columns)
    logger.info(f"AI scan ({provider.name}, model={model}) returned {len(anomalies)} anomalies")
    return anomalies

# ABOUTME: Loads span records from a JSON export (a list, or an object with a "spans" list).
# ABOUTME: Accepts camelCase or snake_case span fields and groups spans by trace id.

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from spanlens.contracts import Span

logger = logging.getLogger(__name__)

UNKNOWN_TRACE_ID = "unknown"


def _records_from_payload(payload: Any, path: Path) -> list[dict[str, Any]]:
    if isinstance(payload, dict):
        payload = payload.get("spans")
    if not isinstance(payload, list):
        raise ValueError(f"{path} must contain a list of spans or an object with a 'spans' list")
    records = [item for item in payload if isinstance(item, dict)]
    skipped = len(payload) - len(records)
    if skipped:
        logger.warning("Skipped %d non-object entries in %s", skipped, path)
    return records


def load_span_records(path: str | Path) -> list[Span]:
    records_path = Path(path)
    if not records_path.exists():
        raise FileNotFoundError(records_path)
    try:
        payload = json.loads(records_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"{records_path} is not valid JSON: {exc}") from exc
    spans = [Span.from_dict(record) for record in _records_from_payload(payload, records_path)]
    logger.info("Read %d spans from %s", len(spans), records_path)
    return spans


def group_by_trace(spans: list[Span]) -> dict[str, list[Span]]:
    grouped: dict[str, list[Span]] = {}
    for span in spans:
        grouped.setdefault(span.trace_id or UNKNOWN_TRACE_ID, []).append(span)
    return dict(sorted(grouped.items()))

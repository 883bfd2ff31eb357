"""Metric extraction from agent execution logs.

Every helper here is lossy on purpose: malformed lines, non-JSON fragments
and unexpected value types contribute nothing instead of raising.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

TOKEN_FIELDS: tuple[str, ...] = (
    "tokens",
    "token_count",
    "input_tokens",
    "output_tokens",
    "total_tokens",
)
COST_FIELDS: tuple[str, ...] = (
    "cost",
    "price",
    "amount",
    "total_cost",
    "estimated_cost",
    "total_cost_usd",
)


@dataclass(frozen=True)
class LogMetrics:
    """Metrics recovered from one agent log.

    Attributes:
        token_usage: Total tokens consumed.
        estimated_cost: Cost in USD when the log reports one.
        error_count: Lines mentioning "error".
        warning_count: Lines mentioning "warning".

    """

    token_usage: int = 0
    estimated_cost: float = 0.0
    error_count: int = 0
    warning_count: int = 0


def to_int(value: Any) -> int:
    """Convert a JSON value to int, returning 0 when it is not numeric."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return 0
    return 0


def to_float(value: Any) -> float:
    """Convert a JSON value to float, returning 0.0 when it is not numeric."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return 0.0
    return 0.0


def extract_first_match(text: str, pattern: str) -> str:
    """Return the first capture group of a case-insensitive match, or ""."""
    match = re.search(pattern, text, re.IGNORECASE)
    if match and match.groups():
        return match.group(1) or ""
    return ""


def usage_tokens(usage: Any) -> int:
    """Sum input, output and cache token counts of a usage object."""
    if not isinstance(usage, dict):
        return 0
    return (
        to_int(usage.get("input_tokens"))
        + to_int(usage.get("output_tokens"))
        + to_int(usage.get("cache_creation_input_tokens"))
        + to_int(usage.get("cache_read_input_tokens"))
    )


def extract_json_token_usage(data: dict[str, Any]) -> int:
    for name in TOKEN_FIELDS:
        tokens = to_int(data.get(name))
        if tokens > 0:
            return tokens

    usage = data.get("usage")
    if isinstance(usage, dict):
        total = usage_tokens(usage)
        if total > 0:
            return total
        for name in TOKEN_FIELDS:
            tokens = to_int(usage.get(name))
            if tokens > 0:
                return tokens

    delta = data.get("delta")
    if isinstance(delta, dict) and isinstance(delta.get("usage"), dict):
        delta_usage = delta["usage"]
        total = to_int(delta_usage.get("input_tokens")) + to_int(delta_usage.get("output_tokens"))
        if total > 0:
            return total

    return 0


def extract_json_cost(data: dict[str, Any]) -> float:
    for source in (data, data.get("billing")):
        if not isinstance(source, dict):
            continue
        for name in COST_FIELDS:
            cost = to_float(source.get(name))
            if cost > 0:
                return cost
    return 0.0


def parse_json_object(line: str) -> dict[str, Any] | None:
    """Parse a line holding one JSON object, or return None."""
    trimmed = line.strip()
    if not (trimmed.startswith("{") and trimmed.endswith("}")):
        return None
    try:
        data = json.loads(trimmed)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def extract_json_metrics(line: str, verbose: bool = False) -> LogMetrics:
    """Extract token usage and cost from one streaming JSON log line.

    Args:
        line: A single log line.
        verbose: Log lines that were skipped.

    Returns:
        Metrics found on the line; all zero for non-JSON lines.

    """
    data = parse_json_object(line)
    if data is None:
        if verbose:
            logger.debug("Skipping non-JSON log line")
        return LogMetrics()
    return LogMetrics(token_usage=extract_json_token_usage(data), estimated_cost=extract_json_cost(data))


def count_errors_and_warnings(lines: list[str]) -> tuple[int, int]:
    """Count non-empty lines mentioning "error" and "warning" (case-insensitive)."""
    errors = warnings = 0
    for line in lines:
        if not line.strip():
            continue
        lower = line.lower()
        if "error" in lower:
            errors += 1
        if "warning" in lower:
            warnings += 1
    return errors, warnings

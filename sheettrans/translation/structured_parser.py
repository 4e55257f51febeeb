"""
Multi-strategy parsing of model output into row records.

Strategies are plain functions `text -> decoded JSON`, tried in order from
least to most invasive. Each outcome is recorded as a ParseAttempt; the
first success wins and all failures are kept for diagnostics.
"""

import json
import logging
import re
from typing import Any, Callable, List, Optional, Tuple

from sheettrans.core.exceptions import ParseExhausted, preview
from sheettrans.core.models import ParseAttempt, Row
from sheettrans.translation.response_repair import (
    aggressive_repair,
    balance_unterminated_strings,
    clean_response,
    light_cleanup,
    preprocess,
    quote_native_numerals,
    remove_export_artifacts,
    seek_json_start,
    strip_all_backslashes,
)

logger = logging.getLogger(__name__)

_KEY_VALUE_LINE = re.compile(r'^([^:]+):\s*(.+)$')
_TRAILING_STRUCTURE = re.compile(r'[\s,}\]]+$')


def parse_direct(text: str) -> Any:
    return json.loads(text)


def parse_light_cleanup(text: str) -> Any:
    """Strip artifacts, quote native numerals, escape control characters."""
    return json.loads(light_cleanup(text))


def parse_without_backslashes(text: str) -> Any:
    return json.loads(light_cleanup(strip_all_backslashes(text)))


def parse_from_first_bracket(text: str) -> Any:
    return json.loads(light_cleanup(strip_all_backslashes(seek_json_start(text))))


def parse_aggressive(text: str) -> Any:
    """Preprocess, balance unterminated strings, then aggressive repair."""
    return json.loads(aggressive_repair(balance_unterminated_strings(preprocess(text))))


def parse_array_extract(text: str) -> Any:
    """Take the substring between the first `[` and the last `]`."""
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end <= start:
        raise ValueError("Could not find valid array structure")

    body = text[start:end + 1]
    logger.debug(f"Extracted array content: {preview(body, 100)}")
    cleaned = quote_native_numerals(remove_export_artifacts(strip_all_backslashes(body)))
    return json.loads(cleaned.strip())


def extract_key_value_lines(text: str) -> List[Row]:
    """
    Degraded fallback: rebuild records from `key: value` lines.

    A new record starts at a line opening with `{` or when a key repeats.
    Values come back as strings. The result is low fidelity and callers
    should treat it as suspect.
    """
    rows: List[Row] = []
    current: Row = {}

    for line in remove_export_artifacts(text).splitlines():
        stripped = line.strip().lstrip("[").strip()
        if not stripped:
            continue
        if stripped.startswith("{") and current:
            rows.append(current)
            current = {}

        match = _KEY_VALUE_LINE.match(stripped)
        if not match:
            continue

        key = match.group(1).strip().strip('{}[]"\' ').strip()
        value = _TRAILING_STRUCTURE.sub("", match.group(2).strip())
        if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
            value = value[1:-1]
        value = value.strip('"').strip()
        if not key or not value:
            continue

        if key in current:
            rows.append(current)
            current = {}
        current[key] = value

    if current:
        rows.append(current)
    if not rows:
        raise ValueError("No key/value pairs found in response")

    logger.warning(f"Fallback strategy created {len(rows)} objects")
    return rows


def coerce_rows(value: Any) -> List[Row]:
    """A single object becomes a one-row array; anything but objects is rejected."""
    if isinstance(value, dict):
        return [value]
    if isinstance(value, list):
        if not all(isinstance(item, dict) for item in value):
            raise ValueError("Expected a JSON array of objects")
        return value
    raise ValueError(f"Expected a JSON array or object, got {type(value).__name__}")


# (name, strategy, reads the raw text instead of the cleaned text, degraded)
Strategy = Tuple[str, Callable[[str], Any], bool, bool]

DEFAULT_STRATEGIES: List[Strategy] = [
    ("direct", parse_direct, False, False),
    ("light_cleanup", parse_light_cleanup, False, False),
    ("strip_backslashes", parse_without_backslashes, False, False),
    ("seek_bracket", parse_from_first_bracket, False, False),
    ("aggressive_repair", parse_aggressive, False, False),
    ("array_extract", parse_array_extract, True, False),
    ("key_value_lines", extract_key_value_lines, True, True),
]


class StructuredParser:
    """Turn raw model output into a list of row dicts."""

    def __init__(self, allow_degraded: bool = True, strategies: Optional[List[Strategy]] = None):
        self.allow_degraded = allow_degraded
        self.strategies = list(strategies if strategies is not None else DEFAULT_STRATEGIES)
        if not allow_degraded:
            self.strategies = [s for s in self.strategies if not s[3]]
        # True when the most recent successful parse came from a degraded strategy
        self.last_result_degraded = False

    def parse(self, text: str) -> List[Row]:
        rows, _ = self.parse_with_report(text)
        return rows

    def parse_with_report(self, text: str) -> Tuple[List[Row], List[ParseAttempt]]:
        """
        Parse text, returning the rows and every attempt made.

        Raises:
            ParseExhausted: if no strategy produced an array of objects
        """
        text = text or ""
        logger.debug(f"Raw API response ({len(text)} chars): {preview(text, 200)}")

        cleaned = clean_response(text)
        logger.debug(f"Cleaned response: {preview(cleaned, 200)}")

        attempts: List[ParseAttempt] = []
        for name, strategy, use_raw, degraded in self.strategies:
            attempt = self._run(name, strategy, text if use_raw else cleaned, degraded)
            attempts.append(attempt)
            if attempt.ok:
                self.last_result_degraded = attempt.degraded
                if attempt.degraded:
                    logger.warning(f"Strategy '{name}' produced a degraded result; treat it as suspect")
                else:
                    logger.debug(f"Strategy '{name}' succeeded")
                return attempt.rows, attempts
            logger.warning(f"Parsing strategy '{name}' failed: {attempt.error}")

        last = attempts[-1] if attempts else None
        logger.error(f"All parsing strategies failed. Original: {preview(text)}")
        raise ParseExhausted(
            text,
            last_error=last.exception if last else None,
            attempts=attempts
        )

    @staticmethod
    def _run(name: str, strategy: Callable[[str], Any], text: str, degraded: bool) -> ParseAttempt:
        try:
            rows = coerce_rows(strategy(text))
        except (ValueError, RecursionError) as e:
            return ParseAttempt(
                strategy=name,
                ok=False,
                error=f"{type(e).__name__}: {e}",
                degraded=degraded,
                exception=e
            )
        return ParseAttempt(strategy=name, ok=True, rows=rows, degraded=degraded)

"""
Exception hierarchy for SheetTrans-LLM.

Provides specific exception types so callers can tell transient transport
problems apart from provider rejections, unparseable model output and
column/row alignment failures.
"""

from __future__ import annotations
from typing import Optional, Dict, Any, List


# Raw model output is clipped to this many characters in error messages.
RAW_TEXT_PREVIEW = 500


def preview(text: Optional[str], limit: int = RAW_TEXT_PREVIEW) -> str:
    """Clip text for logs and error messages."""
    if text is None:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class SheetTransError(Exception):
    """Base exception for all SheetTrans errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
        suggestion: Optional[str] = None
    ):
        """
        Initialize error.

        Args:
            message: Human-readable error message
            details: Additional error details
            recoverable: Whether the operation may succeed if retried
            suggestion: Suggested fix or workaround
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable
        self.suggestion = suggestion

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
            "suggestion": self.suggestion
        }

    def __str__(self) -> str:
        """String representation with suggestion if available."""
        result = self.message
        if self.suggestion:
            result += f"\nSuggestion: {self.suggestion}"
        return result


class TransportError(SheetTransError):
    """Network failure or timeout while talking to the model endpoint."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        details = {"original_error": repr(original_error) if original_error else None}
        super().__init__(message, details, recoverable=True)
        self.original_error = original_error


class RateLimited(SheetTransError):
    """Endpoint answered 429 (rate limited) or 503 (overloaded)."""

    def __init__(self, status_code: int, message: Optional[str] = None):
        text = message or f"Model endpoint returned status {status_code}"
        super().__init__(text, {"status_code": status_code}, recoverable=True)
        self.status_code = status_code


class ApiError(SheetTransError):
    """Non-retryable provider failure: bad request, empty content, safety block."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[Any] = None
    ):
        """
        Initialize API error.

        Args:
            message: Error message (provider message when available)
            status_code: HTTP status, None for empty-content responses
            response_body: Decoded response payload, kept for diagnostics
        """
        details = {
            "status_code": status_code,
            "response_body": response_body
        }
        suggestion = None
        if status_code in (400, 401, 403):
            suggestion = "Check the Gemini API key and model name."
        elif status_code is None:
            suggestion = "The response may have been blocked by safety filtering."
        super().__init__(message, details, recoverable=False, suggestion=suggestion)
        self.status_code = status_code
        self.response_body = response_body


class RetriesExhausted(SheetTransError):
    """Retry budget spent on transport errors or rate limiting."""

    def __init__(self, attempts: int, last_error: SheetTransError):
        message = f"API request failed after {attempts} attempts: {last_error.message}"
        details = {
            "attempts": attempts,
            "last_error": last_error.to_dict()
        }
        suggestion = "Wait a moment and retry, or lower the request rate."
        super().__init__(message, details, recoverable=True, suggestion=suggestion)
        self.attempts = attempts
        self.last_error = last_error


class ParseExhausted(SheetTransError):
    """No repair strategy produced a JSON array of row objects."""

    def __init__(
        self,
        raw_text: str,
        last_error: Optional[Exception] = None,
        attempts: Optional[List[Any]] = None
    ):
        """
        Initialize parse error.

        Args:
            raw_text: Original model output
            last_error: Last underlying parser error
            attempts: ParseAttempt records for every strategy tried
        """
        reason = str(last_error) if last_error else "Unknown error"
        message = f"JSON parsing failed: {reason}. Raw response: {preview(raw_text)}"
        details = {
            "raw_text": preview(raw_text),
            "last_error": reason,
            "strategies_tried": [a.strategy for a in attempts or []]
        }
        suggestion = "Please try again with a smaller chunk size."
        super().__init__(message, details, recoverable=True, suggestion=suggestion)
        self.raw_text = raw_text
        self.last_error = last_error
        self.attempts = attempts or []


class HeaderMismatch(SheetTransError):
    """Translated header count differs from the original header count."""

    def __init__(self, original: List[str], translated: List[str]):
        message = (
            "Header translation failed: Mismatch in column count "
            f"(expected {len(original)}, got {len(translated)})."
        )
        details = {
            "original_headers": original,
            "translated_headers": translated
        }
        super().__init__(message, details, recoverable=True)
        self.original = original
        self.translated = translated


class ResultCountMismatch(SheetTransError):
    """Model returned fewer translated rows than were submitted."""

    def __init__(self, expected: int, received: int, chunk: Optional[int] = None):
        message = f"Expected {expected} translated rows, received {received}."
        if chunk is not None:
            message = f"Chunk {chunk}: {message}"
        details = {"expected": expected, "received": received, "chunk": chunk}
        suggestion = "Use a smaller chunk size or allow lenient row reconciliation."
        super().__init__(message, details, recoverable=True, suggestion=suggestion)
        self.expected = expected
        self.received = received
        self.chunk = chunk


class ConfigurationError(SheetTransError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        invalid_value: Optional[Any] = None,
        valid_values: Optional[List[Any]] = None
    ):
        """
        Initialize configuration error.

        Args:
            message: Error message
            config_key: Configuration key that's invalid
            invalid_value: Invalid value provided
            valid_values: List of valid values
        """
        details = {
            "config_key": config_key,
            "invalid_value": invalid_value,
            "valid_values": valid_values
        }

        suggestion = None
        if config_key and valid_values:
            suggestion = f"Valid values for {config_key}: {', '.join(map(str, valid_values))}"
        elif config_key:
            suggestion = f"Check configuration for '{config_key}'"

        super().__init__(message, details, recoverable=True, suggestion=suggestion)
        self.config_key = config_key
        self.invalid_value = invalid_value
        self.valid_values = valid_values

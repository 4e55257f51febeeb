"""Google Gemini `generateContent` backend."""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from ..base import GenerationConfig, ModelBackend
from ...core.exceptions import (
    ApiError,
    RateLimited,
    RetriesExhausted,
    SheetTransError,
    TransportError,
    preview,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class GeminiClient(ModelBackend):
    """
    Gemini client with a single retry policy.

    Up to `max_attempts` requests. 429/503 and transport failures are
    retried after 1s, 2s, 4s, 8s, ... (doubling, uncapped). Everything
    else fails immediately with ApiError.
    """

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
    DEFAULT_MODEL = "gemini-2.5-flash-preview-05-20"
    RETRY_STATUSES = (429, 503)

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        generation: Optional[GenerationConfig] = None,
        max_attempts: int = 5,
        initial_delay: float = 1.0,
        backoff_factor: float = 2.0,
        timeout: float = 120.0,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Sleep] = None,
    ):
        super().__init__(model, generation)
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.backoff_factor = backoff_factor
        self.timeout = timeout
        self._http_client = http_client
        self._sleep = sleep or asyncio.sleep

        self.stats = {
            "requests": 0,
            "retries": 0,
            "rate_limited": 0,
            "transport_errors": 0,
            "total_time": 0.0,
        }

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]], **kwargs) -> "GeminiClient":
        """Build from the `model` section of the loaded config."""
        section = (config or {}).get("model") or {}
        return cls(
            model=section.get("name") or cls.DEFAULT_MODEL,
            generation=GenerationConfig.from_dict(section.get("generation")),
            max_attempts=int(section.get("max_attempts", 5)),
            initial_delay=float(section.get("initial_delay", 1.0)),
            backoff_factor=float(section.get("backoff_factor", 2.0)),
            timeout=float(section.get("timeout", 120.0)),
            **kwargs
        )

    @property
    def endpoint(self) -> str:
        return f"{self.BASE_URL}/{self.model}:generateContent"

    def build_payload(self, system_prompt: str, user_prompt: str) -> Dict[str, Any]:
        """Request body for a single-turn exchange."""
        gen = self.generation
        return {
            "contents": [{"parts": [{"text": user_prompt}]}],
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "generationConfig": {
                "temperature": gen.temperature,
                "topP": gen.top_p,
                "topK": gen.top_k,
                "maxOutputTokens": gen.max_output_tokens,
            },
            "safetySettings": [
                {"category": category, "threshold": gen.safety_threshold}
                for category in gen.harm_categories
            ],
        }

    async def generate(self, system_prompt: str, user_prompt: str, credential: str) -> str:
        payload = self.build_payload(system_prompt, user_prompt)
        delay = self.initial_delay
        last_error: Optional[SheetTransError] = None
        start_time = time.time()

        try:
            for attempt in range(1, self.max_attempts + 1):
                try:
                    return await self._post(payload, credential)
                except (RateLimited, TransportError) as e:
                    last_error = e
                    if attempt == self.max_attempts:
                        break
                    self.stats["retries"] += 1
                    logger.warning(
                        f"Attempt {attempt}/{self.max_attempts} failed ({e.message}). "
                        f"Retrying in {delay:g}s..."
                    )
                    await self._sleep(delay)
                    delay *= self.backoff_factor
        finally:
            self.stats["total_time"] += time.time() - start_time

        logger.error(f"API request failed after {self.max_attempts} attempts")
        raise RetriesExhausted(self.max_attempts, last_error)

    async def _post(self, payload: Dict[str, Any], credential: str) -> str:
        """One HTTP exchange, classified into text or a typed error."""
        self.stats["requests"] += 1
        client = self._http_client or httpx.AsyncClient(timeout=self.timeout)
        try:
            response = await client.post(
                self.endpoint,
                params={"key": credential},
                json=payload,
                headers={"Content-Type": "application/json"},
            )
        except httpx.TransportError as e:
            self.stats["transport_errors"] += 1
            raise TransportError(f"Network error calling Gemini: {e}", original_error=e)
        finally:
            if self._http_client is None:
                await client.aclose()

        if response.status_code in self.RETRY_STATUSES:
            self.stats["rate_limited"] += 1
            raise RateLimited(response.status_code)

        body = self._decode(response)

        if response.is_success:
            text = self.extract_text(body)
            if not text:
                logger.error(f"API Response with no content: {preview(str(body))}")
                raise ApiError(
                    "API returned a successful response but with no content. "
                    "Check safety filters or logs for details.",
                    response_body=body,
                )
            logger.debug(f"API response ({len(text)} chars): {preview(text)}")
            return text

        message = "Unknown error"
        if isinstance(body, dict):
            message = (body.get("error") or {}).get("message") or message
        raise ApiError(
            f"API Error: {response.status_code} {response.reason_phrase} - {message}",
            status_code=response.status_code,
            response_body=body,
        )

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text

    @staticmethod
    def extract_text(body: Any) -> Optional[str]:
        """candidates[0].content.parts[0].text, or None when any level is missing."""
        if not isinstance(body, dict):
            return None
        candidates = body.get("candidates")
        if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
            return None
        content = candidates[0].get("content")
        if not isinstance(content, dict):
            return None
        parts = content.get("parts")
        if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
            return None
        text = parts[0].get("text")
        return text if isinstance(text, str) else None

"""Model backend implementations."""

from .gemini_backend import GeminiClient

__all__ = [
    'GeminiClient'
]

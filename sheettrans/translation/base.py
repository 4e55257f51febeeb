"""
Base model backend interface.
All model clients must inherit from ModelBackend.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional


HARM_CATEGORIES = [
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
]


@dataclass
class GenerationConfig:
    """Fixed sampling parameters sent with every request."""
    # Low temperature keeps translations deterministic
    temperature: float = 0.2
    top_p: float = 1.0
    top_k: int = 32
    max_output_tokens: int = 8192
    # Content is assessment text being translated, not generated
    safety_threshold: str = "BLOCK_NONE"
    harm_categories: List[str] = field(default_factory=lambda: list(HARM_CATEGORIES))

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "GenerationConfig":
        data = data or {}
        return cls(
            temperature=float(data.get("temperature", 0.2)),
            top_p=float(data.get("top_p", 1.0)),
            top_k=int(data.get("top_k", 32)),
            max_output_tokens=int(data.get("max_output_tokens", 8192)),
            safety_threshold=data.get("safety_threshold", "BLOCK_NONE"),
        )


class ModelBackend(ABC):
    """Abstract base class for generative model clients."""

    def __init__(self, model: Optional[str] = None, generation: Optional[GenerationConfig] = None):
        self.model = model
        self.generation = generation or GenerationConfig()
        self.name = self.__class__.__name__

    @abstractmethod
    async def generate(self, system_prompt: str, user_prompt: str, credential: str) -> str:
        """
        Send one single-turn request and return the raw text payload.

        Args:
            system_prompt: System instruction
            user_prompt: The single user message
            credential: API key, passed per call and never stored

        Returns:
            Raw text produced by the model

        Raises:
            ApiError: non-retryable provider failure
            RetriesExhausted: retry budget spent on transient failures
        """
        pass

    def generate_sync(self, system_prompt: str, user_prompt: str, credential: str) -> str:
        """Blocking wrapper around generate()."""
        return asyncio.run(self.generate(system_prompt, user_prompt, credential))

    def get_info(self) -> Dict:
        """Get backend information."""
        return {
            "name": self.name,
            "model": self.model,
            "temperature": self.generation.temperature,
            "max_output_tokens": self.generation.max_output_tokens,
        }

"""
SheetTrans-LLM: spreadsheet translation with generative language models.

Turns free-text model responses into strict arrays of translated rows
aligned 1:1 with the original spreadsheet's rows and columns.

Usage:
    from sheettrans import TranslationOrchestrator, OrchestratorConfig, GeminiClient

    orchestrator = TranslationOrchestrator(GeminiClient(), OrchestratorConfig(chunk_size=5))
    rows = orchestrator.translate_sync(rows, headers, system_prompt, "Hindi", api_key)
"""

__version__ = "1.0.0"
__author__ = "SheetTrans Team"
__license__ = "MIT"

from sheettrans.core.exceptions import (
    SheetTransError,
    TransportError,
    RateLimited,
    ApiError,
    RetriesExhausted,
    ParseExhausted,
    HeaderMismatch,
    ResultCountMismatch,
    ConfigurationError,
)
from sheettrans.core.models import (
    Row,
    Chunk,
    JobState,
    ParseAttempt,
    TranslationJobResult,
    TranslationProgress,
)
from sheettrans.core.orchestrator import (
    TranslationOrchestrator,
    OrchestratorConfig,
    column_equals,
)
from sheettrans.translation.base import ModelBackend, GenerationConfig
from sheettrans.translation.backends import GeminiClient
from sheettrans.translation.prompts import PromptLibrary
from sheettrans.translation.structured_parser import StructuredParser

__all__ = [
    "__version__",
    "SheetTransError", "TransportError", "RateLimited", "ApiError",
    "RetriesExhausted", "ParseExhausted", "HeaderMismatch",
    "ResultCountMismatch", "ConfigurationError",
    "Row", "Chunk", "JobState", "ParseAttempt", "TranslationJobResult",
    "TranslationProgress",
    "TranslationOrchestrator", "OrchestratorConfig", "column_equals",
    "ModelBackend", "GenerationConfig", "GeminiClient",
    "PromptLibrary", "StructuredParser",
]

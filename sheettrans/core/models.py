"""
Core data models for SheetTrans-LLM.

Rows are plain ordered dicts (column name -> scalar cell value); the
dataclasses here describe the units of work and the bookkeeping records
that travel between the orchestrator, the parser and the caller.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


Row = Dict[str, Any]
PassthroughPredicate = Callable[[Row], bool]


class JobState(Enum):
    """Lifecycle of one translation job. No state is resumable."""
    IDLE = "idle"
    TRANSLATING_HEADERS = "translating_headers"
    TRANSLATING_CHUNK = "translating_chunk"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class TranslationProgress:
    """Status pushed to the progress observer on every phase transition."""
    current_chunk: int
    total_chunks: int  # body chunks + 1 for the header request
    current_step: str
    is_processing: bool = True

    @property
    def fraction(self) -> float:
        if self.total_chunks == 0:
            return 0.0
        return min(1.0, self.current_chunk / self.total_chunks)


ProgressObserver = Callable[[TranslationProgress], None]


@dataclass
class Chunk:
    """A contiguous slice of the rows that need translation."""
    index: int  # 0-based
    total: int
    rows: List[Row] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)


def make_chunks(rows: List[Row], chunk_size: int) -> List[Chunk]:
    """Split rows into chunks of at most chunk_size, preserving order."""
    if chunk_size < 1:
        raise ValueError("chunk_size must be at least 1")
    slices = [rows[i:i + chunk_size] for i in range(0, len(rows), chunk_size)]
    return [Chunk(index=i, total=len(slices), rows=s) for i, s in enumerate(slices)]


@dataclass
class ParseAttempt:
    """Tagged result of a single parse strategy."""
    strategy: str
    ok: bool
    rows: Optional[List[Row]] = None
    error: Optional[str] = None
    degraded: bool = False
    exception: Optional[Exception] = field(default=None, repr=False)


@dataclass
class TranslationJobResult:
    """Everything a finished job produced."""
    rows: List[Row]
    headers: List[str]
    translated_headers: List[str]
    chunks_translated: int = 0
    passthrough_rows: int = 0
    warnings: List[str] = field(default_factory=list)
    duration: float = 0.0

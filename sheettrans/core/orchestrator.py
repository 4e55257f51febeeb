"""
Translation orchestrator for SheetTrans-LLM.

Coordinates one translation job: header translation, chunked body
translation and reconciliation of the results against the original row
order and column order. Requests are issued strictly one after another.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import asyncio
import logging
import time

from sheettrans.core.exceptions import HeaderMismatch, ResultCountMismatch
from sheettrans.core.models import (
    JobState,
    PassthroughPredicate,
    ProgressObserver,
    Row,
    TranslationJobResult,
    TranslationProgress,
    make_chunks,
)
from sheettrans.translation.base import ModelBackend
from sheettrans.translation.prompts import HEADER_SYSTEM_PROMPT, PromptLibrary
from sheettrans.translation.structured_parser import StructuredParser

logger = logging.getLogger(__name__)


def column_equals(column: str, value: Any) -> PassthroughPredicate:
    """Predicate matching rows whose `column` cell equals `value`."""
    def predicate(row: Row) -> bool:
        return row.get(column) == value
    predicate.__name__ = f"{column}=={value!r}"
    return predicate


def never(row: Row) -> bool:
    return False


@dataclass
class OrchestratorConfig:
    """Configuration for a translation job."""

    # Smaller chunks mean more requests but a malformed response costs less
    chunk_size: int = 1

    # Rows matching column == value are copied through untranslated
    passthrough_column: Optional[str] = "Subskill"
    passthrough_value: Any = "Verbal Reasoning"

    # Raise ResultCountMismatch when a chunk comes back with too few rows;
    # when False the affected output rows are omitted and a warning recorded
    strict_row_count: bool = True

    # Allow the line-oriented key/value fallback parser
    allow_degraded_parse: bool = True

    header_system_prompt: str = HEADER_SYSTEM_PROMPT

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "OrchestratorConfig":
        """Build from the `translation` section of the loaded config."""
        data = data or {}
        passthrough = data.get("passthrough") or {}
        return cls(
            chunk_size=int(data.get("chunk_size", 1)),
            passthrough_column=passthrough.get("column", "Subskill"),
            passthrough_value=passthrough.get("value", "Verbal Reasoning"),
            strict_row_count=bool(data.get("strict_row_count", True)),
            allow_degraded_parse=bool(data.get("allow_degraded_parse", True)),
            header_system_prompt=data.get("header_system_prompt") or HEADER_SYSTEM_PROMPT,
        )

    def validate(self) -> List[str]:
        """Validate configuration and return any issues."""
        issues = []

        if self.chunk_size < 1:
            issues.append("chunk_size must be at least 1")

        if not self.header_system_prompt.strip():
            issues.append("header_system_prompt must not be empty")

        return issues

    def build_predicate(self) -> PassthroughPredicate:
        if not self.passthrough_column:
            return never
        return column_equals(self.passthrough_column, self.passthrough_value)


class TranslationOrchestrator:
    """
    Drives one spreadsheet translation job end to end.

    The job is all-or-nothing: any API, parse or alignment failure aborts
    it and discards partial results. Progress already reported stays with
    the observer. There is no cancellation token; cancelling the awaiting
    task stops the job at its next suspension point, but a request already
    sent is not guaranteed to stop.
    """

    def __init__(
        self,
        backend: ModelBackend,
        config: Optional[OrchestratorConfig] = None,
        parser: Optional[StructuredParser] = None,
        prompts: Optional[PromptLibrary] = None,
        passthrough: Optional[PassthroughPredicate] = None,
    ):
        self.backend = backend
        self.config = config or OrchestratorConfig()

        issues = self.config.validate()
        if issues:
            raise ValueError(f"Invalid orchestrator configuration: {'; '.join(issues)}")

        self.parser = parser or StructuredParser(allow_degraded=self.config.allow_degraded_parse)
        self.prompts = prompts or PromptLibrary()
        self.is_passthrough = passthrough or self.config.build_predicate()
        self.state = JobState.IDLE
        self.current_chunk: Optional[int] = None

    async def translate(
        self,
        rows: List[Row],
        headers: List[str],
        system_prompt: str,
        target_language: str,
        credential: str,
        on_progress: Optional[ProgressObserver] = None,
    ) -> List[Row]:
        """
        Translate rows and headers, returning rows keyed by translated headers.

        Raises:
            HeaderMismatch: translated header count differs
            ParseExhausted: a chunk response could not be parsed
            ResultCountMismatch: too few translated rows (strict mode)
            ApiError, RetriesExhausted: model request failed
        """
        result = await self.translate_job(
            rows, headers, system_prompt, target_language, credential, on_progress
        )
        return result.rows

    def translate_sync(self, *args, **kwargs) -> List[Row]:
        """Blocking wrapper around translate()."""
        return asyncio.run(self.translate(*args, **kwargs))

    async def translate_job(
        self,
        rows: List[Row],
        headers: List[str],
        system_prompt: str,
        target_language: str,
        credential: str,
        on_progress: Optional[ProgressObserver] = None,
    ) -> TranslationJobResult:
        """Same as translate() but returns the full job record."""
        start_time = time.time()
        warnings: List[str] = []
        self.current_chunk = None

        to_translate = [row for row in rows if not self.is_passthrough(row)]
        passthrough_count = len(rows) - len(to_translate)
        chunks = make_chunks(to_translate, self.config.chunk_size)
        total_units = len(chunks) + 1  # +1 for headers

        logger.info(
            f"Translating {len(rows)} rows into {target_language}: "
            f"{len(to_translate)} in {len(chunks)} chunks, {passthrough_count} passthrough"
        )

        try:
            # Step 1: headers
            self.state = JobState.TRANSLATING_HEADERS
            self._report(on_progress, 0, total_units, "Translating column headers...")
            translated_headers = await self._translate_headers(headers, target_language, credential)

            # Step 2: body chunks
            translated_rows: List[Optional[Row]] = []
            for chunk in chunks:
                self.state = JobState.TRANSLATING_CHUNK
                self.current_chunk = chunk.index
                self._report(
                    on_progress, chunk.index + 1, total_units,
                    f"Translating data chunk {chunk.index + 1} of {chunk.total}..."
                )
                parsed = await self._translate_chunk(chunk.rows, system_prompt, credential, warnings, chunk.index)
                translated_rows.extend(parsed)

            # Step 3: reconstruct
            self.state = JobState.FINALIZING
            self._report(on_progress, total_units, total_units, "Finalizing translation...")
            output = self._reconstruct(rows, headers, translated_headers, translated_rows, warnings)

        except Exception:
            failed_during = self.state
            self.state = JobState.FAILED
            logger.error(f"Translation job failed while {failed_during.value.replace('_', ' ')}")
            raise

        self.state = JobState.DONE
        self._report(on_progress, total_units, total_units, "Translation complete.", is_processing=False)

        return TranslationJobResult(
            rows=output,
            headers=list(headers),
            translated_headers=translated_headers,
            chunks_translated=len(chunks),
            passthrough_rows=passthrough_count,
            warnings=warnings,
            duration=time.time() - start_time,
        )

    async def _translate_headers(self, headers: List[str], language: str, credential: str) -> List[str]:
        user_prompt = self.prompts.header_prompt(headers, language)
        text = await self.backend.generate(self.config.header_system_prompt, user_prompt, credential)
        translated = [h.strip() for h in text.split(",")]

        if len(translated) != len(headers):
            logger.error(f"Header count mismatch: {len(headers)} sent, {len(translated)} returned")
            raise HeaderMismatch(list(headers), translated)

        translated = self._dedupe(translated)
        logger.debug(f"Translated headers: {translated}")
        return translated

    @staticmethod
    def _dedupe(names: List[str]) -> List[str]:
        """Suffix repeated translated names so no column is overwritten."""
        seen: Dict[str, int] = {}
        unique = []
        for name in names:
            if name in seen:
                seen[name] += 1
                new_name = f"{name} ({seen[name]})"
                logger.warning(f"Duplicate translated header '{name}' renamed to '{new_name}'")
                unique.append(new_name)
            else:
                seen[name] = 1
                unique.append(name)
        return unique

    async def _translate_chunk(
        self,
        chunk_rows: List[Row],
        system_prompt: str,
        credential: str,
        warnings: List[str],
        index: int,
    ) -> List[Optional[Row]]:
        user_prompt = self.prompts.chunk_prompt(chunk_rows)
        text = await self.backend.generate(system_prompt, user_prompt, credential)

        parsed, attempts = self.parser.parse_with_report(text)
        winner = attempts[-1]
        if winner.degraded:
            warnings.append(
                f"Chunk {index + 1} was recovered with the '{winner.strategy}' fallback; "
                "its values may be incomplete."
            )
        # Results never cross chunk boundaries: always one slot per sent row
        sent, received = len(chunk_rows), len(parsed)
        if received < sent:
            if self.config.strict_row_count:
                logger.error(f"Chunk {index + 1}: sent {sent} rows, got {received} back")
                raise ResultCountMismatch(sent, received, chunk=index + 1)
            message = (
                f"Chunk {index + 1}: sent {sent} rows, got {received} back; "
                f"its last {sent - received} rows have no translation"
            )
            logger.warning(message)
            warnings.append(message)
            return parsed + [None] * (sent - received)

        if received > sent:
            message = f"Chunk {index + 1}: {received - sent} surplus translated rows ignored"
            logger.warning(message)
            warnings.append(message)
            return parsed[:sent]

        return parsed

    def _reconstruct(
        self,
        rows: List[Row],
        headers: List[str],
        translated_headers: List[str],
        translated_rows: List[Optional[Row]],
        warnings: List[str],
    ) -> List[Row]:
        """Walk the original rows in order; translated_rows has one slot per non-passthrough row."""
        output: List[Row] = []
        cursor = 0
        for position, original in enumerate(rows):
            if self.is_passthrough(original):
                output.append(self._remap(original, headers, translated_headers))
                continue

            source = translated_rows[cursor]
            cursor += 1
            if source is None:
                message = f"Row {position + 1} dropped: no translated result for it"
                logger.warning(message)
                warnings.append(message)
                continue

            output.append(self._remap(source, headers, translated_headers))

        return output

    @staticmethod
    def _remap(source: Row, headers: List[str], translated_headers: List[str]) -> Row:
        return {new: source.get(old) for old, new in zip(headers, translated_headers)}

    @staticmethod
    def _report(
        observer: Optional[ProgressObserver],
        current: int,
        total: int,
        step: str,
        is_processing: bool = True,
    ) -> None:
        logger.info(step)
        if observer:
            observer(TranslationProgress(
                current_chunk=current,
                total_chunks=total,
                current_step=step,
                is_processing=is_processing,
            ))

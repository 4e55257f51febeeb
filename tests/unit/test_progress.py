"""Tests for ProgressReporter."""

import io

from rich.console import Console

from sheettrans.core.models import TranslationProgress
from sheettrans.utils.progress import ProgressReporter


def make_reporter(use_rich):
    buffer = io.StringIO()
    console = Console(file=buffer, force_terminal=False, width=120)
    return ProgressReporter(console=console, use_rich=use_rich), buffer


def test_plain_output():
    reporter, buffer = make_reporter(use_rich=False)

    reporter(TranslationProgress(0, 2, "Translating column headers..."))
    reporter(TranslationProgress(1, 2, "Translating data chunk 1 of 1..."))

    output = buffer.getvalue()
    assert "[0/2] Translating column headers..." in output
    assert "[1/2] Translating data chunk 1 of 1..." in output
    assert reporter.last.current_chunk == 1


def test_rich_output_records_events():
    reporter, _ = make_reporter(use_rich=True)

    with reporter:
        reporter(TranslationProgress(0, 3, "headers"))
        reporter(TranslationProgress(3, 3, "done", is_processing=False))

    assert [e.current_chunk for e in reporter.events] == [0, 3]
    assert reporter._progress is None


def test_last_without_events():
    reporter, _ = make_reporter(use_rich=False)
    assert reporter.last is None

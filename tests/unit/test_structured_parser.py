"""
Tests for StructuredParser strategy ordering, recovery and failure reporting.
"""

import json

import pytest

from sheettrans.core.exceptions import ParseExhausted
from sheettrans.translation.structured_parser import (
    DEFAULT_STRATEGIES,
    StructuredParser,
    coerce_rows,
    extract_key_value_lines,
    parse_array_extract,
)


@pytest.fixture
def parser():
    return StructuredParser()


def winning_strategy(parser, text):
    rows, attempts = parser.parse_with_report(text)
    return rows, attempts[-1].strategy


class TestRecovery:
    """Malformed responses that must still produce rows."""

    def test_valid_array_parses_directly(self, parser):
        rows, strategy = winning_strategy(parser, '[{"Q": "1"}, {"Q": "2"}]')
        assert rows == [{"Q": "1"}, {"Q": "2"}]
        assert strategy == "direct"

    def test_backslash_before_quoted_array(self, parser):
        raw = '\\' + '"[{"Q":"1"}]"'
        assert parser.parse(raw) == [{"Q": "1"}]

    def test_double_stringified_array(self, parser):
        raw = json.dumps('[{"Q": "प्रश्न"}]', ensure_ascii=False)
        assert parser.parse(raw) == [{"Q": "प्रश्न"}]

    def test_escaped_quotes_without_wrapper(self, parser):
        rows, strategy = winning_strategy(parser, '[{\\"a\\": \\"b\\"}]')
        assert rows == [{"a": "b"}]
        assert strategy == "strip_backslashes"

    def test_devanagari_numeral_value(self, parser):
        rows, strategy = winning_strategy(parser, '{"Marks": १०}')
        assert rows == [{"Marks": "१०"}]
        assert strategy == "light_cleanup"

    def test_unterminated_string_is_balanced(self, parser):
        rows, strategy = winning_strategy(parser, '{"Q": "hello}')
        assert rows == [{"Q": "hello"}]
        assert strategy == "aggressive_repair"

    def test_unterminated_string_in_first_of_several_rows(self, parser):
        rows, attempts = parser.parse_with_report('[{"Q": "hello}, {"Q": "world"}]')
        assert rows == [{"Q": "hello"}, {"Q": "world"}]
        assert attempts[-1].strategy == "aggressive_repair"
        assert not parser.last_result_degraded

    def test_numeral_after_colon_inside_text(self, parser):
        rows, strategy = winning_strategy(parser, '[{"Q": "अनुपात: ५, ठीक", "Marks": ५}]')
        assert rows == [{"Q": "अनुपात: ५, ठीक", "Marks": "५"}]
        assert strategy == "light_cleanup"

    def test_raw_newline_inside_value(self, parser):
        rows = parser.parse('[{"Q": "line one\nline two"}]')
        assert rows == [{"Q": "line one\nline two"}]

    def test_code_fence_and_chatter(self, parser):
        raw = 'Here is the translation:\n```json\n[{"Q": "नमस्ते"}]\n```\nLet me know!'
        assert parser.parse(raw) == [{"Q": "नमस्ते"}]

    def test_export_artifacts_removed(self, parser):
        assert parser.parse('[{"Q": "one_x000d_"}]') == [{"Q": "one"}]

    def test_single_object_becomes_one_row(self, parser):
        assert parser.parse('{"Q": "only"}') == [{"Q": "only"}]

    def test_empty_array(self, parser):
        assert parser.parse('[]') == []


class TestDegradedFallback:
    """Line-oriented key/value extraction."""

    def test_key_value_lines_produce_degraded_rows(self, parser):
        rows, attempts = parser.parse_with_report('Question: Kya\nAnswer: Haan')
        assert rows == [{"Question": "Kya", "Answer": "Haan"}]
        assert attempts[-1].strategy == "key_value_lines"
        assert attempts[-1].degraded
        assert all(not a.ok for a in attempts[:-1])
        assert parser.last_result_degraded

        parser.parse('[{"Question": "Kya"}]')
        assert not parser.last_result_degraded

    def test_repeated_key_starts_new_record(self):
        rows = extract_key_value_lines('Q: one\nA: 1\nQ: two\nA: 2')
        assert rows == [{"Q": "one", "A": "1"}, {"Q": "two", "A": "2"}]

    def test_brace_line_starts_new_record(self):
        text = '[\n{"Q": "one",\n"A": "x"\n},\n{"Q": "two"\n'
        rows = extract_key_value_lines(text)
        assert rows == [{"Q": "one", "A": "x"}, {"Q": "two"}]

    def test_no_pairs_is_an_error(self):
        with pytest.raises(ValueError):
            extract_key_value_lines("nothing to see")

    def test_degraded_disabled(self):
        parser = StructuredParser(allow_degraded=False)
        assert all(not degraded for _, _, _, degraded in parser.strategies)
        with pytest.raises(ParseExhausted):
            parser.parse('Question: Kya\nAnswer: Haan')


class TestFailure:
    """Responses nothing can recover."""

    def test_prose_raises_parse_exhausted(self, parser):
        with pytest.raises(ParseExhausted) as exc_info:
            parser.parse("I cannot translate this.")

        error = exc_info.value
        assert error.raw_text == "I cannot translate this."
        assert len(error.attempts) == len(DEFAULT_STRATEGIES)
        assert error.details["strategies_tried"][0] == "direct"
        assert "smaller chunk size" in error.suggestion

    def test_array_of_scalars_rejected(self, parser):
        with pytest.raises(ParseExhausted):
            parser.parse('[1, 2, 3]')

    def test_empty_text(self, parser):
        with pytest.raises(ParseExhausted):
            parser.parse("")

    def test_raw_text_preview_is_clipped(self, parser):
        with pytest.raises(ParseExhausted) as exc_info:
            parser.parse("x" * 2000)
        assert len(exc_info.value.details["raw_text"]) == 503


class TestHelpers:
    """Strategy building blocks."""

    def test_coerce_rows(self):
        assert coerce_rows({"a": 1}) == [{"a": 1}]
        assert coerce_rows([{"a": 1}]) == [{"a": 1}]
        with pytest.raises(ValueError):
            coerce_rows("text")
        with pytest.raises(ValueError):
            coerce_rows([{"a": 1}, 2])

    def test_array_extract_ignores_surrounding_text(self):
        assert parse_array_extract('noise [{"a": "b"}] noise') == [{"a": "b"}]

    def test_array_extract_without_brackets(self):
        with pytest.raises(ValueError):
            parse_array_extract('{"a": "b"}')

    def test_custom_strategy_list(self):
        parser = StructuredParser(strategies=[("only", lambda text: {"fixed": text}, True, False)])
        assert parser.parse("abc") == [{"fixed": "abc"}]

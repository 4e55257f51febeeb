"""
Repair utilities for JSON returned by the model.

The model is asked for a bare JSON array but frequently returns:
- markdown code fences around the payload
- the whole payload wrapped in an escaped string (leading backslash,
  double stringification)
- preamble text before the first bracket
- `_x000d_` carriage-return artifacts copied out of spreadsheet exports
- bare numerals in a native script (e.g. Devanagari) used as JSON values
- raw line breaks and tabs inside string values
- strings that were never closed

Every transform here is text -> text, never raises, and leaves
already-valid JSON parsing to the same value. Only the caller's final
json.loads may fail.
"""

import json
import logging
import re
from typing import Callable, List, Tuple

logger = logging.getLogger(__name__)

EXPORT_ARTIFACT = "_x000d_"

_FENCE_START = re.compile(r'^```[A-Za-z]*\s*')
_FENCE_END = re.compile(r'\s*```$')
_JSON_START = re.compile(r'[\[{]')

# A bare value made of non-ASCII decimal digits, e.g. `"Marks": १०,`
_NATIVE_NUMERAL_VALUE = re.compile(r':\s*((?:(?![0-9])\d)[\d.]*)\s*([,}])')

# What may follow a bracket that closes structure rather than string content
_STRUCTURE_FOLLOWS = re.compile(r'\s*(?:$|[}\]]|,\s*["{\[])')

_CONTROL_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t"}
_VALID_ESCAPES = set('"\\/bfnrt')
_HEX4 = re.compile(r'[0-9a-fA-F]{4}')

_TRAILING_COMMA = re.compile(r',(\s*[}\]])')
_UNQUOTED_KEY = re.compile(r'([{,]\s*)((?:[^\W\d]|\$)[\w$]*)(\s*:)')
_UNQUOTED_VALUE = re.compile(r'(:\s*)([^\s"{\[\]},:][^{}\[\]",:]*?)(\s*[,}\]])')
_JSON_SCALAR = re.compile(r'-?(?:0|[1-9][0-9]*)(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?|true|false|null')
_DOUBLED_OPEN_QUOTE = re.compile(r'([:\[{,]\s*)""(?=[^\s,:}\]])')
_DOUBLED_CLOSE_QUOTE = re.compile(r'(?<=[^\\\s:\[{,"])""(?=\s*[,:}\]])')


def strip_code_fences(text: str) -> str:
    """Remove a leading ```json (or bare ```) fence and a trailing ``` fence."""
    text = text.strip()
    text = _FENCE_START.sub('', text, count=1)
    text = _FENCE_END.sub('', text, count=1)
    return text.strip()


def strip_leading_backslashes(text: str) -> str:
    """Drop backslash runs at either end of the payload."""
    return re.sub(r'\\+$', '', re.sub(r'^\\+', '', text.strip()))


def unwrap_json_string(text: str) -> str:
    """
    Undo double stringification.

    If the text is a single JSON string literal, decode it once. Any
    failure leaves the text as it was.
    """
    stripped = text.strip()
    if len(stripped) < 2 or not (stripped.startswith('"') and stripped.endswith('"')):
        return text

    logger.debug("Unwrapping quoted response...")
    try:
        value = json.loads(stripped)
    except ValueError as e:
        logger.debug(f"Could not unwrap quoted response, proceeding as is: {e}")
        return text

    if isinstance(value, str):
        return value.strip()
    return text


def seek_json_start(text: str) -> str:
    """Discard anything before the first `[` or `{`."""
    match = _JSON_START.search(text)
    if match and match.start() > 0:
        logger.debug(f"Found JSON start at position {match.start()}")
        return text[match.start():]
    return text


def trim_trailing_text(text: str) -> str:
    """Discard anything after the last bracket that closes the opening one."""
    stripped = text.rstrip()
    if not stripped or stripped[0] not in "[{":
        return text
    closer = "]" if stripped[0] == "[" else "}"
    end = stripped.rfind(closer)
    if 0 < end < len(stripped) - 1:
        return stripped[:end + 1]
    return text


def remove_export_artifacts(text: str) -> str:
    return text.replace(EXPORT_ARTIFACT, "")


def quote_native_numerals(text: str) -> str:
    """
    Quote bare non-Latin numerals used as object values: `: १०}` -> `: "१०"}`.

    Only text outside string literals is rewritten.
    """
    return "".join(
        segment if is_string else _NATIVE_NUMERAL_VALUE.sub(r': "\1"\2', segment)
        for is_string, segment in split_string_literals(text)
    )


def strip_all_backslashes(text: str) -> str:
    return text.replace("\\", "")


def escape_control_chars(text: str) -> str:
    """Escape raw newlines, carriage returns and tabs found inside string literals."""
    out: List[str] = []
    in_string = False
    escaped = False

    for ch in text:
        if in_string:
            if escaped:
                escaped = False
                if ch in _CONTROL_ESCAPES:
                    # backslash followed by a raw line break
                    out.append(_CONTROL_ESCAPES[ch][1])
                    continue
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            elif ch in _CONTROL_ESCAPES:
                out.append(_CONTROL_ESCAPES[ch])
                continue
        elif ch == '"':
            in_string = True
        out.append(ch)

    return "".join(out)


def _is_valid_json(text: str) -> bool:
    try:
        json.loads(text)
    except (ValueError, RecursionError):
        return False
    return True


def balance_unterminated_strings(text: str) -> str:
    """
    Close string literals that were never terminated.

    Scans character by character, tracking whether we are inside a string
    and honouring backslash escapes. A `}` or `]` met inside a string gets a
    closing quote injected right before it when what follows can only be
    structure: end of text, another closer, or a comma leading to the next
    key, object or array. A bracket with no quote anywhere after it is
    treated the same way. A string still open at the end of the text is
    closed there. Text that already parses is returned unchanged.

    Example: `[{"Q": "hello}, {"Q": "world"}]` -> `[{"Q": "hello"}, {"Q": "world"}]`
    """
    if _is_valid_json(text):
        return text

    last_quote = text.rfind('"')
    out: List[str] = []
    in_string = False
    escaped = False

    for i, ch in enumerate(text):
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == '"':
            in_string = not in_string
        elif in_string and ch in "}]" and (last_quote < i or _STRUCTURE_FOLLOWS.match(text, i + 1)):
            out.append('"')
            in_string = False
        out.append(ch)

    if in_string:
        if escaped:
            out.pop()
        out.append('"')

    return "".join(out)


def normalize_escapes(text: str) -> str:
    """Turn invalid escape sequences inside strings into literal backslashes."""
    out: List[str] = []
    in_string = False
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]
        if not in_string:
            if ch == '"':
                in_string = True
            out.append(ch)
            i += 1
            continue

        if ch == "\\":
            nxt = text[i + 1] if i + 1 < n else ""
            if nxt in _VALID_ESCAPES:
                out.append(text[i:i + 2])
                i += 2
                continue
            if nxt == "u" and _HEX4.match(text, i + 2):
                out.append(text[i:i + 6])
                i += 6
                continue
            out.append("\\\\")
            i += 1
            continue

        if ch == '"':
            in_string = False
        out.append(ch)
        i += 1

    return "".join(out)


def collapse_doubled_quotes(text: str) -> str:
    """`""text""` -> `"text"`. Empty strings (`""` before `,` `}` `]` `:`) are kept."""
    text = _DOUBLED_OPEN_QUOTE.sub(r'\1"', text)
    return _DOUBLED_CLOSE_QUOTE.sub('"', text)


def split_string_literals(text: str) -> List[Tuple[bool, str]]:
    """
    Split text into (is_string_literal, segment) pieces.

    String pieces keep their quotes. An unterminated string at the end is
    reported as a string piece.
    """
    segments: List[Tuple[bool, str]] = []
    buf: List[str] = []
    in_string = False
    escaped = False

    for ch in text:
        if in_string:
            buf.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                segments.append((True, "".join(buf)))
                buf = []
                in_string = False
        elif ch == '"':
            if buf:
                segments.append((False, "".join(buf)))
            buf = ['"']
            in_string = True
        else:
            buf.append(ch)

    if buf:
        segments.append((in_string, "".join(buf)))
    return segments


def _quote_value(match: "re.Match") -> str:
    value = match.group(2).strip()
    if _JSON_SCALAR.fullmatch(value):
        return match.group(0)
    return f'{match.group(1)}{json.dumps(value, ensure_ascii=False)}{match.group(3)}'


def _repair_structure(segment: str) -> str:
    segment = _TRAILING_COMMA.sub(r'\1', segment)
    segment = _UNQUOTED_KEY.sub(r'\1"\2"\3', segment)
    # two passes: adjacent values share delimiters
    segment = _UNQUOTED_VALUE.sub(_quote_value, segment)
    segment = _UNQUOTED_VALUE.sub(_quote_value, segment)
    return segment


def aggressive_repair(text: str) -> str:
    """
    Last-resort repair.

    Normalizes invalid escapes and raw control characters, collapses
    accidental doubled quotes, then (outside string literals only) strips
    trailing commas, quotes unquoted keys and quotes unquoted scalar values.
    Numbers and true/false/null stay unquoted.
    """
    text = escape_control_chars(normalize_escapes(text))
    text = collapse_doubled_quotes(text)
    return "".join(
        segment if is_string else _repair_structure(segment)
        for is_string, segment in split_string_literals(text)
    )


def pipeline(*transforms: Callable[[str], str]) -> Callable[[str], str]:
    """Compose transforms left to right."""
    def run(text: str) -> str:
        for transform in transforms:
            text = transform(text)
        return text
    return run


clean_response = pipeline(
    strip_code_fences,
    strip_leading_backslashes,
    unwrap_json_string,
    seek_json_start,
    strip_leading_backslashes,
    remove_export_artifacts,
    trim_trailing_text,
    str.strip,
)

light_cleanup = pipeline(
    remove_export_artifacts,
    quote_native_numerals,
    escape_control_chars,
    str.strip,
)

preprocess = pipeline(
    strip_leading_backslashes,
    seek_json_start,
    strip_leading_backslashes,
    str.strip,
)

"""
Prompt templates for spreadsheet translation.

The template table is keyed by target language name. Unknown languages
fall back to an empty template; user overrides (from the config file or
the command line) shadow the shipped defaults without mutating them.
"""

from __future__ import annotations
import json
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from sheettrans.core.models import Row


HEADER_SYSTEM_PROMPT = "You are a concise translator."

HEADER_USER_PROMPT = (
    "Translate the following comma-separated list of column headers into {language}. "
    "Return ONLY the translated comma-separated list, without any extra text or "
    "explanations.\n\n{headers}"
)

CHUNK_USER_PROMPT = (
    "Translate the following JSON data according to the instructions. IMPORTANT: "
    "Return ONLY valid JSON array without any markdown formatting, code blocks, or "
    "extra text. Do not wrap the response in quotes or add any backslashes:\n\n{payload}"
)

_HINDI = """Please translate without creativity or rephrasing unless necessary for clarity.
You are a professional educational language translator with experience in scenario-based aptitude and behavioural assessments. Your task is to translate the following English JSON data into Hindi.
These questions assess practical decision-making, interpersonal judgment, or cognitive skills in real-life or workplace scenarios.
Follow these instructions precisely:
1.  Translate into standard Hindi, understandable to a learner with a 10th-grade reading level. Use a formal yet clear tone appropriate for academic or exam use. Avoid literary, poetic, overly Sanskritised, or conversational constructions. Do not use slang or region-specific expressions.
2.  Ensure all language is gender-neutral, unless the original English text explicitly specifies gender.
3.  If any word, phrase, or sentence in English is being tested (such as in synonym, idiom, or paraphrasing questions), retain it in English. Do not translate it.
4.  The translation must preserve the meaning, tone, and logic of the original question. The correct answer must remain valid in the Hindi version.
5.  Maintain the structure and flow of the question and options unless a slight adjustment improves clarity in Hindi.
6.  If the original English input is ambiguous, unclear, or poorly written, flag it for review instead of attempting to interpret.
7.  Translate text and convert numbers to their Hindi script equivalents (e.g., 1 to १, 2 to २).
8.  When you encounter single English letters used as labels (e.g., 'Assertion (A)', 'Strategy B'), translate them to their corresponding Devanagari letters (e.g., 'अभिकथन (अ)', 'रणनीति ब') unless they are part of a specific term that must remain in English.
9.  Maintain the exact JSON structure (keys and nesting). Only translate the string values and convert numbers. Do not translate the keys.
10. Return ONLY the translated JSON array, without any surrounding text, explanations, or markdown formatting like ```json."""

_MARATHI = """Please translate without creativity or rephrasing unless necessary for clarity.
You are a professional educational language translator with experience in scenario-based aptitude and behavioural assessments. Your task is to translate the following English JSON data into Marathi.
These questions test practical reasoning, workplace behaviour, communication, or decision-making in real or simulated situations.
Follow these instructions precisely:
1.  Translate into standard Marathi, suitable for a learner at the 10th-grade reading level. Use a formal yet clear tone.
2.  Ensure all language is gender-neutral, unless the original English text explicitly specifies gender.
3.  The translation must preserve the meaning, tone, and logic of the original question. The correct answer must remain valid in the Marathi version.
4.  Translate text and convert numbers to their Marathi script equivalents (e.g., 1 to १, 2 to २).
5.  When you encounter single English letters used as labels (e.g., 'Assertion (A)', 'Strategy B'), translate them to their corresponding Devanagari letters (e.g., 'अभिकथन (अ)', 'रणनीति ब') unless they are part of a specific term that must remain in English.
6.  Maintain the exact JSON structure (keys and nesting). Only translate the string values and convert numbers. Do not translate the keys.
7.  Return ONLY the translated JSON array, without any surrounding text, explanations, or markdown formatting like ```json."""

DEFAULT_TEMPLATES: Mapping[str, str] = MappingProxyType({
    "Hindi": _HINDI,
    "Marathi": _MARATHI,
})


class PromptLibrary:
    """Read-only table of system prompts per language, plus user-prompt builders."""

    def __init__(
        self,
        templates: Optional[Mapping[str, str]] = None,
        overrides: Optional[Mapping[str, str]] = None
    ):
        base = dict(DEFAULT_TEMPLATES if templates is None else templates)
        self._defaults: Mapping[str, str] = MappingProxyType(base)
        self._overrides: Mapping[str, str] = MappingProxyType(
            {k: v for k, v in (overrides or {}).items() if v}
        )

    @classmethod
    def from_config(cls, config: Optional[Dict]) -> "PromptLibrary":
        """Build from the `prompts` section of the loaded config."""
        section = (config or {}).get("prompts") or {}
        return cls(overrides=section.get("overrides") or {})

    def with_override(self, language: str, template: str) -> "PromptLibrary":
        """Return a new library where `language` uses `template`."""
        overrides = dict(self._overrides)
        overrides[language] = template
        return PromptLibrary(self._defaults, overrides)

    @property
    def languages(self) -> List[str]:
        names = list(self._defaults)
        names.extend(k for k in self._overrides if k not in self._defaults)
        return names

    def get_template(self, language: str) -> str:
        """User override first, then the shipped default, then ''."""
        if language in self._overrides:
            return self._overrides[language]
        return self._defaults.get(language, "")

    def is_overridden(self, language: str) -> bool:
        return language in self._overrides

    @staticmethod
    def header_prompt(headers: List[str], language: str) -> str:
        return HEADER_USER_PROMPT.format(language=language, headers=", ".join(headers))

    @staticmethod
    def chunk_prompt(rows: List[Row]) -> str:
        payload = json.dumps(rows, indent=2, ensure_ascii=False, default=str)
        return CHUNK_USER_PROMPT.format(payload=payload)

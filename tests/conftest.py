"""Pytest configuration and fixtures."""

import json
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest

from sheettrans.translation.base import ModelBackend

VALID_KEY = "AIzaSyTestKey_0123456789abcdef"


class ScriptedBackend(ModelBackend):
    """Backend replaying canned responses; records every request."""

    def __init__(self, responses):
        super().__init__(model="scripted")
        self.responses = list(responses)
        self.calls = []

    async def generate(self, system_prompt, user_prompt, credential):
        self.calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "credential": credential,
        })
        if not self.responses:
            raise AssertionError("ScriptedBackend ran out of responses")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class EchoBackend(ModelBackend):
    """Header call returns fixed headers; chunk calls echo rows with values prefixed."""

    def __init__(self, translated_headers, prefix="T:"):
        super().__init__(model="echo")
        self.translated_headers = translated_headers
        self.prefix = prefix
        self.calls = []

    async def generate(self, system_prompt, user_prompt, credential):
        self.calls.append(user_prompt)
        if "column headers" in user_prompt:
            return ", ".join(self.translated_headers)
        payload = json.loads(user_prompt[user_prompt.index("["):])
        return json.dumps([
            {k: f"{self.prefix}{v}" if isinstance(v, str) else v for k, v in row.items()}
            for row in payload
        ], ensure_ascii=False)


@pytest.fixture
def sample_headers():
    """Column headers of a small question bank."""
    return ["Question", "Answer", "Subskill"]


@pytest.fixture
def sample_rows():
    """Two translatable rows around one passthrough row."""
    return [
        {"Question": "What is 2+2?", "Answer": "4", "Subskill": "Numeracy"},
        {"Question": "Pick the synonym of 'happy'", "Answer": "glad", "Subskill": "Verbal Reasoning"},
        {"Question": "Who leads the meeting?", "Answer": "The manager", "Subskill": "Workplace"},
    ]


@pytest.fixture
def api_key():
    return VALID_KEY


@pytest.fixture
def scripted_backend():
    """Factory for a ScriptedBackend."""
    return ScriptedBackend


@pytest.fixture
def echo_backend():
    """Factory for an EchoBackend."""
    return EchoBackend


@pytest.fixture
def clean_env(monkeypatch):
    """Remove sheettrans environment overrides."""
    for name in ("GEMINI_API_KEY", "SHEETTRANS_MODEL", "SHEETTRANS_CHUNK_SIZE"):
        monkeypatch.delenv(name, raising=False)
    # load_dotenv() must not pick up a developer's .env file
    monkeypatch.setattr("sheettrans.utils.config_loader.load_dotenv", lambda *a, **k: False)
    return monkeypatch

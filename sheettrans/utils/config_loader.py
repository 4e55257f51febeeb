"""Configuration loading and management."""

import copy
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from sheettrans.core.exceptions import ConfigurationError


USER_CONFIG_PATH = Path.home() / ".sheettrans" / "config.yaml"

_API_KEY_PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Values missing from the file fall back to get_default_config(), and
    environment variables (including those from a `.env` file) win over
    both.

    Args:
        config_path: Path to config file (defaults to configs/default.yaml)

    Returns:
        Configuration dictionary
    """
    load_dotenv()

    if config_path is None:
        possible_paths = [
            Path("configs/default.yaml"),
            USER_CONFIG_PATH,
            Path(__file__).parent.parent.parent / "configs" / "default.yaml"
        ]

        for path in possible_paths:
            if path.exists():
                config_path = str(path)
                break
        else:
            return override_with_env(get_default_config())

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        loaded = yaml.safe_load(f) or {}

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Config file must contain a mapping: {config_path}")

    config = merge_config(get_default_config(), loaded)
    return override_with_env(config)


def save_config(config: Dict[str, Any], config_path: str) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: Configuration dictionary
        config_path: Output path
    """
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, 'w', encoding='utf-8') as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False, allow_unicode=True)


def merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def override_with_env(config: Dict[str, Any]) -> Dict[str, Any]:
    """Override config with environment variables."""
    env_mappings = {
        "GEMINI_API_KEY": (["api_keys", "gemini"], str),
        "SHEETTRANS_MODEL": (["model", "name"], str),
        "SHEETTRANS_CHUNK_SIZE": (["translation", "chunk_size"], int),
    }

    for env_var, (path, cast) in env_mappings.items():
        value = os.getenv(env_var)
        if value:
            try:
                value = cast(value)
            except ValueError:
                raise ConfigurationError(
                    f"Environment variable {env_var} has an invalid value",
                    config_key=".".join(path),
                    invalid_value=value
                )
            current = config
            for key in path[:-1]:
                if key not in current or not isinstance(current[key], dict):
                    current[key] = {}
                current = current[key]
            current[path[-1]] = value

    return config


def get_default_config() -> Dict[str, Any]:
    """Get default configuration."""
    return {
        "model": {
            "name": "gemini-2.5-flash-preview-05-20",
            "max_attempts": 5,
            "initial_delay": 1.0,
            "backoff_factor": 2.0,
            "timeout": 120.0,
            "generation": {
                "temperature": 0.2,
                "top_p": 1.0,
                "top_k": 32,
                "max_output_tokens": 8192,
                "safety_threshold": "BLOCK_NONE"
            }
        },
        "translation": {
            "default_language": "Hindi",
            "chunk_size": 1,
            "strict_row_count": True,
            "allow_degraded_parse": True,
            "passthrough": {
                "column": "Subskill",
                "value": "Verbal Reasoning"
            }
        },
        "prompts": {
            "overrides": {}
        },
        "output": {
            "sheet_name": "TranslatedSheet"
        },
        "logging": {
            "level": "INFO",
            "file": None
        },
        "api_keys": {
            "gemini": ""
        }
    }


def is_valid_api_key(api_key: Optional[str]) -> bool:
    """Basic format check for a Gemini API key."""
    if not api_key:
        return False
    return len(api_key) > 20 and bool(_API_KEY_PATTERN.match(api_key))


def resolve_api_key(config: Dict[str, Any], explicit: Optional[str] = None) -> str:
    """
    Pick the API key: explicit argument, then config/env.

    Raises:
        ConfigurationError: if no key is set or its format is invalid
    """
    api_key = (explicit or (config.get("api_keys") or {}).get("gemini") or "").strip()
    if not api_key:
        raise ConfigurationError(
            "Please enter your Gemini API key.",
            config_key="api_keys.gemini"
        )
    if not is_valid_api_key(api_key):
        raise ConfigurationError(
            "Please enter a valid API key format.",
            config_key="api_keys.gemini"
        )
    return api_key

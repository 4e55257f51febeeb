"""Utility functions and helpers."""

from .logger import setup_logger, get_logger
from .config_loader import load_config, save_config, is_valid_api_key, resolve_api_key
from .progress import ProgressReporter

__all__ = [
    'setup_logger',
    'get_logger',
    'load_config',
    'save_config',
    'is_valid_api_key',
    'resolve_api_key',
    'ProgressReporter'
]

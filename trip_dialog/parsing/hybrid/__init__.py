"""Hybrid parser: classifier-driven routing between extractors."""

from trip_dialog.parsing.hybrid.config import HybridParserConfig, DEFAULT_CONFIG, get_config
from trip_dialog.parsing.hybrid.parser import HybridParser, ALL_FAILED_ERROR

__all__ = [
    "HybridParserConfig",
    "DEFAULT_CONFIG",
    "get_config",
    "HybridParser",
    "ALL_FAILED_ERROR",
]

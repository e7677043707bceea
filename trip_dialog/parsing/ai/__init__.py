"""AI-backed trip extractor and its language-model backends."""

from trip_dialog.parsing.ai.backend import LanguageModelBackend, OpenAIExtractionBackend
from trip_dialog.parsing.ai.extractor import AIExtractor, NOT_AVAILABLE_ERROR
from trip_dialog.parsing.ai.response_parser import BackendExtraction, parse_extraction_response

__all__ = [
    "LanguageModelBackend",
    "OpenAIExtractionBackend",
    "AIExtractor",
    "NOT_AVAILABLE_ERROR",
    "BackendExtraction",
    "parse_extraction_response",
]

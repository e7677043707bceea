"""
Trip request parsing.

Deterministic and preference extractors, the input classifier, the
AI-backed extractor and the hybrid parser that routes between them.
"""

from trip_dialog.parsing.schemas import Classification, ParseResult
from trip_dialog.parsing.classifier import Classifier
from trip_dialog.parsing.deterministic import DeterministicExtractor
from trip_dialog.parsing.preferences import PreferenceExtractor

__all__ = [
    "Classification",
    "ParseResult",
    "Classifier",
    "DeterministicExtractor",
    "PreferenceExtractor",
]

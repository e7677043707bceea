"""
Trip dialog package for the AI-powered trip planning application.

This package contains:
- shared/: Common infrastructure (LLM client, logging, errors, contracts)
- parsing/: Deterministic, preference, AI-backed extractors, classifier
  and the hybrid parser that routes between them
- conversation/: Per-session state store, modification resolver, dialog
  replies and the caller-facing service/API
- graph/: LangGraph pipeline that runs a single conversational turn
"""

from trip_dialog.parsing.hybrid.parser import HybridParser
from trip_dialog.conversation.service import TripDialogService

__all__ = ["HybridParser", "TripDialogService"]

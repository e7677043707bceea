"""
Error taxonomy for trip parsing and conversation handling.

Extraction-layer errors are recovered by the hybrid parser and never
escape it. The conversation service turns the remaining ones into a
natural-language reply for the caller.
"""

from typing import List, Optional


class TripDialogError(Exception):
    """Base class for all trip dialog errors."""

    error_type = "trip_dialog_error"


class ParseFailure(TripDialogError):
    """Raised when no extractor produced a usable trip plan."""

    error_type = "parse_failure"


class AmbiguousInput(TripDialogError):
    """Raised when the input is too vague to act on."""

    error_type = "ambiguous_input"


class BackendUnavailable(TripDialogError):
    """Reported when a turn needed the language-model backend and it was unavailable."""

    error_type = "backend_unavailable"


class ResponseParseError(TripDialogError):
    """Raised when the language-model response is not valid structured JSON."""

    error_type = "response_parse_error"


class InvalidModification(TripDialogError):
    """
    Raised when a modification cannot be applied to the current plan.

    Attributes:
        offending_value: The destination or value the user asked for
        current_destinations: City names in the current plan, for the reply
    """

    error_type = "invalid_modification"

    def __init__(
        self,
        message: str,
        offending_value: Optional[str] = None,
        current_destinations: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.offending_value = offending_value
        self.current_destinations = current_destinations or []

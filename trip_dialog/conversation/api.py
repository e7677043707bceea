"""
FastAPI endpoints for trip parsing and modification.

Provides the caller-facing REST API: parse a message, apply a
modification, undo, inspect and clear a session.
"""

import logging
import os
import time
from typing import Optional

from fastapi import APIRouter, HTTPException, status

from trip_dialog.conversation.schemas import (
    ModificationResponse,
    ModifyRequest,
    ParseRequest,
    ParseResponse,
    SessionStateResponse,
    StoreStats,
)
from trip_dialog.conversation.service import TripDialogService
from trip_dialog.shared.logging.debug_logger import get_or_create_logger


logger = logging.getLogger(__name__)

# Create router for trip routes
router = APIRouter(prefix="/api/trips", tags=["trips"])

# Shared service instance (holds the in-memory session store)
_service: Optional[TripDialogService] = None

# Directory for per-session debug logs
_logs_dir: str = os.environ.get("TRIP_DIALOG_LOGS_DIR", "logs")


def get_service() -> TripDialogService:
    """Get or create the shared service instance."""
    global _service
    if _service is None:
        _service = TripDialogService()
    return _service


def set_service(service: Optional[TripDialogService], logs_dir: Optional[str] = None) -> None:
    """Replace the shared service instance (and optionally the debug log directory)."""
    global _service, _logs_dir
    _service = service
    if logs_dir is not None:
        _logs_dir = logs_dir


def _log_timing(session_id: str, endpoint: str, start: float, success: bool, error: Optional[str]):
    duration_ms = (time.perf_counter() - start) * 1000
    get_or_create_logger(session_id, _logs_dir).log_api_timing(
        endpoint=endpoint,
        duration_ms=duration_ms,
        success=success,
        error=error,
    )


@router.post("/parse", response_model=ParseResponse)
async def parse_trip(request: ParseRequest) -> ParseResponse:
    """
    Interpret a user message within its session.

    Starts a new session when no session_id is given. A message that can't
    be interpreted returns success=false with a clarification reply; it is
    not an HTTP error.

    Args:
        request: Message text plus optional session and user ids

    Returns:
        Parse outcome, current plan and the reply to show the user
    """
    api_start_time = time.perf_counter()
    service = get_service()

    try:
        response = await service.parse(request.text, request.session_id, request.user_id)
    except Exception as e:
        logger.exception(f"[session={request.session_id}] [api=parse] Turn failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error processing message: {str(e)}",
        )

    _log_timing(response.session_id, "/api/trips/parse", api_start_time, response.success, response.error)
    return response


@router.post("/modify", response_model=ModificationResponse)
async def modify_trip(request: ModifyRequest) -> ModificationResponse:
    """
    Apply a modification to the session's current plan.

    Raises:
        HTTPException: 404 if the session does not exist
    """
    api_start_time = time.perf_counter()
    service = get_service()

    if service.get_state(request.session_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session {request.session_id} not found",
        )

    try:
        response = await service.apply_modification(request.text, request.session_id)
    except Exception as e:
        logger.exception(f"[session={request.session_id}] [api=modify] Turn failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error applying modification: {str(e)}",
        )

    _log_timing(request.session_id, "/api/trips/modify", api_start_time, response.success, response.error)
    return response


@router.post("/{session_id}/undo", response_model=ModificationResponse)
async def undo_change(session_id: str) -> ModificationResponse:
    """Restore the plan from before the last committed change."""
    service = get_service()
    if service.get_state(session_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session {session_id} not found",
        )
    return await service.undo(session_id)


@router.get("/stats", response_model=StoreStats)
async def get_stats() -> StoreStats:
    """Session store statistics."""
    return get_service().stats()


@router.get("/{session_id}", response_model=SessionStateResponse)
async def get_session(session_id: str) -> SessionStateResponse:
    """
    Get the current state of a session.

    Raises:
        HTTPException: 404 if the session does not exist
    """
    state = get_service().describe_state(session_id)
    if state is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session {session_id} not found",
        )
    return state


@router.delete("/{session_id}")
async def delete_session(session_id: str):
    """Delete a session and its state."""
    if not get_service().clear(session_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session {session_id} not found",
        )
    return {"status": "deleted", "session_id": session_id}

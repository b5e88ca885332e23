"""
Chancellor API endpoints for lodge attendance and session management.

Provides:
- Events merged with their session status
- Attendance sheet for opening a session
- Session save (finalize, attendance overwrite, beneficence collection)
- Overview metrics and consecutive-absence alerts
- Alert review marking
- Member frequency report
- Suggested obediences for the visitor form

Design:
- Uses dependency injection for services
- All endpoints use GUID format (evt_xxx, mbr_xxx) for identifiers
- Toasts raised by an action are returned with the response, including the
  error response of a failed action
"""

from typing import List

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from backend.src.config.settings import AppSettings, get_settings
from backend.src.db.database import get_db
from backend.src.schemas.chancellor import (
    AttendanceSheetResponse,
    ErrorResponse,
    EventWithStatusResponse,
    FrequencyAlertResponse,
    MemberFrequencyResponse,
    ObedienceOption,
    OverviewResponse,
    ReviewResponse,
    SessionSaveRequest,
    SessionSaveResponse,
    ToastResponse,
)
from backend.src.schemas.visitor import OBEDIENCE_OPTIONS
from backend.src.services.chancellor_service import AlertReviewRegistry, ChancellorService
from backend.src.services.exceptions import (
    ConflictError,
    NotFoundError,
    ServiceError,
    ValidationError,
)
from backend.src.services.lodge_store import SqlLodgeStore
from backend.src.services.notifier import ToastCollector
from backend.src.utils.logging_config import get_logger


logger = get_logger("api")

router = APIRouter(
    prefix="/chancellor",
    tags=["Chancellor"],
)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


# ============================================================================
# Dependencies
# ============================================================================


def get_review_registry(request: Request) -> AlertReviewRegistry:
    """Reviewed-alert registry held in application state."""
    return request.app.state.review_registry


def get_toast_collector() -> ToastCollector:
    """Fresh toast collector for one request."""
    return ToastCollector()


def get_chancellor_service(
    db: Session = Depends(get_db),
    registry: AlertReviewRegistry = Depends(get_review_registry),
    toasts: ToastCollector = Depends(get_toast_collector),
    settings: AppSettings = Depends(get_settings),
) -> ChancellorService:
    """Create ChancellorService instance with database session."""
    return ChancellorService(
        store=SqlLodgeStore(db),
        registry=registry,
        notifier=toasts,
        settings=settings,
    )


def _toast_responses(toasts: ToastCollector) -> List[ToastResponse]:
    return [ToastResponse(**toast.__dict__) for toast in toasts.toasts]


def _error_response(e: ServiceError, toasts: ToastCollector) -> JSONResponse:
    """
    Map a service error to its HTTP status.

    The body carries the toasts the failed action raised, so the client can
    show the same message the chancellor screen would.
    """
    if isinstance(e, NotFoundError):
        status_code, detail = status.HTTP_404_NOT_FOUND, str(e)
    elif isinstance(e, ConflictError):
        status_code, detail = status.HTTP_409_CONFLICT, e.message
    elif isinstance(e, ValidationError):
        status_code, detail = status.HTTP_400_BAD_REQUEST, e.message
    else:
        status_code, detail = status.HTTP_500_INTERNAL_SERVER_ERROR, "An internal error occurred"

    body = ErrorResponse(detail=detail, toasts=_toast_responses(toasts))
    return JSONResponse(status_code=status_code, content=body.model_dump())


# ============================================================================
# API Endpoints
# ============================================================================


@router.get(
    "/events",
    response_model=List[EventWithStatusResponse],
    responses=ERROR_RESPONSES,
    summary="List events with session status",
)
async def list_events(
    service: ChancellorService = Depends(get_chancellor_service),
    toasts: ToastCollector = Depends(get_toast_collector),
):
    """
    List every calendar event with its session record, newest first.

    Events without a session record are reported as "pending".
    """
    try:
        rows = service.list_events()
        logger.info(f"Listed {len(rows)} events")
        return [EventWithStatusResponse(**row) for row in rows]

    except ServiceError as e:
        return _error_response(e, toasts)


@router.get(
    "/events/{event_guid}/sheet",
    response_model=AttendanceSheetResponse,
    responses=ERROR_RESPONSES,
    summary="Get attendance sheet",
    description="One line per member, prefilled from the saved session when it exists",
)
async def get_attendance_sheet(
    event_guid: str,
    service: ChancellorService = Depends(get_chancellor_service),
    toasts: ToastCollector = Depends(get_toast_collector),
):
    try:
        return AttendanceSheetResponse.model_validate(service.get_attendance_sheet(event_guid))

    except ServiceError as e:
        return _error_response(e, toasts)


@router.post(
    "/events/{event_guid}/session",
    response_model=SessionSaveResponse,
    responses=ERROR_RESPONSES,
    summary="Save and finalize a session",
)
async def save_session(
    event_guid: str,
    request: SessionSaveRequest,
    service: ChancellorService = Depends(get_chancellor_service),
    toasts: ToastCollector = Depends(get_toast_collector),
):
    """
    Save the session of an event.

    Attendance and visitors replace what was saved before. On the first
    save with a positive beneficence collection, one income transaction is
    written to the ledger.

    Example:
        POST /api/chancellor/events/evt_01hgw.../session
        {
          "charity_collection": "50.00",
          "observations": "",
          "attendances": [{"member_guid": "mbr_01hgw...", "status": "present"}]
        }
    """
    try:
        result = service.save_session(event_guid, request)
        return SessionSaveResponse(**result, toasts=_toast_responses(toasts))

    except ServiceError as e:
        return _error_response(e, toasts)


@router.get(
    "/overview",
    response_model=OverviewResponse,
    responses=ERROR_RESPONSES,
    summary="Get chancellor overview",
)
async def get_overview(
    service: ChancellorService = Depends(get_chancellor_service),
    toasts: ToastCollector = Depends(get_toast_collector),
):
    try:
        return OverviewResponse(**service.get_overview())

    except ServiceError as e:
        return _error_response(e, toasts)


@router.get(
    "/alerts",
    response_model=List[FrequencyAlertResponse],
    responses=ERROR_RESPONSES,
    summary="List consecutive-absence alerts",
)
async def list_alerts(
    service: ChancellorService = Depends(get_chancellor_service),
    toasts: ToastCollector = Depends(get_toast_collector),
):
    try:
        return [FrequencyAlertResponse(**alert) for alert in service.get_alerts()]

    except ServiceError as e:
        return _error_response(e, toasts)


@router.post(
    "/alerts/{member_guid}/review",
    response_model=ReviewResponse,
    responses=ERROR_RESPONSES,
    summary="Mark a member's alert as reviewed",
)
async def mark_alert_reviewed(
    member_guid: str,
    service: ChancellorService = Depends(get_chancellor_service),
    toasts: ToastCollector = Depends(get_toast_collector),
):
    try:
        return ReviewResponse(**service.mark_alert_reviewed(member_guid))

    except ServiceError as e:
        return _error_response(e, toasts)


@router.delete(
    "/alerts/{member_guid}/review",
    response_model=ReviewResponse,
    responses=ERROR_RESPONSES,
    summary="Clear a member's alert review",
)
async def unmark_alert_reviewed(
    member_guid: str,
    service: ChancellorService = Depends(get_chancellor_service),
    toasts: ToastCollector = Depends(get_toast_collector),
):
    try:
        return ReviewResponse(**service.unmark_alert_reviewed(member_guid))

    except ServiceError as e:
        return _error_response(e, toasts)


@router.get(
    "/reports/frequency",
    response_model=List[MemberFrequencyResponse],
    responses=ERROR_RESPONSES,
    summary="Member frequency report",
)
async def get_frequency_report(
    service: ChancellorService = Depends(get_chancellor_service),
    toasts: ToastCollector = Depends(get_toast_collector),
):
    try:
        return [MemberFrequencyResponse(**line) for line in service.get_frequency_report()]

    except ServiceError as e:
        return _error_response(e, toasts)


@router.get(
    "/visitors/obedience-options",
    response_model=List[ObedienceOption],
    summary="Suggested visitor obediences",
    description="Options for the visitor form; any non-empty obedience is accepted",
)
async def list_obedience_options() -> List[ObedienceOption]:
    return [
        ObedienceOption(value=value, label=label)
        for value, label in OBEDIENCE_OPTIONS.items()
    ]

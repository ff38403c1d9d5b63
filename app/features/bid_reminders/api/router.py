"""
Bid reminder routes.

POST /reminders/process is the entry point used by the scheduler and by
staff triggering reminders by hand. The remaining routes manage the
per-bid schedule and feed the dashboard.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from app.config import settings
from app.features.bid_reminders.api.models import (
    PauseRemindersResponse,
    ProcessEndpointStatus,
    ProcessRemindersRequest,
    ProcessRemindersResponse,
    ReminderDashboardResponse,
    ScheduleReminderResponse,
)
from app.features.bid_reminders.services.reminder_service import (
    InvitationNotFoundError,
    ReminderConfigurationError,
    ReminderService,
    ReminderServiceError,
    check_configuration,
    get_reminder_service,
    summary_message,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/reminders", tags=["bid-reminders"])


def require_email_configuration() -> None:
    """SendGrid and the database must both be usable before a run starts."""
    try:
        check_configuration(require_email=True)
    except ReminderConfigurationError as e:
        logger.error("Reminder run refused, service not configured", error=str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


def require_database_configuration() -> None:
    try:
        check_configuration(require_email=False)
    except ReminderConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.get("/process", response_model=ProcessEndpointStatus)
async def process_endpoint_status():
    """Health probe for the process endpoint."""
    return ProcessEndpointStatus(
        status="ok",
        endpoint="process-reminders",
        has_api_key=settings.has_sendgrid_credentials(),
        has_database=settings.has_database(),
    )


@router.post(
    "/process",
    response_model=ProcessRemindersResponse,
    dependencies=[Depends(require_email_configuration)],
)
async def process_reminders(
    request: ProcessRemindersRequest | None = None,
    service: ReminderService = Depends(get_reminder_service),
):
    """Run the reminder pipeline once, automatic or for explicit bids."""
    request = request or ProcessRemindersRequest()

    try:
        summary = await service.run(manual_bid_ids=request.manual_bid_ids, dry_run=request.dry_run)
    except ReminderServiceError as e:
        logger.error("Reminder run failed", error=str(e), operation=e.operation)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)
        ) from e

    return ProcessRemindersResponse(
        success=True,
        message=summary_message(summary, request.dry_run),
        dry_run=request.dry_run,
        results=summary.to_dict(),
    )


@router.get(
    "/dashboard",
    response_model=ReminderDashboardResponse,
    dependencies=[Depends(require_database_configuration)],
)
async def reminder_dashboard(service: ReminderService = Depends(get_reminder_service)):
    try:
        return await service.dashboard_stats()
    except Exception as e:
        logger.error("Failed to load reminder dashboard", error=str(e), error_type=type(e).__name__)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load reminder dashboard",
        ) from e


async def _run_bid_operation(operation: str, coro):
    try:
        return await coro
    except InvitationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except Exception as e:
        logger.error(
            "Bid reminder operation failed",
            operation=operation,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to {operation} reminders",
        ) from e


@router.post(
    "/bids/{bid_id}/schedule",
    response_model=ScheduleReminderResponse,
    dependencies=[Depends(require_database_configuration)],
)
async def schedule_bid_reminder(bid_id: str, service: ReminderService = Depends(get_reminder_service)):
    """Compute (and, with auto-send, queue) the next reminder for a bid."""
    return await _run_bid_operation("schedule", service.schedule_next_reminder(bid_id))


@router.post(
    "/bids/{bid_id}/pause",
    response_model=PauseRemindersResponse,
    dependencies=[Depends(require_database_configuration)],
)
async def pause_bid_reminders(bid_id: str, service: ReminderService = Depends(get_reminder_service)):
    return await _run_bid_operation("pause", service.pause_reminders(bid_id))


@router.post(
    "/bids/{bid_id}/resume",
    response_model=PauseRemindersResponse,
    dependencies=[Depends(require_database_configuration)],
)
async def resume_bid_reminders(bid_id: str, service: ReminderService = Depends(get_reminder_service)):
    return await _run_bid_operation("resume", service.resume_reminders(bid_id))

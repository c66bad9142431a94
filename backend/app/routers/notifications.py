"""
Air Safety Reporting - Notifications API Router

A user's own notifications. Every read-state change and deletion is
recorded in the notification audit log.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models.db_models import NotificationDB, UserDB
from ..services.notifications import NotificationFanout
from ..services.reporting import ReportingError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class NotificationResponse(BaseModel):
    id: str
    title: str
    message: str
    type: str
    isRead: bool
    relatedReportId: Optional[str] = None
    createdAt: str


class UnreadCountResponse(BaseModel):
    count: int


class BulkResultResponse(BaseModel):
    message: str
    count: int


class MessageResponse(BaseModel):
    message: str


def _to_response(n: NotificationDB) -> NotificationResponse:
    return NotificationResponse(
        id=n.id,
        title=n.title,
        message=n.message,
        type=n.type,
        isRead=bool(n.is_read),
        relatedReportId=n.related_report_id,
        createdAt=n.created_at.isoformat() if n.created_at else "",
    )


# =============================================================================
# API ENDPOINTS
# Fixed paths are declared before /{notification_id}
# =============================================================================

@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    """Caller's notifications, newest first."""
    try:
        return [_to_response(n) for n in NotificationFanout(db).list_for(current_user)]
    except ReportingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    try:
        return UnreadCountResponse(count=NotificationFanout(db).unread_count(current_user))
    except ReportingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.patch("/mark-all-read", response_model=BulkResultResponse)
async def mark_all_read(
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    try:
        updated = NotificationFanout(db).mark_all_read(current_user)
    except ReportingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    logger.info(f"User {current_user.id} marked {updated} notification(s) as read")
    return BulkResultResponse(message="All notifications marked as read", count=updated)


@router.delete("", response_model=BulkResultResponse)
async def delete_all_notifications(
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    try:
        deleted = NotificationFanout(db).delete_all(current_user)
    except ReportingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    logger.info(f"User {current_user.id} deleted {deleted} notification(s)")
    return BulkResultResponse(message="All notifications deleted", count=deleted)


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: str,
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    try:
        return _to_response(NotificationFanout(db).mark_read(notification_id, current_user))
    except ReportingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(
    notification_id: str,
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    try:
        NotificationFanout(db).delete(notification_id, current_user)
    except ReportingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return MessageResponse(message="Notification deleted")

"""
Air Safety Reporting - Comments API Router

Discussion on a report between the submitter and the safety office.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models.db_models import UserDB
from ..services.reporting import CommentService, ReportingError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/comments", tags=["comments"])


class CommentResponse(BaseModel):
    id: str
    reportId: str
    userId: Optional[str] = None  # None when the author is an anonymous submitter
    content: str
    createdAt: str
    user: Optional[Dict[str, Any]] = None


class CreateCommentRequest(BaseModel):
    reportId: str
    content: str


@router.get("", response_model=List[CommentResponse])
async def list_comments(
    report_id: str = Query(..., alias="reportId"),
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    """Comments on a report, oldest first."""
    try:
        return CommentService(db).list_comments(report_id, current_user)
    except ReportingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post("", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def add_comment(
    request: CreateCommentRequest,
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    """
    Comment on a report.

    Admins and the report's submitter are notified, never the commenter.
    """
    try:
        return CommentService(db).add_comment(request.reportId, request.content, current_user)
    except ReportingError as e:
        logger.info(f"Comment on report {request.reportId} by {current_user.id} refused: {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.detail)

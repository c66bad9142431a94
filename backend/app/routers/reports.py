"""
Air Safety Reporting - Reports API Router

Submission, listing, detail and review of safety reports of every kind.
All endpoints require authentication; what a caller sees is scoped by role.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models.db_models import UserDB
from ..services.reporting import (
    ReportReader, ReportStatusMachine, ReportWriter, ReportingError, registry,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])


# =============================================================================
# PYDANTIC MODELS FOR API
# =============================================================================

class CreateReportResponse(BaseModel):
    id: str
    reportType: str
    status: str
    createdAt: str


class StatusUpdateRequest(BaseModel):
    status: str


class ReportFieldResponse(BaseModel):
    name: str
    required: bool


class ReportTypeResponse(BaseModel):
    code: str
    label: str
    fields: List[ReportFieldResponse]


class ReportStatsResponse(BaseModel):
    total: int
    byStatus: Dict[str, int]
    byType: Dict[str, int]


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.post("", response_model=CreateReportResponse, status_code=status.HTTP_201_CREATED)
async def create_report(
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    """
    Submit a report. The body names its kind in reportType; fields beyond the
    kind's fixed fields go in extraData.
    """
    try:
        report = ReportWriter(db).create_report(payload, current_user)
    except ReportingError as e:
        logger.info(f"Report submission by {current_user.id} refused: {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.detail)

    return CreateReportResponse(
        id=report.id,
        reportType=registry.resolve_storage(report.report_type).type_code,
        status=report.status,
        createdAt=report.created_at.isoformat(),
    )


@router.get("", response_model=List[dict])
async def list_reports(
    report_type: Optional[str] = Query(None, alias="type", description="Report type code"),
    report_status: Optional[str] = Query(None, alias="status", description="Report status"),
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    """
    Reports visible to the caller, newest first.

    Admins see every report, crew members only their own.
    """
    try:
        return ReportReader(db).list_reports(current_user, type_filter=report_type, status_filter=report_status)
    except ReportingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("/stats", response_model=ReportStatsResponse)
async def get_report_stats(
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    """Report counts by status and by type within the caller's scope."""
    try:
        return ReportReader(db).get_stats(current_user)
    except ReportingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("/types", response_model=List[ReportTypeResponse])
async def list_report_types(current_user: UserDB = Depends(get_current_user)):
    """Registered report kinds and their fixed fields."""
    return [
        ReportTypeResponse(
            code=d.type_code,
            label=d.label,
            fields=[ReportFieldResponse(name=f.canonical, required=f.required) for f in d.fields],
        )
        for d in registry.list_all()
    ]


@router.get("/{report_id}", response_model=dict)
async def get_report(
    report_id: str,
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    """Single report with its comments."""
    try:
        return ReportReader(db).get_report(report_id, current_user)
    except ReportingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.patch("/{report_id}/status", response_model=dict)
async def update_report_status(
    report_id: str,
    request: StatusUpdateRequest,
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    """
    Move a report through review: submitted → in_review → closed, or
    rejected from either open state. Admin only.
    """
    try:
        ReportStatusMachine(db).transition(report_id, request.status, current_user)
        return ReportReader(db).get_report(report_id, current_user)
    except ReportingError as e:
        logger.info(f"Status change on report {report_id} by {current_user.id} refused: {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.detail)

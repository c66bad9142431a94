"""
Scheduler API Routes

Internal endpoints for system-automatic tasks.
Retries notification deliveries left pending in the outbox.
"""
import logging
import os

from fastapi import APIRouter, Depends, HTTPException, Header, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..services.notifications import NotificationOutbox

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", tags=["scheduler"])


# =============================================================================
# INTERNAL API KEY VALIDATION
# =============================================================================

INTERNAL_API_KEY = os.getenv("INTERNAL_API_KEY", "scheduler-internal-key-change-in-production")


async def verify_internal_key(x_internal_key: str = Header(...)):
    """Verify internal API key for scheduler endpoints."""
    if x_internal_key != INTERNAL_API_KEY:
        raise HTTPException(status_code=403, detail="Invalid internal API key")
    return True


# =============================================================================
# SCHEDULER ENDPOINTS (SYSTEM-ONLY)
# =============================================================================

@router.post("/notifications/drain", response_model=dict)
async def drain_notification_outbox(
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    _: bool = Depends(verify_internal_key),
):
    """
    Deliver pending notification events, oldest first.

    System-automatic - run periodically to retry failed deliveries.
    """
    result = NotificationOutbox(db).drain(limit=limit)
    logger.info(f"Outbox drain: {result['delivered']} delivered, {result['failed']} failed")
    return result

"""Debug API endpoints for local development.

Only mounted outside production, so codes can be read back when no
mail transport is configured.
"""

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from src.config import Settings, get_settings
from src.database import get_db
from src.models.enums import OtpPurpose
from src.services.otp_ledger import OtpLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/debug", tags=["debug"])


class DebugOtpResponse(BaseModel):
    """Latest live code for an address."""

    email: str
    code: str
    purpose: OtpPurpose
    attempts: int
    expires_at: datetime
    has_pending_registration: bool


@router.get("/otp/{email}", response_model=DebugOtpResponse)
def get_latest_otp(
    email: str,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    purpose: OtpPurpose = Query(default=OtpPurpose.EMAIL_VERIFICATION),
):
    """Return the newest unexpired, unverified code for an address."""
    if settings.is_production:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")

    record = OtpLedger(db, settings).find_latest(email, purpose)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active code for this email",
        )

    logger.warning(f"Debug read of {purpose.value} code for {record.email}")
    return DebugOtpResponse(
        email=record.email,
        code=record.code,
        purpose=record.purpose,
        attempts=record.attempts,
        expires_at=record.expires_at,
        has_pending_registration=record.pending_registration is not None,
    )

# ============================================================================
# FILE: app/api/v1/public/availability.py
# Public booking page data: computed windows without booking details
# ============================================================================
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date
from uuid import UUID

from app.config.database import get_db
from app.api.dependencies import get_availability_cache
from app.services.availability.availability_cache import AvailabilityCache
from app.services.availability.availability_service import AvailabilityService

router = APIRouter(prefix="/availability", tags=["public-availability"])


@router.get("/day")
def get_public_day(
        owner_id: UUID = Query(..., alias="ownerId", description="Owner whose availability to show"),
        day: date = Query(..., alias="date", description="Date to compute (YYYY-MM-DD)"),
        cache: AvailabilityCache = Depends(get_availability_cache),
        db: Session = Depends(get_db)
):
    AvailabilityService.get_owner(db, owner_id)
    return AvailabilityService.get_day(db, cache, owner_id, day, public=True)

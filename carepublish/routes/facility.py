"""
Facility routes for the session's current facility.
"""
from fastapi import APIRouter, Depends

from ..facility import FacilityContext, get_facility_context
from ..schemas.facility import FacilityResponse

router = APIRouter(prefix="/api/facility", tags=["facility"])


def context_to_response(context: FacilityContext) -> FacilityResponse:
    facility = context.current_facility
    if facility is None:
        return FacilityResponse(error=context.error)
    return FacilityResponse(id=facility.id, name=facility.name, is_fallback=facility.is_fallback)


@router.get("/current", response_model=FacilityResponse)
def get_current_facility(context: FacilityContext = Depends(get_facility_context)):
    """Facility resolved for the current user."""
    return context_to_response(context)


@router.post("/refresh", response_model=FacilityResponse)
def refresh_facility(context: FacilityContext = Depends(get_facility_context)):
    """Run facility resolution again and return the result."""
    context.refresh_facility()
    return context_to_response(context)

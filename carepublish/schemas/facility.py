from pydantic import BaseModel
from typing import Optional


class FacilityResponse(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    is_fallback: bool = False
    error: Optional[str] = None

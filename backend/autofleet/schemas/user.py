"""
Pydantic schemas for the user projections embedded in booking responses.
"""

from typing import Optional

from pydantic import BaseModel

from autofleet.models.enums import UserRole


class PartySummary(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    phone: Optional[str]
    role: UserRole

    model_config = {"from_attributes": True}

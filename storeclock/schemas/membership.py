"""
Store membership schemas
"""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from storeclock.models.store import MembershipRole


class MemberUpsert(BaseModel):
    """Add a registered user to the store, or change their role"""
    email: str = Field(..., min_length=3, description="Account email of the user")
    role: MembershipRole = MembershipRole.WORKER


class MembershipOut(BaseModel):
    id: int
    store_id: int
    user_id: int
    role: MembershipRole
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

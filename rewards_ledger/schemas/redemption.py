from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict
from rewards_ledger.models.redemption import RedemptionStatus


class RedemptionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    reward_id: int
    points_spent: int
    status: RedemptionStatus
    purchased_at: datetime


class RedemptionPage(BaseModel):
    redemptions: List[RedemptionRead]
    count: int


class StatusUpdateForm(BaseModel):
    status: RedemptionStatus
    notes: Optional[str] = None


class StatusChangeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    redemption_id: int
    from_status: Optional[RedemptionStatus] = None
    to_status: RedemptionStatus
    changed_by_id: Optional[int] = None
    notes: Optional[str] = None
    changed_at: datetime

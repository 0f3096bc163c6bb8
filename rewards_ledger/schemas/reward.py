from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from rewards_ledger.models.reward import RewardCategory
from rewards_ledger.schemas.redemption import RedemptionRead


class RewardCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    price: int = Field(gt=0)
    quantity: int = Field(default=10, ge=0)
    category: RewardCategory
    delivery_description: Optional[str] = None
    is_active: bool = True
    is_featured: bool = False


class RewardUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[int] = Field(default=None, gt=0)
    quantity: Optional[int] = Field(default=None, ge=0)
    category: Optional[RewardCategory] = None
    delivery_description: Optional[str] = None
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None


class RewardRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    price: int
    quantity: int
    category: RewardCategory
    delivery_description: Optional[str] = None
    is_active: bool
    is_featured: bool
    in_stock: bool
    updated_at: datetime


class RewardPage(BaseModel):
    rewards: List[RewardRead]
    count: int


class RewardDashboard(BaseModel):
    rewards: List[RewardRead]
    featured_rewards: List[RewardRead]
    count: int
    user_points: int = 0
    purchased_rewards: List[RedemptionRead] = []

import enum
from typing import List, Optional, TYPE_CHECKING
from datetime import datetime, timezone
from sqlmodel import Field, SQLModel, Relationship
from sqlalchemy import CheckConstraint, Column, Enum

if TYPE_CHECKING:
    from .redemption import RedemptionRecord


class RewardCategory(str, enum.Enum):
    MERCHANDISE = "merchandise"
    DIGITAL = "digital"
    EXPERIENCES = "experiences"


class Reward(SQLModel, table=True):
    __tablename__ = "rewards"
    __table_args__ = (
        CheckConstraint("price > 0", name="ck_reward_price_positive"),
        CheckConstraint("quantity >= 0", name="ck_reward_quantity_nonneg"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(max_length=200)
    description: str = ""
    price: int
    quantity: int = 0
    category: RewardCategory = Field(sa_column=Column(Enum(RewardCategory, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]), nullable=False))
    delivery_description: Optional[str] = None
    is_active: bool = True
    is_featured: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    redemptions: List["RedemptionRecord"] = Relationship(back_populates="reward")

    @property
    def in_stock(self) -> bool:
        return self.quantity > 0

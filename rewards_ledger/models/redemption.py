import enum
from typing import List, Optional, TYPE_CHECKING
from datetime import datetime, timezone
from sqlmodel import Field, SQLModel, Relationship
from sqlalchemy import Column, Enum, UniqueConstraint

if TYPE_CHECKING:
    from .user import User
    from .reward import Reward


class RedemptionStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


def _status_column(nullable: bool = False) -> Column:
    return Column(Enum(RedemptionStatus, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]), nullable=nullable)


class RedemptionRecord(SQLModel, table=True):
    __tablename__ = "redemption_records"
    __table_args__ = (
        UniqueConstraint("user_id", "reward_id", name="uq_redemption_user_reward"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    reward_id: int = Field(foreign_key="rewards.id", index=True)
    points_spent: int  # price at the time of redemption
    status: RedemptionStatus = Field(default=RedemptionStatus.CONFIRMED, sa_column=_status_column())
    purchased_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    user: "User" = Relationship(back_populates="redemptions")
    reward: "Reward" = Relationship(back_populates="redemptions")
    history: List["RedemptionStatusChange"] = Relationship(back_populates="redemption")


class RedemptionStatusChange(SQLModel, table=True):
    __tablename__ = "redemption_status_history"

    id: Optional[int] = Field(default=None, primary_key=True)
    redemption_id: int = Field(foreign_key="redemption_records.id", index=True)
    from_status: Optional[RedemptionStatus] = Field(default=None, sa_column=_status_column(nullable=True))
    to_status: RedemptionStatus = Field(sa_column=_status_column())
    changed_by_id: Optional[int] = Field(default=None, foreign_key="users.id")
    notes: Optional[str] = None
    changed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    redemption: "RedemptionRecord" = Relationship(back_populates="history")

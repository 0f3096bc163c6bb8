from typing import Optional, TYPE_CHECKING
from datetime import datetime, timezone
from sqlmodel import Field, SQLModel, Relationship
from sqlalchemy import CheckConstraint, Index

if TYPE_CHECKING:
    from .user import User


class LedgerEntry(SQLModel, table=True):
    """One immutable point movement. Positive amounts are earned, negative are spent."""
    __tablename__ = "ledger_entries"
    __table_args__ = (
        CheckConstraint("amount <> 0", name="ck_ledger_amount_nonzero"),
        Index("ix_ledger_user_category", "user_id", "category"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    amount: int
    category: str = Field(max_length=50)
    reason: str = Field(default="", max_length=255)
    reference: Optional[str] = Field(default=None, max_length=100)
    source: str = Field(default="award", max_length=20)  # award|redemption|refund|manual
    issued_by_id: Optional[int] = Field(default=None, foreign_key="users.id")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)

    user: "User" = Relationship(back_populates="ledger_entries", sa_relationship_kwargs={"foreign_keys": "[LedgerEntry.user_id]"})
    issued_by: Optional["User"] = Relationship(back_populates="issued_entries", sa_relationship_kwargs={"foreign_keys": "[LedgerEntry.issued_by_id]"})

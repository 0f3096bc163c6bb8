from typing import List, Optional, TYPE_CHECKING
from datetime import datetime, timezone
from sqlmodel import Field, SQLModel, Relationship
from passlib.context import CryptContext

if TYPE_CHECKING:
    from .ledger_entry import LedgerEntry
    from .redemption import RedemptionRecord

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    first_name: str
    last_name: str
    role: str = "member"  # member|admin
    password_hash: str = ""
    is_active: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    ledger_entries: List["LedgerEntry"] = Relationship(back_populates="user", sa_relationship_kwargs={"foreign_keys": "[LedgerEntry.user_id]"})
    issued_entries: List["LedgerEntry"] = Relationship(back_populates="issued_by", sa_relationship_kwargs={"foreign_keys": "[LedgerEntry.issued_by_id]"})
    redemptions: List["RedemptionRecord"] = Relationship(back_populates="user")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def set_password(self, password: str):
        self.password_hash = pwd_context.hash(password)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return pwd_context.verify(password, self.password_hash)

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class LedgerEntryInput(BaseModel):
    user_id: int
    amount: int
    category: str
    reason: str = ""
    reference: Optional[str] = None
    source: str = "award"
    issued_by_id: Optional[int] = None


class LedgerEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    amount: int
    category: str
    reason: str
    reference: Optional[str] = None
    source: str
    created_at: datetime


class HistoryPage(BaseModel):
    entries: List[LedgerEntryRead]
    count: int


class BalanceRead(BaseModel):
    user_id: int
    total_points: int


class CategoryBalance(BaseModel):
    user_id: int
    category: str
    display_name: str
    net_points: int = 0
    total_earned: int = 0
    total_spent: int = 0
    transaction_count: int = 0
    last_transaction_at: Optional[datetime] = None


class LeaderboardRow(BaseModel):
    user_id: int
    first_name: str
    last_name: str
    total_points: int


class AwardForm(BaseModel):
    user_id: int
    category: str
    amount: int = Field(gt=0)
    reason: str
    reference: Optional[str] = None


class CorrectionForm(BaseModel):
    reason: str = "correction"


class BulkRowError(BaseModel):
    row: int
    email: str
    error: str


class BulkUploadResult(BaseModel):
    processed: int
    errors: List[BulkRowError]

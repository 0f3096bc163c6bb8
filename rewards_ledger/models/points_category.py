from typing import Optional
from datetime import datetime, timezone
from sqlmodel import Field, SQLModel


class PointsCategory(SQLModel, table=True):
    __tablename__ = "points_categories"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True, max_length=50)
    display_name: str = Field(max_length=100)
    is_active: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

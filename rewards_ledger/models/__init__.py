from .user import User
from .ledger_entry import LedgerEntry
from .points_category import PointsCategory
from .reward import Reward, RewardCategory
from .redemption import RedemptionRecord, RedemptionStatus, RedemptionStatusChange

__all__ = [
    "User",
    "LedgerEntry",
    "PointsCategory",
    "Reward", "RewardCategory",
    "RedemptionRecord", "RedemptionStatus", "RedemptionStatusChange",
]

from typing import List, Optional
from fastapi import APIRouter, Depends
from sqlmodel import Session
from rewards_ledger.config import settings
from rewards_ledger.db import get_session
from rewards_ledger.dependencies import Page, require_login
from rewards_ledger.models import User
from rewards_ledger.schemas.ledger import BalanceRead, CategoryBalance, HistoryPage, LeaderboardRow, LedgerEntryRead
from rewards_ledger.services import categories, ledger

router = APIRouter()


@router.get("/balance", response_model=BalanceRead)
def balance(current_user: User = Depends(require_login), session: Session = Depends(get_session)):
    return BalanceRead(user_id=current_user.id, total_points=ledger.get_balance(session, current_user.id))


@router.get("/categories", response_model=List[CategoryBalance])
def category_balances(current_user: User = Depends(require_login), session: Session = Depends(get_session)):
    return categories.get_category_balances(session, current_user.id)


@router.get("/history", response_model=HistoryPage)
def history(
    category: Optional[str] = None,
    page: Page = Depends(),
    current_user: User = Depends(require_login),
    session: Session = Depends(get_session),
):
    entries, count = ledger.list_entries(
        session, current_user.id, category=category, limit=page.limit, offset=page.offset
    )
    return HistoryPage(entries=[LedgerEntryRead.model_validate(e) for e in entries], count=count)


@router.get("/leaderboard", response_model=List[LeaderboardRow])
def leaderboard(session: Session = Depends(get_session), current_user: User = Depends(require_login)):
    return ledger.leaderboard(session, limit=settings.LEADERBOARD_SIZE)

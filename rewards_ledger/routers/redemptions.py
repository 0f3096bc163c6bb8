from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session
from rewards_ledger.db import get_session
from rewards_ledger.dependencies import Page, require_login
from rewards_ledger.models import User
from rewards_ledger.schemas.redemption import RedemptionPage, RedemptionRead, StatusChangeRead
from rewards_ledger.services import redemption

router = APIRouter()


@router.get("/", response_model=RedemptionPage)
def my_redemptions(page: Page = Depends(), current_user: User = Depends(require_login), session: Session = Depends(get_session)):
    records, count = redemption.list_redemptions(session, user_id=current_user.id, limit=page.limit, offset=page.offset)
    return RedemptionPage(redemptions=[RedemptionRead.model_validate(r) for r in records], count=count)


@router.get("/{redemption_id}/history", response_model=List[StatusChangeRead])
def history(redemption_id: int, current_user: User = Depends(require_login), session: Session = Depends(get_session)):
    record = redemption.get_redemption(session, redemption_id)
    if record.user_id != current_user.id and not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permission denied")
    return [StatusChangeRead.model_validate(c) for c in redemption.status_history(session, redemption_id)]

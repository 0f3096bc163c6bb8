from typing import Optional
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlmodel import Session
from rewards_ledger.config import settings
from rewards_ledger.db import get_session
from rewards_ledger.dependencies import Page, get_current_user, get_workflow, require_login
from rewards_ledger.errors import NotFound
from rewards_ledger.models import RewardCategory, User
from rewards_ledger.results import Err
from rewards_ledger.schemas.redemption import RedemptionRead
from rewards_ledger.schemas.reward import RewardDashboard, RewardPage, RewardRead
from rewards_ledger.services import catalog, ledger, redemption
from rewards_ledger.services.redemption import RedemptionWorkflow

router = APIRouter()


@router.get("/", response_model=RewardPage)
def list_rewards(
    category: Optional[RewardCategory] = None,
    featured: bool = False,
    page: Page = Depends(),
    session: Session = Depends(get_session),
):
    rewards, count = catalog.list_rewards(
        session, category=category, featured=featured, limit=page.limit, offset=page.offset
    )
    return RewardPage(rewards=[RewardRead.model_validate(r) for r in rewards], count=count)


@router.get("/dashboard", response_model=RewardDashboard)
def dashboard(
    category: Optional[RewardCategory] = None,
    featured: bool = False,
    page: Page = Depends(),
    current_user: Optional[User] = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Catalog page in one call; signed-in users also get their balance and purchases."""
    rewards, count = catalog.list_rewards(
        session, category=category, featured=featured, limit=page.limit, offset=page.offset
    )
    featured_rewards, _ = catalog.list_rewards(session, featured=True, limit=settings.FEATURED_REWARDS_SIZE)
    data = RewardDashboard(
        rewards=[RewardRead.model_validate(r) for r in rewards],
        featured_rewards=[RewardRead.model_validate(r) for r in featured_rewards],
        count=count,
    )
    if current_user:
        data.user_points = ledger.get_balance(session, current_user.id)
        purchases, _ = redemption.list_redemptions(session, user_id=current_user.id, limit=None)
        data.purchased_rewards = [RedemptionRead.model_validate(p) for p in purchases]
    return data


@router.get("/{reward_id}", response_model=RewardRead)
def get_reward(reward_id: int, session: Session = Depends(get_session)):
    reward = catalog.get_reward(session, reward_id)
    if not reward.is_active:
        raise NotFound(f"Reward {reward_id} is not available.")
    return RewardRead.model_validate(reward)


@router.post(
    "/{reward_id}/redeem",
    response_model=RedemptionRead,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"description": "Reward unavailable"}, 409: {"description": "Not redeemable"}},
)
def redeem(
    reward_id: int,
    current_user: User = Depends(require_login),
    session: Session = Depends(get_session),
    workflow: RedemptionWorkflow = Depends(get_workflow),
):
    result = workflow.redeem(session, current_user.id, reward_id)
    if isinstance(result, Err):
        return JSONResponse(status_code=result.error.http_status, content=result.error.to_dict())
    return RedemptionRead.model_validate(result.value)

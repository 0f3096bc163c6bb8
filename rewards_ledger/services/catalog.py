"""
Catalog of redeemable rewards.

Stock only ever moves through decrement_stock / restore_stock, both of which
are single conditional UPDATE statements so concurrent redemptions cannot
oversell the last unit.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import func, update
from sqlmodel import Session, select

from rewards_ledger.errors import NotFound, OutOfStock, ValidationError
from rewards_ledger.models import Reward, RewardCategory
from rewards_ledger.schemas.reward import RewardCreate, RewardUpdate

logger = logging.getLogger(__name__)


def list_rewards(
    session: Session,
    *,
    category: Optional[RewardCategory] = None,
    featured: Optional[bool] = None,
    active_only: bool = True,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> Tuple[List[Reward], int]:
    query = select(Reward)
    count_query = select(func.count()).select_from(Reward)
    filters = []
    if category is not None:
        filters.append(Reward.category == RewardCategory(category))
    if featured:
        filters.append(Reward.is_featured == True)  # noqa: E712
    if active_only:
        filters.append(Reward.is_active == True)  # noqa: E712
    for condition in filters:
        query = query.where(condition)
        count_query = count_query.where(condition)

    query = query.order_by(Reward.is_featured.desc(), Reward.price.asc(), Reward.id.asc())
    if offset:
        query = query.offset(offset)
    if limit:
        query = query.limit(limit)

    total = session.exec(count_query).one()
    return list(session.exec(query).all()), int(total)


def get_reward(session: Session, reward_id: int) -> Reward:
    reward = session.get(Reward, reward_id)
    if reward is None:
        raise NotFound(f"Reward {reward_id} does not exist.")
    return reward


def _apply_stock_change(session: Session, reward_id: int, delta: int, *conditions) -> bool:
    result = session.execute(
        update(Reward)
        .where(Reward.id == reward_id, *conditions)
        .values(quantity=Reward.quantity + delta, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


def decrement_stock(session: Session, reward_id: int, by: int = 1) -> Reward:
    if by < 1:
        raise ValidationError("Stock can only be decremented by a positive amount.")
    if not _apply_stock_change(session, reward_id, -by, Reward.quantity >= by):
        reward = get_reward(session, reward_id)
        raise OutOfStock(f"{reward.title} is out of stock.")
    reward = get_reward(session, reward_id)
    session.refresh(reward)
    return reward


def restore_stock(session: Session, reward_id: int, by: int = 1) -> Reward:
    if by < 1:
        raise ValidationError("Stock can only be restored by a positive amount.")
    if not _apply_stock_change(session, reward_id, by):
        raise NotFound(f"Reward {reward_id} does not exist.")
    reward = get_reward(session, reward_id)
    session.refresh(reward)
    return reward


def create_reward(session: Session, data: RewardCreate) -> Reward:
    reward = Reward(**data.model_dump())
    session.add(reward)
    session.commit()
    session.refresh(reward)
    logger.info("reward created id=%s title=%r price=%s quantity=%s", reward.id, reward.title, reward.price, reward.quantity)
    return reward


def update_reward(session: Session, reward_id: int, data: RewardUpdate) -> Reward:
    reward = get_reward(session, reward_id)
    changes = data.model_dump(exclude_unset=True)
    for field in ("title", "description", "price", "quantity", "category", "is_active", "is_featured"):
        if field in changes and changes[field] is None:
            raise ValidationError(f"{field} cannot be cleared.")
    for field, value in changes.items():
        setattr(reward, field, value)
    reward.updated_at = datetime.now(timezone.utc)
    session.add(reward)
    session.commit()
    session.refresh(reward)
    logger.info("reward updated id=%s fields=%s", reward.id, sorted(changes))
    return reward

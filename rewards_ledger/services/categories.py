"""Per-category view over the ledger. Holds no state; every call re-aggregates."""
from __future__ import annotations

from typing import Dict, List

from sqlalchemy import case, func
from sqlmodel import Session, select

from rewards_ledger.models import LedgerEntry, PointsCategory
from rewards_ledger.schemas.ledger import CategoryBalance


def get_category_balances(session: Session, user_id: int) -> List[CategoryBalance]:
    earned = func.coalesce(func.sum(case((LedgerEntry.amount > 0, LedgerEntry.amount), else_=0)), 0)
    spent = func.coalesce(func.sum(case((LedgerEntry.amount < 0, -LedgerEntry.amount), else_=0)), 0)
    rows = session.exec(
        select(
            LedgerEntry.category,
            func.sum(LedgerEntry.amount),
            earned,
            spent,
            func.count(LedgerEntry.id),
            func.max(LedgerEntry.created_at),
        )
        .where(LedgerEntry.user_id == user_id)
        .group_by(LedgerEntry.category)
    ).all()

    configured = session.exec(select(PointsCategory).where(PointsCategory.is_active == True)).all()  # noqa: E712
    display_names: Dict[str, str] = {c.name: c.display_name for c in configured}

    balances: Dict[str, CategoryBalance] = {}
    for category, net, total_earned, total_spent, count, last_at in rows:
        balances[category] = CategoryBalance(
            user_id=user_id,
            category=category,
            display_name=display_names.get(category, category.title()),
            net_points=int(net or 0),
            total_earned=int(total_earned),
            total_spent=int(total_spent),
            transaction_count=int(count),
            last_transaction_at=last_at,
        )

    for name, display_name in display_names.items():
        if name not in balances:
            balances[name] = CategoryBalance(user_id=user_id, category=name, display_name=display_name)

    return sorted(balances.values(), key=lambda b: (-b.net_points, b.category))


def as_mapping(balances: List[CategoryBalance]) -> Dict[str, int]:
    return {b.category: b.net_points for b in balances}


DEFAULT_CATEGORIES = (
    ("general", "General"),
    ("careers", "Careers"),
    ("reviews", "Reviews"),
    ("community", "Community"),
    ("ekart", "eKart"),
    ("rewards", "Rewards"),
)


def ensure_default_categories(session: Session) -> List[PointsCategory]:
    """Idempotently create the configured categories; returns the ones it added."""
    existing = set(session.exec(select(PointsCategory.name)).all())
    added = [
        PointsCategory(name=name, display_name=display_name)
        for name, display_name in DEFAULT_CATEGORIES
        if name not in existing
    ]
    session.add_all(added)
    session.commit()
    return added

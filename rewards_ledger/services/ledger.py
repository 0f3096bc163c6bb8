"""
Ledger Store: append-only point movements and the balances derived from them.

Nothing here commits. Callers own the transaction so an append can share it
with the stock decrement and redemption insert of a redemption.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlmodel import Session, select

from rewards_ledger.errors import NotFound, ValidationError
from rewards_ledger.models import LedgerEntry, User
from rewards_ledger.schemas.ledger import LedgerEntryInput, LeaderboardRow

logger = logging.getLogger(__name__)


def append(session: Session, entry: LedgerEntryInput) -> LedgerEntry:
    if entry.amount == 0:
        raise ValidationError("Ledger entries must move a non-zero amount of points.")
    category = (entry.category or "").strip()
    if not category:
        raise ValidationError("Ledger entries need a category.")

    row = LedgerEntry(
        user_id=entry.user_id,
        amount=entry.amount,
        category=category,
        reason=(entry.reason or "").strip(),
        reference=entry.reference,
        source=entry.source,
        issued_by_id=entry.issued_by_id,
    )
    session.add(row)
    session.flush()
    logger.debug("ledger append user=%s amount=%s category=%s", row.user_id, row.amount, row.category)
    return row


def get_balance(session: Session, user_id: int) -> int:
    total = session.exec(
        select(func.coalesce(func.sum(LedgerEntry.amount), 0)).where(LedgerEntry.user_id == user_id)
    ).one()
    return int(total)


def list_entries(
    session: Session,
    user_id: int,
    *,
    category: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
) -> Tuple[List[LedgerEntry], int]:
    """Entries for a user, newest first, with the unpaged count."""
    query = select(LedgerEntry).where(LedgerEntry.user_id == user_id)
    count_query = select(func.count()).select_from(LedgerEntry).where(LedgerEntry.user_id == user_id)
    if category:
        query = query.where(LedgerEntry.category == category)
        count_query = count_query.where(LedgerEntry.category == category)

    total = session.exec(count_query).one()
    entries = session.exec(
        query.order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc()).offset(offset).limit(limit)
    ).all()
    return list(entries), int(total)


def leaderboard(session: Session, limit: int = 10) -> List[LeaderboardRow]:
    points = func.coalesce(func.sum(LedgerEntry.amount), 0).label("points")
    rows = session.exec(
        select(User.id, User.first_name, User.last_name, points)
        .outerjoin(LedgerEntry, LedgerEntry.user_id == User.id)
        .where(User.is_active == True)  # noqa: E712
        .group_by(User.id, User.first_name, User.last_name)
        .order_by(points.desc(), User.id)
        .limit(limit)
    ).all()
    return [
        LeaderboardRow(user_id=uid, first_name=first, last_name=last, total_points=int(total))
        for uid, first, last, total in rows
    ]


def correct(session: Session, entry_id: int, issued_by_id: Optional[int], reason: str = "correction") -> LedgerEntry:
    """
    Reverse an entry by appending its negation; the original row is kept for audit.

    An entry is reversed at most once. Redemption debits and their refunds are
    owned by the redemption lifecycle and are reversed by cancelling it.
    """
    original = session.get(LedgerEntry, entry_id)
    if original is None:
        raise NotFound(f"Ledger entry {entry_id} does not exist.")
    if original.source in ("redemption", "refund"):
        raise ValidationError("Redemption entries are reversed by cancelling the redemption, not by a correction.")
    reference = f"ledger:{original.id}"
    already = session.exec(select(LedgerEntry.id).where(LedgerEntry.reference == reference)).first()
    if already is not None:
        raise ValidationError(f"Ledger entry {entry_id} has already been corrected.")
    return append(session, LedgerEntryInput(
        user_id=original.user_id,
        amount=-original.amount,
        category=original.category,
        reason=f"{reason}: {original.reason}" if original.reason else reason,
        reference=reference,
        source="manual",
        issued_by_id=issued_by_id,
    ))

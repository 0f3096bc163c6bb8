from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from sqlmodel import Session, select

from rewards_ledger.db import begin_write
from rewards_ledger.errors import LedgerError, ValidationError
from rewards_ledger.models import LedgerEntry, User
from rewards_ledger.schemas.ledger import BulkRowError, LedgerEntryInput
from rewards_ledger.services import ledger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EarningRule:
    category: str
    amount: int
    reason: str


# Actions elsewhere on the platform that earn points.
EARNING_RULES: Dict[str, EarningRule] = {
    "profile_created": EarningRule("general", 10, "Welcome bonus for creating profile"),
    "job_applied": EarningRule("careers", 10, "Applied to a job"),
    "review_posted": EarningRule("reviews", 10, "Posting a review"),
    "discussion_created": EarningRule("community", 20, "Creating a new discussion"),
    "discussion_commented": EarningRule("community", 10, "Commenting on a discussion"),
    "product_posted": EarningRule("ekart", 50, "Points earned for posting a product"),
}


def award(
    session: Session,
    user_id: int,
    category: str,
    amount: int,
    reason: str,
    reference: Optional[str] = None,
    *,
    issued_by_id: Optional[int] = None,
    commit: bool = False,
) -> LedgerEntry:
    """
    Credit points to a user.
    If commit=True, commits the session; otherwise the caller is responsible
    for committing/rolling back together with its own work.
    """
    if amount <= 0:
        raise ValidationError("Awarded points must be positive.")
    entry = ledger.append(session, LedgerEntryInput(
        user_id=user_id,
        amount=amount,
        category=category,
        reason=reason,
        reference=reference,
        source="manual" if issued_by_id else "award",
        issued_by_id=issued_by_id,
    ))
    if commit:
        session.commit()
    logger.info("awarded %s points to user %s (%s: %s)", amount, user_id, entry.category, reason)
    return entry


def award_best_effort(
    session: Session,
    user_id: int,
    category: str,
    amount: int,
    reason: str,
    reference: Optional[str] = None,
) -> Optional[LedgerEntry]:
    """
    Award points as a side effect of some other successful operation.

    Runs inside a SAVEPOINT: a failure rolls back only the award, is logged for
    reconciliation and reported as None, never raised to the triggering action.
    """
    try:
        with session.begin_nested():
            return award(session, user_id, category, amount, reason, reference)
    except Exception:
        logger.exception(
            "failed to award %s %s points to user %s (%s); needs reconciliation",
            amount, category, user_id, reason,
        )
        return None


def award_for_action(session: Session, user_id: int, action: str, reference: Optional[str] = None) -> Optional[LedgerEntry]:
    rule = EARNING_RULES.get(action)
    if rule is None:
        raise ValidationError(f"No points are awarded for '{action}'.")
    return award_best_effort(session, user_id, rule.category, rule.amount, rule.reason, reference)


def bulk_award(
    session: Session,
    rows: Iterable[Tuple[int, str, str]],
    category: str,
    reason: str,
    *,
    issued_by_id: Optional[int] = None,
) -> Tuple[int, List[BulkRowError]]:
    """
    Award points for each ``(row_number, email, points)`` row of an upload.

    Every row stands alone: a bad row is reported and skipped, and each award
    runs in its own SAVEPOINT so a failure never undoes the rows before it.
    Commits once at the end. Returns the number of rows awarded and the errors.
    """
    begin_write(session)
    processed = 0
    errors: List[BulkRowError] = []
    for row_number, email, points_text in rows:
        email = (email or "").strip().lower()
        if not email or "@" not in email:
            errors.append(BulkRowError(row=row_number, email=email or "empty", error="Invalid email format"))
            continue
        try:
            points = int((points_text or "").strip())
        except ValueError:
            points = 0
        if points <= 0:
            errors.append(BulkRowError(row=row_number, email=email, error="Points must be a positive number"))
            continue
        user = session.exec(select(User).where(User.email == email)).first()
        if user is None:
            errors.append(BulkRowError(row=row_number, email=email, error="User not found"))
            continue
        try:
            with session.begin_nested():
                award(session, user.id, category, points, reason, f"bulk_upload:row{row_number}", issued_by_id=issued_by_id)
        except LedgerError as exc:
            errors.append(BulkRowError(row=row_number, email=email, error=exc.message))
            continue
        processed += 1

    session.commit()
    logger.info("bulk upload awarded %s rows in %s, %s rejected", processed, category, len(errors))
    return processed, errors

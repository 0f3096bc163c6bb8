"""
Redemption Workflow
===================

The only code path that spends points on a reward. A redemption is validated
and committed inside one database transaction:

- the write lock is taken before the balance is read (BEGIN IMMEDIATE on
  SQLite, the user's row FOR UPDATE elsewhere), so the balance check sees
  every committed ledger entry;
- stock is taken with a conditional decrement, so the last unit goes to
  exactly one caller;
- the (user_id, reward_id) unique constraint turns a racing duplicate into
  AlreadyRedeemed instead of a second debit.

Expected rejections come back as ``Err`` values; transient store failures are
retried by ``run_with_retry`` and raised once the attempts run out.
Notifications are sent after commit and never undo it.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from rewards_ledger.db import begin_write
from rewards_ledger.errors import AlreadyRedeemed, BusinessRuleError, InsufficientPoints, NotFound, OutOfStock, ValidationError
from rewards_ledger.models import LedgerEntry, RedemptionRecord, RedemptionStatus, RedemptionStatusChange, Reward, User
from rewards_ledger.results import Err, Ok, Result
from rewards_ledger.schemas.ledger import LedgerEntryInput
from rewards_ledger.services import catalog, ledger
from rewards_ledger.services.notifier import AuditEvent, AuditLog, LoggingAuditLog, LoggingNotifier, Notifier
from rewards_ledger.services.retry import RetryPolicy, run_with_retry

logger = logging.getLogger(__name__)

REJECTIONS = (NotFound, BusinessRuleError)

STATUS_TITLES = {
    RedemptionStatus.PENDING: "Reward Order Pending",
    RedemptionStatus.CONFIRMED: "Reward Order Confirmed",
    RedemptionStatus.SHIPPED: "Reward Shipped",
    RedemptionStatus.DELIVERED: "Reward Delivered",
    RedemptionStatus.CANCELLED: "Reward Order Cancelled",
}

STATUS_MESSAGES = {
    RedemptionStatus.PENDING: "Your reward order is pending and will be processed soon",
    RedemptionStatus.CONFIRMED: "Your reward order is confirmed and being prepared",
    RedemptionStatus.SHIPPED: "Your reward has been shipped and is on its way to you",
    RedemptionStatus.DELIVERED: "Your reward has been delivered successfully",
    RedemptionStatus.CANCELLED: "Your reward order has been cancelled and your points were refunded",
}


def _is_duplicate_redemption(exc: IntegrityError) -> bool:
    text = str(exc.orig).lower()
    return "uq_redemption_user_reward" in text or "redemption_records.user_id" in text


def _lock_user(session: Session, user_id: int) -> User:
    user = session.exec(select(User).where(User.id == user_id).with_for_update()).first()
    if user is None:
        raise NotFound(f"User {user_id} does not exist.")
    return user


class RedemptionWorkflow:
    def __init__(
        self,
        notifier: Optional[Notifier] = None,
        audit_log: Optional[AuditLog] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self.notifier = notifier or LoggingNotifier()
        self.audit_log = audit_log or LoggingAuditLog()
        self.retry_policy = retry_policy or RetryPolicy()

    # -----------------------------
    # Redeem
    # -----------------------------
    def redeem(self, session: Session, user_id: int, reward_id: int) -> Result[RedemptionRecord]:
        def attempt() -> Result[RedemptionRecord]:
            try:
                return Ok(self._redeem_once(session, user_id, reward_id))
            except REJECTIONS as exc:
                session.rollback()
                return Err(exc)

        result = run_with_retry(attempt, self.retry_policy, on_failure=session.rollback)

        if isinstance(result, Err):
            logger.info("redemption rejected user=%s reward=%s: %s", user_id, reward_id, result.error.code)
            return result

        record = result.value
        logger.info(
            "redemption committed id=%s user=%s reward=%s points=%s",
            record.id, user_id, reward_id, record.points_spent,
        )
        reward = session.get(Reward, reward_id)
        self._publish(
            user_id,
            "reward_redeemed",
            {
                "redemption_id": record.id,
                "reward_id": reward_id,
                "reward_title": reward.title if reward else None,
                "points_spent": record.points_spent,
                "status": record.status.value,
            },
            actor_id=user_id,
        )
        return result

    def _redeem_once(self, session: Session, user_id: int, reward_id: int) -> RedemptionRecord:
        begin_write(session)
        _lock_user(session, user_id)

        reward = session.get(Reward, reward_id, populate_existing=True)
        if reward is None or not reward.is_active:
            raise NotFound(f"Reward {reward_id} is not available.")

        existing = session.exec(
            select(RedemptionRecord.id).where(
                RedemptionRecord.user_id == user_id,
                RedemptionRecord.reward_id == reward_id,
            )
        ).first()
        if existing is not None:
            raise AlreadyRedeemed(f"You have already redeemed {reward.title}.")

        if reward.quantity <= 0:
            raise OutOfStock(f"{reward.title} is out of stock.")

        balance = ledger.get_balance(session, user_id)
        if balance < reward.price:
            raise InsufficientPoints(price=reward.price, balance=balance)

        price = reward.price
        title = reward.title
        catalog.decrement_stock(session, reward_id)
        ledger.append(session, LedgerEntryInput(
            user_id=user_id,
            amount=-price,
            category=reward.category.value,
            reason=f"Redeemed {title}",
            reference=f"reward:{reward_id}",
            source="redemption",
        ))
        record = RedemptionRecord(
            user_id=user_id,
            reward_id=reward_id,
            points_spent=price,
            status=RedemptionStatus.CONFIRMED,
        )
        session.add(record)
        try:
            session.flush()
        except IntegrityError as exc:
            if _is_duplicate_redemption(exc):
                raise AlreadyRedeemed(f"You have already redeemed {title}.") from exc
            raise

        session.add(RedemptionStatusChange(
            redemption_id=record.id,
            from_status=None,
            to_status=RedemptionStatus.CONFIRMED,
            changed_by_id=user_id,
            notes=f"Redeemed {title} for {price} points",
        ))
        session.commit()
        return record

    # -----------------------------
    # Fulfilment
    # -----------------------------
    def update_status(
        self,
        session: Session,
        redemption_id: int,
        status: RedemptionStatus,
        changed_by_id: Optional[int],
        notes: Optional[str] = None,
    ) -> RedemptionRecord:
        """
        Move a redemption along its fulfilment lifecycle.

        Cancelling refunds the points spent and puts the unit back in stock in
        the same transaction. A cancelled redemption cannot be moved again.
        """
        status = RedemptionStatus(status)

        def attempt() -> Tuple[RedemptionRecord, RedemptionStatus]:
            return self._update_status_once(session, redemption_id, status, changed_by_id, notes)

        try:
            record, previous = run_with_retry(attempt, self.retry_policy, on_failure=session.rollback)
        except (ValidationError, NotFound):
            session.rollback()
            raise

        logger.info("redemption %s moved %s -> %s by %s", record.id, previous.value, status.value, changed_by_id)
        reward = session.get(Reward, record.reward_id)
        title = reward.title if reward else "your reward"
        message = STATUS_MESSAGES[status]
        if notes:
            message = f"{message}. Note: {notes}"
        self._publish(
            record.user_id,
            "reward_status_update",
            {
                "redemption_id": record.id,
                "title": f"{STATUS_TITLES[status]} - {title}",
                "message": message,
                "previous_status": previous.value,
                "status": status.value,
            },
            actor_id=changed_by_id,
        )
        return record

    def _update_status_once(
        self,
        session: Session,
        redemption_id: int,
        status: RedemptionStatus,
        changed_by_id: Optional[int],
        notes: Optional[str],
    ) -> Tuple[RedemptionRecord, RedemptionStatus]:
        begin_write(session)
        record = session.get(RedemptionRecord, redemption_id, populate_existing=True)
        if record is None:
            raise NotFound(f"Redemption {redemption_id} does not exist.")
        previous = record.status
        if previous == RedemptionStatus.CANCELLED:
            raise ValidationError("Cancelled redemptions cannot change status.")
        if previous == status:
            raise ValidationError(f"Redemption is already {status.value}.")

        if status == RedemptionStatus.CANCELLED:
            _lock_user(session, record.user_id)
            reward = session.get(Reward, record.reward_id)
            debit = session.exec(
                select(LedgerEntry).where(
                    LedgerEntry.user_id == record.user_id,
                    LedgerEntry.reference == f"reward:{record.reward_id}",
                    LedgerEntry.source == "redemption",
                )
            ).first()
            category = debit.category if debit else (reward.category.value if reward else "rewards")
            ledger.append(session, LedgerEntryInput(
                user_id=record.user_id,
                amount=record.points_spent,
                category=category,
                reason=f"Refund for cancelled reward: {reward.title if reward else record.reward_id}",
                reference=f"redemption:{record.id}",
                source="refund",
                issued_by_id=changed_by_id,
            ))
            if reward is not None:
                catalog.restore_stock(session, reward.id)

        record.status = status
        record.updated_at = datetime.now(timezone.utc)
        session.add(record)
        session.add(RedemptionStatusChange(
            redemption_id=record.id,
            from_status=previous,
            to_status=status,
            changed_by_id=changed_by_id,
            notes=notes or f"Status updated from {previous.value} to {status.value}",
        ))
        session.commit()
        return record, previous

    def _publish(self, user_id: int, event_type: str, payload: Dict[str, Any], actor_id: Optional[int]) -> None:
        try:
            self.notifier.notify(user_id, event_type, payload)
        except Exception:
            logger.exception("notifier failed for %s (user %s)", event_type, user_id)
        try:
            self.audit_log.record(AuditEvent(action=event_type, user_id=user_id, actor_id=actor_id, data=payload))
        except Exception:
            logger.exception("audit log failed for %s (user %s)", event_type, user_id)


# -----------------------------
# Queries
# -----------------------------
def list_redemptions(
    session: Session,
    *,
    user_id: Optional[int] = None,
    reward_id: Optional[int] = None,
    status: Optional[RedemptionStatus] = None,
    limit: Optional[int] = 20,
    offset: int = 0,
) -> Tuple[List[RedemptionRecord], int]:
    """Redemptions newest first, with the unpaged count. ``limit=None`` returns them all."""
    query = select(RedemptionRecord)
    count_query = select(func.count()).select_from(RedemptionRecord)
    filters = []
    if user_id is not None:
        filters.append(RedemptionRecord.user_id == user_id)
    if reward_id is not None:
        filters.append(RedemptionRecord.reward_id == reward_id)
    if status is not None:
        filters.append(RedemptionRecord.status == RedemptionStatus(status))
    for condition in filters:
        query = query.where(condition)
        count_query = count_query.where(condition)

    total = session.exec(count_query).one()
    rows = session.exec(
        query.order_by(RedemptionRecord.purchased_at.desc(), RedemptionRecord.id.desc()).offset(offset).limit(limit)
    ).all()
    return list(rows), int(total)


def get_redemption(session: Session, redemption_id: int) -> RedemptionRecord:
    record = session.get(RedemptionRecord, redemption_id)
    if record is None:
        raise NotFound(f"Redemption {redemption_id} does not exist.")
    return record


def status_history(session: Session, redemption_id: int) -> List[RedemptionStatusChange]:
    get_redemption(session, redemption_id)
    return list(session.exec(
        select(RedemptionStatusChange)
        .where(RedemptionStatusChange.redemption_id == redemption_id)
        .order_by(RedemptionStatusChange.changed_at, RedemptionStatusChange.id)
    ).all())

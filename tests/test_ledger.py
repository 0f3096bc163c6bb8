import pytest
from sqlmodel import Session, select

from rewards_ledger.errors import NotFound, ValidationError
from rewards_ledger.models import LedgerEntry
from rewards_ledger.schemas.ledger import LedgerEntryInput
from rewards_ledger.services import ledger


def test_append_and_balance(session: Session, make_user):
    user = make_user()
    ledger.append(session, LedgerEntryInput(user_id=user.id, amount=25, category="general", reason="Welcome"))
    ledger.append(session, LedgerEntryInput(user_id=user.id, amount=-10, category="merchandise", reason="Spent"))
    session.commit()

    assert ledger.get_balance(session, user.id) == 15


def test_balance_of_user_without_history_is_zero(session: Session, make_user):
    user = make_user()
    assert ledger.get_balance(session, user.id) == 0


@pytest.mark.parametrize("amount,category", [(0, "general"), (5, ""), (5, "   ")])
def test_append_rejects_zero_amount_and_blank_category(session: Session, make_user, amount, category):
    user = make_user()
    with pytest.raises(ValidationError):
        ledger.append(session, LedgerEntryInput(user_id=user.id, amount=amount, category=category))
    assert session.exec(select(LedgerEntry)).all() == []


def test_append_strips_category(session: Session, make_user):
    user = make_user()
    entry = ledger.append(session, LedgerEntryInput(user_id=user.id, amount=3, category="  careers "))
    assert entry.category == "careers"


def test_list_entries_newest_first_with_count(session: Session, make_user):
    user = make_user()
    for amount in (1, 2, 3, 4, 5):
        ledger.append(session, LedgerEntryInput(user_id=user.id, amount=amount, category="general"))
    ledger.append(session, LedgerEntryInput(user_id=user.id, amount=7, category="careers"))
    session.commit()

    entries, count = ledger.list_entries(session, user.id, limit=3)
    assert count == 6
    assert [e.amount for e in entries] == [7, 5, 4]

    entries, count = ledger.list_entries(session, user.id, category="general", limit=10, offset=3)
    assert count == 5
    assert [e.amount for e in entries] == [2, 1]


def test_correct_appends_compensating_entry(session: Session, make_user):
    admin = make_user(role="admin")
    user = make_user()
    original = ledger.append(session, LedgerEntryInput(user_id=user.id, amount=40, category="reviews", reason="Posting a review"))
    session.commit()

    correction = ledger.correct(session, original.id, issued_by_id=admin.id)
    session.commit()

    assert correction.amount == -40
    assert correction.category == "reviews"
    assert correction.reference == f"ledger:{original.id}"
    assert correction.issued_by_id == admin.id
    assert ledger.get_balance(session, user.id) == 0
    # history is preserved
    assert len(session.exec(select(LedgerEntry).where(LedgerEntry.user_id == user.id)).all()) == 2


def test_correct_reverses_an_entry_only_once(session: Session, make_user):
    user = make_user()
    original = ledger.append(session, LedgerEntryInput(user_id=user.id, amount=50, category="general", reason="Bonus"))
    session.commit()

    ledger.correct(session, original.id, issued_by_id=None)
    session.commit()
    with pytest.raises(ValidationError):
        ledger.correct(session, original.id, issued_by_id=None)

    assert ledger.get_balance(session, user.id) == 0


@pytest.mark.parametrize("source", ["redemption", "refund"])
def test_correct_refuses_redemption_entries(session: Session, make_user, source):
    user = make_user(points=100)
    entry = ledger.append(session, LedgerEntryInput(
        user_id=user.id, amount=-60 if source == "redemption" else 60, category="merchandise", source=source,
    ))
    session.commit()

    with pytest.raises(ValidationError):
        ledger.correct(session, entry.id, issued_by_id=None)
    assert len(session.exec(select(LedgerEntry).where(LedgerEntry.source == "manual")).all()) == 0


def test_correct_unknown_entry(session: Session):
    with pytest.raises(NotFound):
        ledger.correct(session, 12345, issued_by_id=None)


def test_leaderboard_orders_by_balance(session: Session, make_user):
    low = make_user(points=5)
    high = make_user(points=50)
    nobody = make_user()

    rows = ledger.leaderboard(session, limit=10)
    assert [r.user_id for r in rows] == [high.id, low.id, nobody.id]
    assert rows[0].total_points == 50
    assert rows[2].total_points == 0

    assert len(ledger.leaderboard(session, limit=1)) == 1

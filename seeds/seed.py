from sqlmodel import Session, SQLModel

from rewards_ledger.db import create_db_and_tables, engine
from rewards_ledger.models import Reward, RewardCategory, User
from rewards_ledger.services.awarding import award_for_action
from rewards_ledger.services.categories import ensure_default_categories
from seeds.utils import get_or_create

USERS = [
    dict(email="admin@example.com", first_name="Ada", last_name="Admin", role="admin", password="Admin123!"),
    dict(email="kai@example.com", first_name="Kai", last_name="Nguyen", role="member", password="ChangeMe123!"),
    dict(email="mia@example.com", first_name="Mia", last_name="Singh", role="member", password="ChangeMe123!"),
]

REWARDS = [
    dict(title="Community T-Shirt", description="Organic cotton tee with the community logo.", price=60, quantity=25,
         category=RewardCategory.MERCHANDISE, is_featured=True, delivery_description="Ships within 7 days"),
    dict(title="Resume Review", description="30 minute resume review with a career coach.", price=40, quantity=10,
         category=RewardCategory.EXPERIENCES),
    dict(title="Course Voucher", description="One free course in the training catalog.", price=100, quantity=50,
         category=RewardCategory.DIGITAL, delivery_description="Voucher code sent by email"),
]

# (email, action) pairs replayed through the earning rules
ACTIVITY = [
    ("kai@example.com", "profile_created"),
    ("kai@example.com", "job_applied"),
    ("kai@example.com", "product_posted"),
    ("mia@example.com", "profile_created"),
    ("mia@example.com", "discussion_created"),
    ("mia@example.com", "review_posted"),
]


def seed(session: Session) -> None:
    ensure_default_categories(session)

    users = {}
    for data in USERS:
        data = dict(data)
        password = data.pop("password")
        email = data.pop("email")
        user, created = get_or_create(session, User, defaults=data, email=email)
        if created:
            user.set_password(password)
        users[user.email] = user

    for data in REWARDS:
        get_or_create(session, Reward, defaults={k: v for k, v in data.items() if k != "title"}, title=data["title"])
    session.commit()

    for email, action in ACTIVITY:
        award_for_action(session, users[email].id, action, reference="seed")
    session.commit()


def main():
    SQLModel.metadata.drop_all(engine)
    create_db_and_tables()

    with Session(engine) as session:
        seed(session)

    print("Database seeded. Admin login: admin@example.com / Admin123!")


if __name__ == '__main__':
    main()

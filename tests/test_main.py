import pytest
from httpx import AsyncClient
from sqlmodel import Session

from rewards_ledger.services import ledger


async def login(client: AsyncClient, email: str, password: str = "password"):
    response = await client.post("/auth/login", data={"email": email, "password": password})
    assert response.status_code == 200
    return response


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_balance_unauthenticated(client: AsyncClient):
    response = await client.get("/points/balance")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_register_awards_welcome_bonus(session: Session, client: AsyncClient, categories):
    response = await client.post(
        "/auth/register",
        data={"first_name": "Test", "last_name": "User", "email": "Test@Example.com", "password": "password"},
    )
    assert response.status_code == 201
    assert response.json()["email"] == "test@example.com"

    balance = await client.get("/points/balance")
    assert balance.json()["total_points"] == 10

    categories_response = await client.get("/points/categories")
    by_name = {c["category"]: c["net_points"] for c in categories_response.json()}
    assert by_name["general"] == 10
    assert by_name["careers"] == 0

    duplicate = await client.post(
        "/auth/register",
        data={"first_name": "Test", "last_name": "User", "email": "test@example.com", "password": "x"},
    )
    assert duplicate.status_code == 409


@pytest.mark.asyncio
async def test_login_rejects_bad_password(client: AsyncClient, make_user):
    user = make_user()
    response = await client.post("/auth/login", data={"email": user.email, "password": "wrong"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_redeem_flow(session: Session, client: AsyncClient, make_user, make_reward):
    user = make_user(points=100)
    reward = make_reward(price=60, quantity=5)
    await login(client, user.email)

    listing = await client.get("/rewards/")
    assert listing.json()["count"] == 1
    assert listing.json()["rewards"][0]["in_stock"] is True

    response = await client.post(f"/rewards/{reward.id}/redeem")
    assert response.status_code == 201
    body = response.json()
    assert body["points_spent"] == 60
    assert body["status"] == "confirmed"

    again = await client.post(f"/rewards/{reward.id}/redeem")
    assert again.status_code == 409
    assert again.json()["error"] == "already_redeemed"
    assert again.json()["label"] == "Already Redeemed"

    balance = await client.get("/points/balance")
    assert balance.json() == {"user_id": user.id, "total_points": 40}

    history = await client.get("/points/history")
    assert history.json()["count"] == 2
    assert history.json()["entries"][0]["amount"] == -60

    mine = await client.get("/redemptions/")
    assert mine.json()["count"] == 1
    changes = await client.get(f"/redemptions/{body['id']}/history")
    assert [c["to_status"] for c in changes.json()] == ["confirmed"]


@pytest.mark.asyncio
async def test_redeem_rejections_have_distinct_labels(session: Session, client: AsyncClient, make_user, make_reward):
    user = make_user(points=50)
    pricey = make_reward(title="Hoodie", price=60, quantity=5)
    gone = make_reward(title="Sticker", price=5, quantity=0)
    await login(client, user.email)

    short = await client.post(f"/rewards/{pricey.id}/redeem")
    assert short.status_code == 409
    assert short.json()["label"] == "Not Enough Points"
    assert short.json()["deficit"] == 10

    empty = await client.post(f"/rewards/{gone.id}/redeem")
    assert empty.status_code == 409
    assert empty.json()["label"] == "Out of Stock"

    missing = await client.post("/rewards/999/redeem")
    assert missing.status_code == 404
    assert missing.json()["error"] == "not_found"

    assert ledger.get_balance(session, user.id) == 50


@pytest.mark.asyncio
async def test_admin_routes_require_admin(client: AsyncClient, make_user):
    user = make_user()
    await login(client, user.email)
    response = await client.post("/admin/rewards", json={"title": "X", "price": 5, "category": "digital"})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_manages_catalog_points_and_fulfilment(session: Session, client: AsyncClient, make_user):
    admin = make_user(role="admin", email="admin@example.com")
    member = make_user(email="member@example.com")
    await login(client, admin.email)

    created = await client.post(
        "/admin/rewards",
        json={"title": "Course Voucher", "price": 100, "quantity": 2, "category": "digital", "is_featured": True},
    )
    assert created.status_code == 201
    reward_id = created.json()["id"]

    invalid = await client.post("/admin/rewards", json={"title": "Free", "price": 0, "category": "digital"})
    assert invalid.status_code == 422

    awarded = await client.post(
        "/admin/points/award",
        json={"user_id": member.id, "category": "reviews", "amount": 120, "reason": "Top reviewer"},
    )
    assert awarded.status_code == 201
    assert awarded.json()["source"] == "manual"

    patched = await client.patch(f"/admin/rewards/{reward_id}", json={"is_active": False})
    assert patched.json()["is_active"] is False
    public = await client.get("/rewards/")
    assert public.json()["count"] == 0
    everything = await client.get("/admin/rewards")
    assert everything.json()["count"] == 1
    await client.patch(f"/admin/rewards/{reward_id}", json={"is_active": True})
    cleared = await client.patch(f"/admin/rewards/{reward_id}", json={"description": None})
    assert cleared.status_code == 422

    await client.post("/auth/logout")
    await login(client, member.email)
    redeemed = await client.post(f"/rewards/{reward_id}/redeem")
    assert redeemed.status_code == 201
    redemption_id = redeemed.json()["id"]

    await client.post("/auth/logout")
    await login(client, admin.email)
    listing = await client.get("/admin/redemptions", params={"status": "confirmed"})
    assert listing.json()["count"] == 1

    cancelled = await client.patch(
        f"/admin/redemptions/{redemption_id}/status",
        json={"status": "cancelled", "notes": "Voucher batch expired"},
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert ledger.get_balance(session, member.id) == 120

    reopened = await client.patch(f"/admin/redemptions/{redemption_id}/status", json={"status": "shipped"})
    assert reopened.status_code == 422

    export = await client.get("/admin/points/export.csv", params={"user_id": member.id})
    assert export.headers["content-type"].startswith("text/csv")
    lines = export.text.strip().splitlines()
    assert lines[0].startswith("id,user_id,amount")
    assert len(lines) == 4  # award, redemption, refund

    entry_id = awarded.json()["id"]
    corrected = await client.post(f"/admin/points/{entry_id}/correct", json={"reason": "duplicate award"})
    assert corrected.status_code == 201
    assert corrected.json()["amount"] == -120
    assert ledger.get_balance(session, member.id) == 0

    twice = await client.post(f"/admin/points/{entry_id}/correct", json={"reason": "duplicate award"})
    assert twice.status_code == 422
    assert ledger.get_balance(session, member.id) == 0


@pytest.mark.asyncio
async def test_leaderboard(client: AsyncClient, make_user):
    top = make_user(points=90)
    make_user(points=30)
    await login(client, top.email)
    response = await client.get("/points/leaderboard")
    assert response.json()[0]["user_id"] == top.id
    assert response.json()[0]["total_points"] == 90


@pytest.mark.asyncio
async def test_bulk_upload_points(session: Session, client: AsyncClient, make_user):
    admin = make_user(role="admin", email="admin@example.com")
    member = make_user(email="member@example.com")
    await login(client, admin.email)

    csv_text = (
        "Email,Points\n"
        "member@example.com,25\n"
        "not-an-email,10\n"
        "member@example.com,0\n"
        "ghost@example.com,10\n"
    )
    response = await client.post(
        "/admin/points/bulk-upload",
        data={"category": "community", "reason": "Meetup volunteers"},
        files={"file": ("points.csv", csv_text.encode("utf-8-sig"), "text/csv")},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["processed"] == 1
    assert body["errors"] == [
        {"row": 3, "email": "not-an-email", "error": "Invalid email format"},
        {"row": 4, "email": "member@example.com", "error": "Points must be a positive number"},
        {"row": 5, "email": "ghost@example.com", "error": "User not found"},
    ]
    assert ledger.get_balance(session, member.id) == 25

    no_points = await client.post(
        "/admin/points/bulk-upload",
        data={"category": "community", "reason": "Meetup volunteers"},
        files={"file": ("points.csv", b"email\nmember@example.com\n", "text/csv")},
    )
    assert no_points.status_code == 422
    assert "points" in no_points.json()["detail"]


@pytest.mark.asyncio
async def test_rewards_dashboard(client: AsyncClient, make_user, make_reward):
    user = make_user(points=100)
    shirt = make_reward(title="Shirt", price=60, is_featured=True)
    make_reward(title="Mug", price=20)

    anonymous = await client.get("/rewards/dashboard")
    assert anonymous.status_code == 200
    assert anonymous.json()["count"] == 2
    assert [r["title"] for r in anonymous.json()["featured_rewards"]] == ["Shirt"]
    assert anonymous.json()["user_points"] == 0
    assert anonymous.json()["purchased_rewards"] == []

    await login(client, user.email)
    await client.post(f"/rewards/{shirt.id}/redeem")
    mine = await client.get("/rewards/dashboard")
    assert mine.json()["user_points"] == 40
    assert [p["reward_id"] for p in mine.json()["purchased_rewards"]] == [shirt.id]

from __future__ import annotations
import csv
import io
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from sqlmodel import Session, select
from rewards_ledger.db import begin_write, get_session
from rewards_ledger.dependencies import Page, get_workflow, require_admin
from rewards_ledger.errors import NotFound, ValidationError
from rewards_ledger.models import LedgerEntry, RedemptionStatus, RewardCategory, User
from rewards_ledger.schemas.ledger import AwardForm, BulkUploadResult, CorrectionForm, LedgerEntryRead
from rewards_ledger.schemas.redemption import RedemptionPage, RedemptionRead, StatusUpdateForm
from rewards_ledger.schemas.reward import RewardCreate, RewardPage, RewardRead, RewardUpdate
from rewards_ledger.services import awarding, catalog, ledger, redemption
from rewards_ledger.services.redemption import RedemptionWorkflow

router = APIRouter()

# --- Rewards ---

@router.get("/rewards", response_model=RewardPage)
def all_rewards(
    category: Optional[RewardCategory] = None,
    page: Page = Depends(),
    admin: User = Depends(require_admin),
    session: Session = Depends(get_session),
):
    rewards, count = catalog.list_rewards(
        session, category=category, active_only=False, limit=page.limit, offset=page.offset
    )
    return RewardPage(rewards=[RewardRead.model_validate(r) for r in rewards], count=count)


@router.post("/rewards", response_model=RewardRead, status_code=status.HTTP_201_CREATED)
def create_reward(data: RewardCreate, admin: User = Depends(require_admin), session: Session = Depends(get_session)):
    return RewardRead.model_validate(catalog.create_reward(session, data))


@router.patch("/rewards/{reward_id}", response_model=RewardRead)
def update_reward(
    reward_id: int,
    data: RewardUpdate,
    admin: User = Depends(require_admin),
    session: Session = Depends(get_session),
):
    return RewardRead.model_validate(catalog.update_reward(session, reward_id, data))

# --- Points ---

@router.post("/points/award", response_model=LedgerEntryRead, status_code=status.HTTP_201_CREATED)
def award_points(form: AwardForm, admin: User = Depends(require_admin), session: Session = Depends(get_session)):
    if session.get(User, form.user_id) is None:
        raise NotFound(f"User {form.user_id} does not exist.")
    entry = awarding.award(
        session,
        form.user_id,
        form.category,
        form.amount,
        form.reason,
        form.reference,
        issued_by_id=admin.id,
        commit=True,
    )
    return LedgerEntryRead.model_validate(entry)


@router.post("/points/bulk-upload", response_model=BulkUploadResult)
async def bulk_upload_points(
    file: UploadFile = File(...),
    category: str = Form(...),
    reason: str = Form(...),
    admin: User = Depends(require_admin),
    session: Session = Depends(get_session),
):
    category = category.strip()
    reason = reason.strip()
    if not category:
        raise ValidationError("Category is required.")
    if not reason:
        raise ValidationError("Reason is required.")

    contents = await file.read()
    try:
        reader = csv.DictReader(io.TextIOWrapper(io.BytesIO(contents), encoding="utf-8-sig", newline=""))
        fieldnames = reader.fieldnames
        if not fieldnames:
            raise ValidationError("CSV has no header row.")
        columns = {c.strip().lower(): c for c in fieldnames if c}
        missing = [name for name in ("email", "points") if name not in columns]
        if missing:
            raise ValidationError(f"Missing required headers: {', '.join(missing)}")
        rows = [
            (reader.line_num, raw.get(columns["email"]) or "", raw.get(columns["points"]) or "")
            for raw in reader
        ]
    except (UnicodeDecodeError, csv.Error) as exc:
        raise ValidationError(f"Could not read the CSV file: {exc}") from exc
    if not rows:
        raise ValidationError("CSV file must have at least one data row.")

    processed, errors = awarding.bulk_award(session, rows, category, reason, issued_by_id=admin.id)
    return BulkUploadResult(processed=processed, errors=errors)


@router.post("/points/{entry_id}/correct", response_model=LedgerEntryRead, status_code=status.HTTP_201_CREATED)
def correct_entry(
    entry_id: int,
    form: CorrectionForm,
    admin: User = Depends(require_admin),
    session: Session = Depends(get_session),
):
    begin_write(session)
    entry = ledger.correct(session, entry_id, issued_by_id=admin.id, reason=form.reason)
    session.commit()
    return LedgerEntryRead.model_validate(entry)


@router.get("/points/export.csv")
def export_points(
    user_id: Optional[int] = None,
    category: Optional[str] = None,
    admin: User = Depends(require_admin),
    session: Session = Depends(get_session),
):
    query = select(LedgerEntry).order_by(LedgerEntry.created_at, LedgerEntry.id)
    if user_id is not None:
        query = query.where(LedgerEntry.user_id == user_id)
    if category:
        query = query.where(LedgerEntry.category == category)

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(["id", "user_id", "amount", "category", "reason", "reference", "source", "issued_by_id", "created_at"])
    for entry in session.exec(query):
        writer.writerow([
            entry.id, entry.user_id, entry.amount, entry.category, entry.reason,
            entry.reference or "", entry.source, entry.issued_by_id or "", entry.created_at.isoformat(),
        ])
    return Response(
        output.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=points_transactions.csv"},
    )

# --- Redemptions ---

@router.get("/redemptions", response_model=RedemptionPage)
def all_redemptions(
    user_id: Optional[int] = None,
    reward_id: Optional[int] = None,
    status_filter: Optional[RedemptionStatus] = Query(default=None, alias="status"),
    page: Page = Depends(),
    admin: User = Depends(require_admin),
    session: Session = Depends(get_session),
):
    records, count = redemption.list_redemptions(
        session,
        user_id=user_id,
        reward_id=reward_id,
        status=status_filter,
        limit=page.limit,
        offset=page.offset,
    )
    return RedemptionPage(redemptions=[RedemptionRead.model_validate(r) for r in records], count=count)


@router.patch("/redemptions/{redemption_id}/status", response_model=RedemptionRead)
def update_redemption_status(
    redemption_id: int,
    form: StatusUpdateForm,
    admin: User = Depends(require_admin),
    session: Session = Depends(get_session),
    workflow: RedemptionWorkflow = Depends(get_workflow),
):
    record = workflow.update_status(session, redemption_id, form.status, changed_by_id=admin.id, notes=form.notes)
    return RedemptionRead.model_validate(record)

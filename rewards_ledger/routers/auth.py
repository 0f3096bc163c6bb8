import logging
from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from sqlmodel import Session, select
from rewards_ledger.db import get_session
from rewards_ledger.dependencies import require_login
from rewards_ledger.models import User
from rewards_ledger.schemas.auth import RegisterForm, UserRead
from rewards_ledger.services.awarding import award_for_action

router = APIRouter()
logger = logging.getLogger(__name__)


def _user_read(user: User) -> UserRead:
    return UserRead(id=user.id, email=user.email, first_name=user.first_name, last_name=user.last_name, role=user.role)


@router.post("/login", response_model=UserRead)
def login(request: Request, email: str = Form(...), password: str = Form(...), session: Session = Depends(get_session)):
    user = session.exec(select(User).where(User.email == email.lower().strip())).first()
    if not user or not user.is_active or not user.check_password(password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )

    request.session["user_id"] = user.id
    return _user_read(user)


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register(request: Request, form_data: RegisterForm = Depends(RegisterForm.as_form), session: Session = Depends(get_session)):
    if session.exec(select(User).where(User.email == form_data.email)).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    user = User(
        first_name=form_data.first_name,
        last_name=form_data.last_name,
        email=form_data.email,
    )
    user.set_password(form_data.password)
    session.add(user)
    session.flush()
    # Welcome bonus rides along with the registration but never blocks it
    award_for_action(session, user.id, "profile_created", reference=f"user:{user.id}")
    session.commit()
    session.refresh(user)
    logger.info("registered user %s", user.id)

    request.session["user_id"] = user.id
    return _user_read(user)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(request: Request):
    request.session.clear()


@router.get("/me", response_model=UserRead)
def me(current_user: User = Depends(require_login)):
    return _user_read(current_user)

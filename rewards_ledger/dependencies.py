from typing import Optional
from fastapi import BackgroundTasks, Depends, HTTPException, Query, Request, status
from sqlmodel import Session
from .config import settings
from .db import get_session
from .models import User
from .services.notifier import BackgroundNotifier, LoggingAuditLog, LoggingNotifier, Notifier
from .services.redemption import RedemptionWorkflow
from .services.retry import RetryPolicy

notifier: Notifier = LoggingNotifier()
audit_log = LoggingAuditLog()


def get_current_user(request: Request, session: Session = Depends(get_session)) -> Optional[User]:
    """Resolves the signed-in user from the session cookie."""
    user_id = request.session.get("user_id")
    if not user_id:
        return None
    user = session.get(User, user_id)
    if not user or not user.is_active:
        return None
    return user


def require_login(current_user: Optional[User] = Depends(get_current_user)) -> User:
    if not current_user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return current_user


def require_admin(user: User = Depends(require_login)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


def get_workflow(background_tasks: BackgroundTasks) -> RedemptionWorkflow:
    return RedemptionWorkflow(
        notifier=BackgroundNotifier(background_tasks, notifier),
        audit_log=audit_log,
        retry_policy=RetryPolicy(
            max_attempts=settings.REDEMPTION_MAX_ATTEMPTS,
            backoff_seconds=settings.RETRY_BACKOFF_SECONDS,
        ),
    )


class Page:
    """limit/offset query parameters, clamped to the configured maximum."""

    def __init__(
        self,
        limit: int = Query(default=settings.DEFAULT_PAGE_SIZE, ge=1),
        offset: int = Query(default=0, ge=0),
    ):
        self.limit = min(limit, settings.MAX_PAGE_SIZE)
        self.offset = offset

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple, Type

from sqlmodel import Session, SQLModel, select


def get_or_create(session: Session, model: Type[SQLModel], defaults: Optional[Dict[str, Any]] = None, **kwargs: Any) -> Tuple[SQLModel, bool]:
    statement = select(model)
    for key, value in kwargs.items():
        statement = statement.where(getattr(model, key) == value)
    instance = session.exec(statement).first()
    if instance:
        return instance, False

    params = {**kwargs, **(defaults or {})}
    instance = model(**params)
    session.add(instance)
    session.flush()
    return instance, True

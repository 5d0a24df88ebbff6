"""
Shared helpers for module posting flows.

Used by finance_modules/*/service.py to reduce duplication when loading the
row a mutation works on and when closing the transaction after a ledger post.

Architecture: Modules layer. Imports only from finance_kernel.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from finance_kernel.exceptions import NotFoundError

M = TypeVar("M")


def load_for_update(session: Session, model: type[M], entity_id: UUID, entity_type: str) -> M:
    """SELECT ... FOR UPDATE one row by primary key, or raise NotFoundError.

    The row lock serializes concurrent recognition / accumulation on the
    same record (PostgreSQL); SQLite ignores FOR UPDATE.
    """
    row = session.execute(
        select(model).where(model.id == entity_id).with_for_update()
    ).scalar_one_or_none()
    if row is None:
        raise NotFoundError(entity_type, entity_id)
    return row


def load(session: Session, model: type[M], entity_id: UUID, entity_type: str) -> M:
    """Plain read of one row by primary key, or raise NotFoundError."""
    row = session.get(model, entity_id)
    if row is None:
        raise NotFoundError(entity_type, entity_id)
    return row


def commit(session: Session, logger: logging.Logger, event: str, **fields: Any) -> None:
    """Commit the unit of work and log ``<event>_committed``."""
    session.commit()
    logger.info(f"{event}_committed", extra=_stringify(fields))


def rollback(session: Session, logger: logging.Logger, event: str, exc: Exception, **fields: Any) -> None:
    """Roll back the unit of work and log ``<event>_rolled_back`` with the error code."""
    session.rollback()
    extra = _stringify(fields)
    extra["error_code"] = getattr(exc, "code", type(exc).__name__)
    extra["error"] = str(exc)
    logger.warning(f"{event}_rolled_back", extra=extra)


def _stringify(fields: dict[str, Any]) -> dict[str, Any]:
    return {
        k: (str(v) if isinstance(v, UUID) else v)
        for k, v in fields.items()
        if v is not None
    }

"""Shared FastAPI dependencies."""
from __future__ import annotations

from typing import Annotated, Generator, Optional

from fastapi import Depends, Header, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import crud, models
from ..audit import resolve_locale
from ..constants import ADMIN_POSITIONS
from ..database import SessionLocal


def get_db() -> Generator[Session, None, None]:
    """One session per request.

    crud helpers only flush; the request commits here once the handler returns,
    and any error raised by the handler rolls back every write it made.
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_locale(
    locale: Optional[str] = Query(None, description="Display locale such as ko or en"),
) -> str:
    return resolve_locale(locale)


def get_actor_email(
    team_email: Annotated[str | None, Header(alias="X-Team-Email")] = None,
) -> Optional[str]:
    """Email of the team member performing the request, recorded in audit logs."""

    if not team_email:
        return None
    return team_email.strip().lower() or None


def require_admin(
    team_email: Annotated[Optional[str], Depends(get_actor_email)],
    db: Session = Depends(get_db),
) -> models.TeamMember:
    """Ensure the request comes from an active admin or manager."""

    if not team_email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Team-Email header required",
        )

    member = crud.get_team_member_by_email(db, team_email)
    if not member or not member.is_active or member.position not in ADMIN_POSITIONS:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return member

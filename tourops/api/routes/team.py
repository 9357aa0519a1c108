"""Team member management and password login."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ...constants import ADMIN_POSITIONS
from ..deps import get_actor_email, get_db, require_admin

router = APIRouter(prefix="/team", tags=["team"])


@router.post("", response_model=schemas.TeamMember, status_code=status.HTTP_201_CREATED)
def create_team_member(
    member_in: schemas.TeamMemberCreate,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor_email),
) -> models.TeamMember:
    # The very first member may register without credentials, but only as an admin.
    if crud.list_team_members(db):
        require_admin(actor, db)
    elif member_in.position not in ADMIN_POSITIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The first team member must be an admin or manager",
        )
    try:
        return crud.create_team_member(db, member_in)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("", response_model=List[schemas.TeamMember])
def list_team_members(
    db: Session = Depends(get_db), _: models.TeamMember = Depends(require_admin)
) -> List[models.TeamMember]:
    return list(crud.list_team_members(db))


@router.post("/login", response_model=schemas.TeamMember)
def login(payload: schemas.TeamLogin, db: Session = Depends(get_db)) -> models.TeamMember:
    member = crud.authenticate_team_member(db, payload.email, payload.password)
    if not member:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    return member

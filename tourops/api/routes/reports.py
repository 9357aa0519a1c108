"""Reporting endpoints for operational insights."""
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ... import crud
from ..deps import get_db

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/reservation-status")
def reservation_status_report(db: Session = Depends(get_db)) -> dict[str, Any]:
    return crud.reservation_status_report(db)


@router.get("/channel-sales")
def channel_sales_report(
    start: Optional[date] = Query(None, description="Earliest tour date, inclusive"),
    end: Optional[date] = Query(None, description="Latest tour date, inclusive"),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    return crud.channel_sales_report(db, start=start, end=end)

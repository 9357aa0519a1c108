"""Coupon endpoints and the code check used by the pricing form."""
from __future__ import annotations

from typing import Annotated, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ..deps import get_db, get_locale

router = APIRouter(prefix="/coupons", tags=["coupons"])


def _get_coupon_or_404(db: Session, coupon_id: int) -> models.Coupon:
    coupon = crud.get_coupon(db, coupon_id)
    if not coupon:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Coupon not found")
    return coupon


@router.post("", response_model=schemas.Coupon, status_code=status.HTTP_201_CREATED)
def create_coupon(coupon_in: schemas.CouponCreate, db: Session = Depends(get_db)) -> models.Coupon:
    try:
        return crud.create_coupon(db, coupon_in)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("", response_model=List[schemas.Coupon])
def list_coupons(
    coupon_status: Optional[Literal["active", "inactive"]] = Query(None, alias="status"),
    search: Optional[str] = Query(None, description="Matches the code or description"),
    db: Session = Depends(get_db),
) -> List[models.Coupon]:
    return list(crud.list_coupons(db, status=coupon_status, search=search))


@router.post(
    "/validate",
    response_model=schemas.CouponValidationResult,
    summary="Check a coupon code and compute its discount",
)
def validate_coupon(
    check: schemas.CouponValidationRequest,
    locale: str = Depends(get_locale),
    db: Session = Depends(get_db),
) -> schemas.CouponValidationResult:
    # Rejected codes are a normal answer, not an HTTP error.
    return crud.validate_coupon(db, check, locale=locale)


@router.get("/{coupon_id}", response_model=schemas.Coupon)
def get_coupon(coupon_id: Annotated[int, Path(gt=0)], db: Session = Depends(get_db)) -> models.Coupon:
    return _get_coupon_or_404(db, coupon_id)


@router.patch("/{coupon_id}", response_model=schemas.Coupon)
def update_coupon(
    coupon_id: Annotated[int, Path(gt=0)],
    coupon_in: schemas.CouponUpdate,
    db: Session = Depends(get_db),
) -> models.Coupon:
    coupon = _get_coupon_or_404(db, coupon_id)
    try:
        return crud.update_coupon(db, coupon, coupon_in)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.delete("/{coupon_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_coupon(coupon_id: Annotated[int, Path(gt=0)], db: Session = Depends(get_db)) -> Response:
    crud.delete_coupon(db, _get_coupon_or_404(db, coupon_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)

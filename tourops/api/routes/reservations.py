"""Reservation endpoints: bookings, pricing, payments, follow-up and history."""
from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ...action_required import summarize_tabs
from ...constants import ACTION_REQUIRED_TABS, DOCUMENT_TEMPLATES
from ...utils import render_reservation_document
from ..deps import get_actor_email, get_db, get_locale

router = APIRouter(prefix="/reservations", tags=["reservations"])


def _get_reservation_or_404(db: Session, reservation_id: int) -> models.Reservation:
    reservation = crud.get_reservation(db, reservation_id)
    if not reservation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reservation not found")
    return reservation


@router.post("", response_model=schemas.Reservation, status_code=status.HTTP_201_CREATED)
def create_reservation(
    reservation_in: schemas.ReservationCreate,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor_email),
) -> models.Reservation:
    try:
        reservation = crud.create_reservation(db, reservation_in, user_email=actor)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    db.refresh(reservation)
    return reservation


@router.get("", response_model=List[schemas.Reservation])
def list_reservations(
    status_filter: Optional[str] = Query(None, alias="status"),
    start: Optional[date] = Query(None, description="Earliest tour date, inclusive"),
    end: Optional[date] = Query(None, description="Latest tour date, inclusive"),
    customer_id: Optional[int] = Query(None),
    product_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
) -> List[models.Reservation]:
    return list(
        crud.list_reservations(
            db,
            status=status_filter,
            start=start,
            end=end,
            customer_id=customer_id,
            product_id=product_id,
        )
    )


@router.get(
    "/action-required",
    response_model=schemas.ActionRequiredResponse,
    summary="Reservations that need operator follow-up, grouped by reason",
)
def action_required(
    tab: Optional[str] = Query(None, description="One of status, tour, pricing, deposit, balance"),
    today: Optional[date] = Query(None, description="Reference date, defaults to today"),
    db: Session = Depends(get_db),
) -> schemas.ActionRequiredResponse:
    if tab is not None and tab not in ACTION_REQUIRED_TABS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"tab must be one of {', '.join(ACTION_REQUIRED_TABS)}",
        )
    tabs = crud.action_required(db, today=today)
    summary = summarize_tabs(tabs)
    listed = tabs[tab] if tab else []
    return schemas.ActionRequiredResponse(
        tab=tab,
        counts=schemas.ActionRequiredCounts(**summary["counts"]),
        total=summary["total"],
        reservations=[schemas.Reservation.model_validate(item) for item in listed],
    )


@router.get("/{reservation_id}", response_model=schemas.Reservation)
def get_reservation(
    reservation_id: int = Path(..., gt=0), db: Session = Depends(get_db)
) -> models.Reservation:
    return _get_reservation_or_404(db, reservation_id)


@router.put("/{reservation_id}", response_model=schemas.Reservation)
def update_reservation(
    reservation_id: int,
    reservation_in: schemas.ReservationUpdate,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor_email),
) -> models.Reservation:
    reservation = _get_reservation_or_404(db, reservation_id)
    try:
        reservation = crud.update_reservation(db, reservation, reservation_in, user_email=actor)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    db.refresh(reservation)
    return reservation


@router.delete("/{reservation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor_email),
) -> Response:
    reservation = _get_reservation_or_404(db, reservation_id)
    crud.delete_reservation(db, reservation, user_email=actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{reservation_id}/pricing", response_model=schemas.ReservationPricing)
def upsert_reservation_pricing(
    reservation_id: int,
    pricing_in: schemas.ReservationPricingUpsert,
    db: Session = Depends(get_db),
) -> models.ReservationPricing:
    reservation = _get_reservation_or_404(db, reservation_id)
    try:
        pricing = crud.upsert_reservation_pricing(db, reservation, pricing_in)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    db.refresh(pricing)
    return pricing


@router.get("/{reservation_id}/pricing", response_model=schemas.ReservationPricing)
def get_reservation_pricing(
    reservation_id: int, db: Session = Depends(get_db)
) -> models.ReservationPricing:
    reservation = _get_reservation_or_404(db, reservation_id)
    if reservation.pricing is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pricing not found")
    return reservation.pricing


@router.post(
    "/{reservation_id}/payments",
    response_model=schemas.PaymentRecord,
    status_code=status.HTTP_201_CREATED,
)
def add_payment_record(
    reservation_id: int,
    payment_in: schemas.PaymentRecordCreate,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor_email),
) -> models.PaymentRecord:
    reservation = _get_reservation_or_404(db, reservation_id)
    if not payment_in.submitted_by and actor:
        payment_in = payment_in.model_copy(update={"submitted_by": actor})
    payment = crud.add_payment_record(db, reservation, payment_in)
    db.refresh(payment)
    return payment


@router.get("/{reservation_id}/payments", response_model=List[schemas.PaymentRecord])
def list_payment_records(
    reservation_id: int, db: Session = Depends(get_db)
) -> List[models.PaymentRecord]:
    _get_reservation_or_404(db, reservation_id)
    return list(crud.list_payment_records(db, reservation_id))


@router.get("/{reservation_id}/follow-ups", response_model=schemas.FollowUpOverview)
def get_follow_ups(
    reservation_id: int,
    db: Session = Depends(get_db),
    locale: str = Depends(get_locale),
) -> schemas.FollowUpOverview:
    reservation = _get_reservation_or_404(db, reservation_id)
    return crud.follow_up_overview(db, reservation, locale)


@router.put("/{reservation_id}/cancellation-reason", response_model=schemas.FollowUp)
def save_cancellation_reason(
    reservation_id: int,
    payload: schemas.CancellationReasonUpdate,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor_email),
) -> models.ReservationFollowUp:
    reservation = _get_reservation_or_404(db, reservation_id)
    row = crud.save_cancellation_reason(db, reservation, payload.content, user_email=actor)
    db.refresh(row)
    return row


@router.post(
    "/{reservation_id}/contacts",
    response_model=schemas.FollowUp,
    status_code=status.HTTP_201_CREATED,
)
def add_contact_log(
    reservation_id: int,
    payload: schemas.ContactLogCreate,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor_email),
) -> models.ReservationFollowUp:
    reservation = _get_reservation_or_404(db, reservation_id)
    try:
        row = crud.add_contact_log(db, reservation, payload.content, user_email=actor)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    db.refresh(row)
    return row


@router.get(
    "/{reservation_id}/history",
    response_model=List[schemas.EditHistoryEntry],
    summary="Edit history of a reservation, newest first",
)
def reservation_history(
    reservation_id: int,
    db: Session = Depends(get_db),
    locale: str = Depends(get_locale),
) -> List[schemas.EditHistoryEntry]:
    # History outlives deleted reservations, so no existence check here.
    return crud.reservation_edit_history(db, reservation_id, locale)


@router.get(
    "/{reservation_id}/documents/{kind}",
    response_class=HTMLResponse,
    summary="Render a printable confirmation or receipt",
)
def reservation_document(
    reservation_id: int,
    kind: str,
    db: Session = Depends(get_db),
    locale: str = Depends(get_locale),
) -> str:
    if kind not in DOCUMENT_TEMPLATES:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown document type")
    reservation = _get_reservation_or_404(db, reservation_id)
    return render_reservation_document(
        reservation, kind, locale, choice_labels=crud.reservation_choice_labels(reservation, locale)
    )

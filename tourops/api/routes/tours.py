"""Tour endpoints: grouping reservations into operated tours."""
from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ..deps import get_actor_email, get_db

router = APIRouter(prefix="/tours", tags=["tours"])


def _get_tour_or_404(db: Session, tour_id: int) -> models.Tour:
    tour = crud.get_tour(db, tour_id)
    if not tour:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tour not found")
    return tour


@router.post("", response_model=schemas.TourDetail, status_code=status.HTTP_201_CREATED)
def create_tour(
    tour_in: schemas.TourCreate,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor_email),
) -> schemas.TourDetail:
    try:
        tour = crud.create_tour(db, tour_in, user_email=actor)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    db.refresh(tour)
    return crud.tour_detail(db, tour)


@router.post(
    "/from-reservation/{reservation_id}",
    response_model=schemas.TourDetail,
    status_code=status.HTTP_201_CREATED,
    summary="Open a tour for a reservation's date and assign it",
)
def create_tour_from_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor_email),
) -> schemas.TourDetail:
    reservation = crud.get_reservation(db, reservation_id)
    if not reservation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reservation not found")
    try:
        tour = crud.create_tour_from_reservation(db, reservation, user_email=actor)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return crud.tour_detail(db, tour)


@router.get("", response_model=List[schemas.TourDetail])
def list_tours(
    start: Optional[date] = Query(None, description="Earliest tour date, inclusive"),
    end: Optional[date] = Query(None, description="Latest tour date, inclusive"),
    db: Session = Depends(get_db),
) -> List[schemas.TourDetail]:
    return [crud.tour_detail(db, tour) for tour in crud.list_tours(db, start=start, end=end)]


@router.get("/{tour_id}", response_model=schemas.TourDetail)
def get_tour(tour_id: int, db: Session = Depends(get_db)) -> schemas.TourDetail:
    return crud.tour_detail(db, _get_tour_or_404(db, tour_id))


@router.put("/{tour_id}", response_model=schemas.TourDetail)
def update_tour(
    tour_id: int, tour_in: schemas.TourUpdate, db: Session = Depends(get_db)
) -> schemas.TourDetail:
    tour = _get_tour_or_404(db, tour_id)
    tour = crud.update_tour(db, tour, tour_in)
    db.refresh(tour)
    return crud.tour_detail(db, tour)


@router.delete("/{tour_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_tour(
    tour_id: int,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor_email),
) -> Response:
    tour = _get_tour_or_404(db, tour_id)
    crud.delete_tour(db, tour, user_email=actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{tour_id}/reservations", response_model=schemas.TourDetail)
def assign_reservations(
    tour_id: int,
    assignment: schemas.TourAssignment,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor_email),
) -> schemas.TourDetail:
    tour = _get_tour_or_404(db, tour_id)
    try:
        tour = crud.assign_reservations(db, tour, assignment.reservation_ids, user_email=actor)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return crud.tour_detail(db, tour)


@router.delete("/{tour_id}/reservations/{reservation_id}", response_model=schemas.TourDetail)
def unassign_reservation(
    tour_id: int,
    reservation_id: int,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor_email),
) -> schemas.TourDetail:
    tour = _get_tour_or_404(db, tour_id)
    reservation = crud.get_reservation(db, reservation_id)
    if not reservation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reservation not found")
    try:
        tour = crud.unassign_reservation(db, tour, reservation, user_email=actor)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return crud.tour_detail(db, tour)

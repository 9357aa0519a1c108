"""Pickup hotel endpoints, including optimized hotel photos."""
from __future__ import annotations

from typing import Annotated, List

from fastapi import APIRouter, Depends, File, HTTPException, Path, Query, Response, UploadFile, status
from sqlalchemy.orm import Session

from ... import crud, models, schemas, utils
from ..deps import get_db

router = APIRouter(prefix="/pickup-hotels", tags=["pickup hotels"])


@router.post("", response_model=schemas.PickupHotel, status_code=status.HTTP_201_CREATED)
def create_pickup_hotel(
    hotel_in: schemas.PickupHotelCreate, db: Session = Depends(get_db)
) -> models.PickupHotel:
    return crud.create_pickup_hotel(db, hotel_in)


@router.get("", response_model=List[schemas.PickupHotel])
def list_pickup_hotels(
    active: bool = Query(False, description="Only return hotels currently used for pickups"),
    db: Session = Depends(get_db),
) -> List[models.PickupHotel]:
    return list(crud.list_pickup_hotels(db, only_active=active))


@router.get("/{hotel_id}", response_model=schemas.PickupHotel)
def get_pickup_hotel(
    hotel_id: Annotated[int, Path(gt=0)], db: Session = Depends(get_db)
) -> models.PickupHotel:
    hotel = crud.get_pickup_hotel(db, hotel_id)
    if not hotel:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pickup hotel not found")
    return hotel


@router.patch("/{hotel_id}", response_model=schemas.PickupHotel)
def update_pickup_hotel(
    hotel_id: Annotated[int, Path(gt=0)],
    hotel_in: schemas.PickupHotelUpdate,
    db: Session = Depends(get_db),
) -> models.PickupHotel:
    hotel = crud.get_pickup_hotel(db, hotel_id)
    if not hotel:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pickup hotel not found")
    return crud.update_pickup_hotel(db, hotel, hotel_in)


@router.post(
    "/{hotel_id}/image",
    response_model=schemas.PickupHotel,
    summary="Upload and optimize the pickup point photo",
)
async def upload_pickup_hotel_image(
    hotel_id: Annotated[int, Path(gt=0)],
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
) -> models.PickupHotel:
    hotel = crud.get_pickup_hotel(db, hotel_id)
    if not hotel:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pickup hotel not found")

    raw_bytes = await file.read()
    try:
        optimization = utils.optimize_image_upload(raw_bytes, file.filename or "upload.jpg")
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return crud.set_pickup_hotel_image(
        db,
        hotel,
        original_path=str(optimization["original_path"]),
        optimized_path=str(optimization["optimized_path"]),
    )


@router.delete("/{hotel_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_pickup_hotel(
    hotel_id: Annotated[int, Path(gt=0)], db: Session = Depends(get_db)
) -> Response:
    hotel = crud.get_pickup_hotel(db, hotel_id)
    if not hotel:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pickup hotel not found")
    crud.delete_pickup_hotel(db, hotel)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

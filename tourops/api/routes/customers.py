"""Customer management endpoints."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ..deps import get_db

router = APIRouter(prefix="/customers", tags=["customers"])


@router.post("", response_model=schemas.Customer, status_code=status.HTTP_201_CREATED)
def create_customer(
    customer_in: schemas.CustomerCreate, db: Session = Depends(get_db)
) -> models.Customer:
    return crud.create_customer(db, customer_in)


@router.get("", response_model=List[schemas.Customer])
def list_customers(
    db: Session = Depends(get_db),
    search: str | None = Query(None, description="Filter customers by name, email or phone"),
) -> List[models.Customer]:
    customers = crud.list_customers(db)
    if search:
        lowered = search.lower()
        customers = [
            customer
            for customer in customers
            if lowered in (customer.name or "").lower()
            or lowered in (customer.email or "").lower()
            or lowered in (customer.phone or "").lower()
        ]
    return list(customers)


@router.get("/{customer_id}", response_model=schemas.Customer)
def get_customer(customer_id: int = Path(..., gt=0), db: Session = Depends(get_db)) -> models.Customer:
    customer = crud.get_customer(db, customer_id)
    if not customer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return customer


@router.put("/{customer_id}", response_model=schemas.Customer)
def update_customer(
    customer_id: int,
    customer_in: schemas.CustomerUpdate,
    db: Session = Depends(get_db),
) -> models.Customer:
    customer = crud.get_customer(db, customer_id)
    if not customer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return crud.update_customer(db, customer, customer_in)


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_customer(customer_id: int, db: Session = Depends(get_db)) -> Response:
    customer = crud.get_customer(db, customer_id)
    if not customer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    crud.delete_customer(db, customer)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

"""Channel and product catalog endpoints."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status
from sqlalchemy.orm import Session

from ... import choice_pricing, crud, models, schemas
from ..deps import get_db

router = APIRouter(tags=["catalog"])


@router.post("/channels", response_model=schemas.Channel, status_code=status.HTTP_201_CREATED)
def create_channel(channel_in: schemas.ChannelCreate, db: Session = Depends(get_db)) -> models.Channel:
    return crud.create_channel(db, channel_in)


@router.get("/channels", response_model=List[schemas.Channel])
def list_channels(
    active: bool = Query(False, description="Only return active channels"),
    db: Session = Depends(get_db),
) -> List[models.Channel]:
    return list(crud.list_channels(db, only_active=active))


@router.get("/channels/{channel_id}", response_model=schemas.Channel)
def get_channel(channel_id: int = Path(..., gt=0), db: Session = Depends(get_db)) -> models.Channel:
    channel = crud.get_channel(db, channel_id)
    if not channel:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Channel not found")
    return channel


@router.put("/channels/{channel_id}", response_model=schemas.Channel)
def update_channel(
    channel_id: int,
    channel_in: schemas.ChannelUpdate,
    db: Session = Depends(get_db),
) -> models.Channel:
    channel = crud.get_channel(db, channel_id)
    if not channel:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Channel not found")
    return crud.update_channel(db, channel, channel_in)


@router.delete("/channels/{channel_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_channel(channel_id: int, db: Session = Depends(get_db)) -> Response:
    channel = crud.get_channel(db, channel_id)
    if not channel:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Channel not found")
    crud.delete_channel(db, channel)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/products", response_model=schemas.Product, status_code=status.HTTP_201_CREATED)
def create_product(product_in: schemas.ProductCreate, db: Session = Depends(get_db)) -> models.Product:
    return crud.create_product(db, product_in)


@router.get("/products", response_model=List[schemas.Product])
def list_products(
    search: str | None = Query(None, description="Filter products by name substring"),
    db: Session = Depends(get_db),
) -> List[models.Product]:
    products = crud.list_products(db)
    if search:
        lowered = search.lower()
        products = [
            product
            for product in products
            if lowered in (product.name or "").lower() or lowered in (product.name_ko or "").lower()
        ]
    return list(products)


@router.get("/products/{product_id}", response_model=schemas.Product)
def get_product(product_id: int = Path(..., gt=0), db: Session = Depends(get_db)) -> models.Product:
    product = crud.get_product(db, product_id)
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


@router.put("/products/{product_id}", response_model=schemas.Product)
def update_product(
    product_id: int,
    product_in: schemas.ProductUpdate,
    db: Session = Depends(get_db),
) -> models.Product:
    product = crud.get_product(db, product_id)
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return crud.update_product(db, product, product_in)


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(product_id: int, db: Session = Depends(get_db)) -> Response:
    product = crud.get_product(db, product_id)
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    crud.delete_product(db, product)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/products/{product_id}/choice-groups",
    response_model=List[schemas.ChoiceGroup],
    summary="Required choice groups configured on a product",
)
def product_choice_groups(product_id: int, db: Session = Depends(get_db)) -> List[schemas.ChoiceGroup]:
    product = crud.get_product(db, product_id)
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return choice_pricing.choice_groups_from_product(product.choices)


@router.post(
    "/products/{product_id}/options",
    response_model=schemas.ProductOption,
    status_code=status.HTTP_201_CREATED,
)
def create_product_option(
    product_id: int,
    option_in: schemas.ProductOptionCreate,
    db: Session = Depends(get_db),
) -> models.ProductOption:
    product = crud.get_product(db, product_id)
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    option = crud.create_product_option(db, product, option_in)
    db.refresh(option)
    return option


@router.get("/products/{product_id}/options", response_model=List[schemas.ProductOption])
def list_product_options(product_id: int, db: Session = Depends(get_db)) -> List[models.ProductOption]:
    if not crud.get_product(db, product_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return list(crud.list_product_options(db, product_id))

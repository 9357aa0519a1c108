"""Dynamic pricing endpoints, including choice combination reconciliation."""
from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ... import choice_pricing, crud, models, schemas
from ..deps import get_db

router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.put("/dynamic", response_model=schemas.DynamicPricing)
def upsert_dynamic_pricing(
    pricing_in: schemas.DynamicPricingUpsert, db: Session = Depends(get_db)
) -> models.DynamicPricing:
    try:
        record = crud.upsert_dynamic_pricing(db, pricing_in)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    db.refresh(record)
    return record


@router.get("/dynamic", response_model=List[schemas.DynamicPricing])
def list_dynamic_pricing(
    product_id: Optional[int] = Query(None),
    channel_id: Optional[int] = Query(None),
    start: Optional[date] = Query(None, description="First date, inclusive"),
    end: Optional[date] = Query(None, description="Last date, inclusive"),
    db: Session = Depends(get_db),
) -> List[models.DynamicPricing]:
    return list(
        crud.list_dynamic_pricing(
            db, product_id=product_id, channel_id=channel_id, start=start, end=end
        )
    )


@router.get(
    "/products/{product_id}/combinations",
    response_model=List[schemas.ChoiceCombination],
    summary="Choice combinations derived from the product's stored choice pricing",
)
def product_combinations(
    product_id: int, db: Session = Depends(get_db)
) -> List[schemas.ChoiceCombination]:
    if not crud.get_product(db, product_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return crud.product_choice_combinations(db, product_id)


@router.post(
    "/combinations/price",
    response_model=List[schemas.ChoiceCombination],
    summary="Replace one price of one combination in an edited combination list",
)
def update_combination_price(
    payload: schemas.CombinationPriceUpdate,
) -> List[schemas.ChoiceCombination]:
    return choice_pricing.update_combination_price(
        payload.combinations, payload.combination_id, payload.price_type, payload.value
    )


@router.post(
    "/products/{product_id}/migrate-choices",
    response_model=schemas.ChoiceMigrationResult,
    summary="Re-key stored choice prices onto a new set of combinations",
)
def migrate_choices(
    product_id: int,
    payload: schemas.ChoiceMigrationRequest,
    db: Session = Depends(get_db),
) -> schemas.ChoiceMigrationResult:
    product = crud.get_product(db, product_id)
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    migrated, updated = crud.migrate_product_choice_pricing(
        db, product, payload.combinations, channel_id=payload.channel_id
    )
    return schemas.ChoiceMigrationResult(choices_pricing=migrated, updated_records=updated)


@router.post(
    "/lookup",
    response_model=schemas.ChoicePricingLookupResult,
    summary="Find the stored price entry for a choice combination",
)
def lookup_choice_pricing(
    payload: schemas.ChoicePricingLookupRequest, db: Session = Depends(get_db)
) -> schemas.ChoicePricingLookupResult:
    if not crud.get_product(db, payload.product_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return crud.lookup_choice_pricing(db, payload)

"""Utility helpers for reservation pricing, printable documents and media management."""
from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from decimal import Decimal
from io import BytesIO
from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

from jinja2 import Environment, PackageLoader, select_autoescape
from PIL import Image, UnidentifiedImageError

from . import models
from .constants import (
    APP_NAME,
    CHILD_PRICE_RATIO,
    DOCUMENT_TEMPLATES,
    INFANT_PRICE_RATIO,
    SETTLED_PAYMENT_STATUSES,
)

BASE_DIR = Path(__file__).resolve().parent
MEDIA_ROOT = Path(os.getenv("TOUROPS_MEDIA_ROOT", str(BASE_DIR / "media_storage")))
ORIGINAL_MEDIA_DIR = MEDIA_ROOT / "original"
OPTIMIZED_MEDIA_DIR = MEDIA_ROOT / "optimized"

CENTS = Decimal("0.01")
PHOTO_MAX_EDGE = 1600
PHOTO_JPEG_QUALITY = 85

_ENV = Environment(
    loader=PackageLoader("tourops", "templates"),
    autoescape=select_autoescape(["html", "xml"]),
    enable_async=False,
)


def _ensure_media_directories() -> None:
    for directory in (ORIGINAL_MEDIA_DIR, OPTIMIZED_MEDIA_DIR):
        directory.mkdir(parents=True, exist_ok=True)


def _decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def calculate_total_price(
    reservation: Any,
    product: Optional[Any],
    option_choices: Mapping[str, Any],
) -> float:
    """Price a reservation from its product's base price and selected options.

    Children pay 70% and infants 30% of the adult base price.  Option choice
    adjustments and manually entered ``selected_option_prices`` are added on
    top, per passenger type.
    """

    base_price = getattr(product, "base_price", None) if product is not None else None
    if not base_price:
        return 0.0

    base = float(base_price)
    adult_price = base
    child_price = base * CHILD_PRICE_RATIO
    infant_price = base * INFANT_PRICE_RATIO

    selected_options = getattr(reservation, "selected_options", None) or {}
    if isinstance(selected_options, Mapping):
        for choice_ids in selected_options.values():
            if not isinstance(choice_ids, list):
                continue
            for choice_id in choice_ids:
                choice = option_choices.get(str(choice_id))
                if choice is None:
                    continue
                if choice.adult_price_adjustment is not None:
                    adult_price += float(choice.adult_price_adjustment)
                if choice.child_price_adjustment is not None:
                    child_price += float(choice.child_price_adjustment)
                if choice.infant_price_adjustment is not None:
                    infant_price += float(choice.infant_price_adjustment)

    option_prices = getattr(reservation, "selected_option_prices", None) or {}
    if isinstance(option_prices, Mapping):
        for key, value in option_prices.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            if "_adult" in key:
                adult_price += value
            elif "_child" in key:
                child_price += value
            elif "_infant" in key:
                infant_price += value

    return (
        (reservation.adults or 0) * adult_price
        + (reservation.child or 0) * child_price
        + (reservation.infant or 0) * infant_price
    )


def settled_payment_total(payments: Iterable[models.PaymentRecord]) -> Decimal:
    return sum(
        (
            _decimal(payment.amount)
            for payment in payments
            if (payment.status or "").lower() in SETTLED_PAYMENT_STATUSES
        ),
        Decimal("0"),
    )


def product_price_total(
    reservation: models.Reservation, adult_price: Any, child_price: Any, infant_price: Any
) -> Decimal:
    return (
        _decimal(reservation.adults) * _decimal(adult_price)
        + _decimal(reservation.child) * _decimal(child_price)
        + _decimal(reservation.infant) * _decimal(infant_price)
    )


def apply_pricing_totals(
    pricing: models.ReservationPricing,
    reservation: models.Reservation,
    *,
    explicit_commission: bool = False,
) -> None:
    """Recompute derived totals on a reservation pricing row in place."""

    product_total = product_price_total(
        reservation,
        pricing.adult_product_price,
        pricing.child_product_price,
        pricing.infant_product_price,
    )
    pricing.product_price_total = product_total.quantize(CENTS)

    total = (
        product_total
        - _decimal(pricing.coupon_discount)
        - _decimal(pricing.additional_discount)
        + _decimal(pricing.additional_cost)
    )
    pricing.total_price = total.quantize(CENTS)

    if not explicit_commission:
        pricing.commission_amount = (
            total * _decimal(pricing.commission_percent) / Decimal("100")
        ).quantize(CENTS)

    balance = total - _decimal(pricing.deposit_amount) - settled_payment_total(reservation.payments)
    pricing.balance_amount = balance.quantize(CENTS)


def render_reservation_document(
    reservation: models.Reservation,
    kind: str,
    locale: str,
    choice_labels: Optional[list[str]] = None,
) -> str:
    template_name = DOCUMENT_TEMPLATES.get(kind)
    if template_name is None:
        raise ValueError(f"Unknown document type '{kind}'")
    template = _ENV.get_template(template_name)
    return template.render(
        reservation=reservation,
        pricing=reservation.pricing,
        choice_labels=choice_labels or [],
        locale=locale,
        app_name=APP_NAME,
    )


def optimize_image_upload(data: bytes, filename: str) -> dict[str, int | str]:
    """Save a pickup hotel photo plus a JPEG copy bounded by ``PHOTO_MAX_EDGE``.

    Returns the media-root relative paths, the optimized size and its byte count.
    Empty or undecodable uploads raise ``ValueError``.
    """

    if not data:
        raise ValueError("Uploaded file is empty")

    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ValueError("Uploaded file is not a valid image") from exc

    _ensure_media_directories()
    stem = uuid4().hex
    original_path = ORIGINAL_MEDIA_DIR / f"{stem}{Path(filename).suffix.lower() or '.jpg'}"
    optimized_path = OPTIMIZED_MEDIA_DIR / f"{stem}.jpg"
    original_path.write_bytes(data)

    photo = image.convert("RGB")
    photo.thumbnail((PHOTO_MAX_EDGE, PHOTO_MAX_EDGE), Image.LANCZOS)
    photo.save(optimized_path, format="JPEG", optimize=True, quality=PHOTO_JPEG_QUALITY)
    width, height = photo.size

    return {
        "original_path": str(original_path.relative_to(MEDIA_ROOT)),
        "optimized_path": str(optimized_path.relative_to(MEDIA_ROOT)),
        "width": width,
        "height": height,
        "file_size": optimized_path.stat().st_size,
    }


def remove_media_files(*relative_paths: Optional[str]) -> None:
    for relative_path in relative_paths:
        if not relative_path:
            continue
        file_path = MEDIA_ROOT / relative_path
        if file_path.exists():
            file_path.unlink()

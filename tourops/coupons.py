"""Coupon lookup and discount arithmetic."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from . import schemas
from .constants import COUPON_ERRORS
from .utils import CENTS

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


def _amount(value: Any) -> Optional[Decimal]:
    # Zero or missing values do not count as a configured discount.
    if value is None:
        return None
    amount = Decimal(str(value))
    return amount if amount else None


def coupon_discount(coupon: Any, total: Decimal) -> Decimal:
    """Discount a coupon grants on ``total``.

    ``fixed`` and ``percentage`` coupons use their own value. A coupon with no
    usable type applies the fixed amount first and then the percentage of
    what remains; with only one value set, that value alone applies.
    """

    fixed = _amount(getattr(coupon, "fixed_value", None))
    percentage = _amount(getattr(coupon, "percentage_value", None))
    discount_type = getattr(coupon, "discount_type", None)

    if discount_type == "fixed" and fixed is not None:
        discount = fixed
    elif discount_type == "percentage" and percentage is not None:
        discount = total * percentage / HUNDRED
    elif fixed is not None and percentage is not None:
        discount = fixed + (total - fixed) * percentage / HUNDRED
    elif fixed is not None:
        discount = fixed
    elif percentage is not None:
        discount = total * percentage / HUNDRED
    else:
        discount = Decimal("0")
    return discount.quantize(CENTS)


def find_active_coupon(coupons: Iterable[Any], code: str) -> Optional[Any]:
    wanted = code.strip().lower()
    for coupon in coupons:
        if getattr(coupon, "status", None) != "active":
            continue
        stored = (getattr(coupon, "coupon_code", None) or "").strip().lower()
        if stored and stored == wanted:
            return coupon
    return None


def _rejected(error_code: str, locale: str) -> schemas.CouponValidationResult:
    messages = COUPON_ERRORS[error_code]
    return schemas.CouponValidationResult(
        valid=False,
        error_code=error_code,
        error=messages["en"] if locale == "en" else messages["ko"],
    )


def validate_coupon(
    coupons: Iterable[Any],
    code: Optional[str],
    total_amount: Any,
    product_ids: Iterable[int] = (),
    *,
    today: Optional[date] = None,
    locale: str = "ko",
) -> schemas.CouponValidationResult:
    """Check a coupon code against an order total.

    Rejections come back as ``valid=False`` with an ``error_code`` rather than
    raising, so callers can show the message next to the code field.
    """

    if not code or not code.strip():
        return _rejected("code_required", locale)
    try:
        total = Decimal(str(total_amount))
    except ArithmeticError:
        return _rejected("invalid_amount", locale)
    if not total.is_finite() or total <= 0:
        return _rejected("invalid_amount", locale)

    coupon = find_active_coupon(coupons, code)
    if coupon is None:
        logger.info("coupon %r not found among active coupons", code.strip())
        return _rejected("not_found", locale)

    today = today or date.today()
    if coupon.start_date and today < coupon.start_date:
        return _rejected("not_started", locale)
    if coupon.end_date and today > coupon.end_date:
        return _rejected("expired", locale)

    product_ids = list(product_ids)
    if coupon.product_id and product_ids and coupon.product_id not in product_ids:
        return _rejected("wrong_product", locale)

    discount = coupon_discount(coupon, total)
    final_amount = max(Decimal("0"), total - discount).quantize(CENTS)
    return schemas.CouponValidationResult(
        valid=True,
        discount_amount=discount,
        final_amount=final_amount,
        coupon=schemas.CouponSummary.model_validate(coupon),
    )

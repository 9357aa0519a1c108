"""Work queue of reservations that need an operator's attention."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import date, timedelta
from typing import Any, Optional

from .constants import ACTION_REQUIRED_TABS, ACTION_REQUIRED_WINDOW_DAYS, PRICE_TOLERANCE
from .utils import calculate_total_price

logger = logging.getLogger(__name__)


def _normalized_status(reservation: Any) -> str:
    return str(getattr(reservation, "status", "") or "").strip().lower()


def _as_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _as_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def has_tour_assigned(reservation: Any) -> bool:
    tour_id = getattr(reservation, "tour_id", None)
    if tour_id is None:
        return False
    text = str(tour_id).strip()
    return text not in {"", "null", "undefined"}


def _dedupe(*groups: Iterable[Any]) -> list[Any]:
    seen: dict[Any, Any] = {}
    for group in groups:
        for reservation in group:
            seen.setdefault(reservation.id, reservation)
    return list(seen.values())


def classify_reservations(
    reservations: Iterable[Any],
    pricing_map: Mapping[Any, Any],
    payment_reservation_ids: set[Any],
    products: Mapping[Any, Any],
    option_choices: Mapping[str, Any],
    today: Optional[date] = None,
) -> dict[str, list[Any]]:
    """Split reservations into the action-required tabs.

    ``pricing_map`` maps reservation id to its pricing row (anything exposing
    ``total_price`` and ``balance_amount``); ``products`` maps product id to
    product; ``option_choices`` maps stringified option choice id to choice.
    A reservation may appear in several tabs.
    """

    today = today or date.today()
    window_end = today + timedelta(days=ACTION_REQUIRED_WINDOW_DAYS)
    reservations = list(reservations)

    def stored_total(reservation: Any) -> Optional[float]:
        pricing = pricing_map.get(reservation.id)
        return _as_float(getattr(pricing, "total_price", None)) if pricing else None

    def has_pricing(reservation: Any) -> bool:
        total = stored_total(reservation)
        return total is not None and total > 0

    def stored_total_matches(reservation: Any) -> bool:
        total = stored_total(reservation)
        if total is None:
            return True
        product = products.get(reservation.product_id)
        calculated = calculate_total_price(reservation, product, option_choices)
        return abs(total - calculated) <= PRICE_TOLERANCE

    def balance(reservation: Any) -> float:
        pricing = pricing_map.get(reservation.id)
        if pricing is None:
            return 0.0
        return _as_float(getattr(pricing, "balance_amount", None)) or 0.0

    def has_payment(reservation: Any) -> bool:
        return reservation.id in payment_reservation_ids

    def within_window(reservation: Any) -> bool:
        tour_date = _as_date(reservation.tour_date)
        return tour_date is not None and today <= tour_date <= window_end

    def before_today(reservation: Any) -> bool:
        tour_date = _as_date(reservation.tour_date)
        return tour_date is not None and tour_date < today

    pending = [r for r in reservations if _normalized_status(r) == "pending"]
    confirmed = [r for r in reservations if _normalized_status(r) == "confirmed"]

    no_pricing = [r for r in reservations if not has_pricing(r)]
    pricing_mismatch = [
        r for r in reservations if has_pricing(r) and not stored_total_matches(r)
    ]
    deposit_without_tour = [r for r in reservations if has_payment(r) and not has_tour_assigned(r)]
    confirmed_without_deposit = [r for r in confirmed if not has_payment(r)]

    tabs = {
        "status": [r for r in pending if within_window(r)],
        "tour": [r for r in confirmed if not has_tour_assigned(r)],
        "pricing": _dedupe(no_pricing, pricing_mismatch),
        "deposit": _dedupe(deposit_without_tour, confirmed_without_deposit),
        "balance": [r for r in reservations if before_today(r) and balance(r) > 0],
    }
    logger.debug(
        "Action-required scan of %d reservations: %s",
        len(reservations),
        {tab: len(items) for tab, items in tabs.items()},
    )
    return tabs


def summarize_tabs(tabs: Mapping[str, list[Any]]) -> dict[str, Any]:
    counts = {tab: len(tabs.get(tab, [])) for tab in ACTION_REQUIRED_TABS}
    distinct = {reservation.id for items in tabs.values() for reservation in items}
    return {"counts": counts, "total": len(distinct)}

"""Reservation edit history: change capture and human readable summaries."""
from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from .constants import (
    DEFAULT_LOCALE,
    RESERVATION_FIELD_LABELS,
    STATUS_LABELS,
    SUPPORTED_LOCALES,
)

IGNORED_FIELDS = frozenset({"updated_at"})

AUDITED_RESERVATION_FIELDS: tuple[str, ...] = (
    "customer_id",
    "product_id",
    "channel_id",
    "channel_rn",
    "tour_date",
    "tour_time",
    "pickup_hotel_id",
    "pickup_time",
    "adults",
    "child",
    "infant",
    "total_people",
    "status",
    "event_note",
    "is_private_tour",
    "selected_options",
    "selected_option_prices",
    "choices",
    "added_by",
    "tour_id",
)


def resolve_locale(locale: Optional[str]) -> str:
    candidate = (locale or "").strip().lower()[:2]
    if candidate in SUPPORTED_LOCALES:
        return candidate
    return DEFAULT_LOCALE if DEFAULT_LOCALE in SUPPORTED_LOCALES else SUPPORTED_LOCALES[0]


def _json_safe(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


def snapshot(instance: Any, fields: Iterable[str] = AUDITED_RESERVATION_FIELDS) -> dict[str, Any]:
    """Capture JSON-serializable column values of an ORM row."""

    return {field: _json_safe(getattr(instance, field, None)) for field in fields}


def diff_values(
    old_values: Optional[Mapping[str, Any]], new_values: Optional[Mapping[str, Any]]
) -> list[str]:
    old_values = old_values or {}
    new_values = new_values or {}
    fields = set(old_values) | set(new_values)
    return sorted(
        field
        for field in fields
        if field not in IGNORED_FIELDS and old_values.get(field) != new_values.get(field)
    )


def field_label(field: str, locale: str) -> str:
    labels = RESERVATION_FIELD_LABELS.get(field)
    if not labels:
        return field
    return labels["en"] if locale == "en" else labels["ko"]


def format_audit_value(field: str, value: Any, locale: str) -> str:
    if value is None:
        return "-"
    if field == "status" and isinstance(value, str):
        labels = STATUS_LABELS.get(value.lower())
        if labels:
            return labels["en"] if locale == "en" else labels["ko"]
        return value
    if isinstance(value, (dict, list)):
        text = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
        return text[:80] + ("…" if len(text) > 80 else "")
    if isinstance(value, bool):
        text = "true" if value else "false"
    elif isinstance(value, float) and value.is_integer():
        # Decimal snapshots are stored as floats; whole amounts print without ".0".
        text = str(int(value))
    else:
        text = str(value)
    return text[:40] + "…" if len(text) > 40 else text


def edit_history_summary(action: str, changed_fields: Optional[list[str]], locale: str) -> str:
    is_en = locale == "en"
    if action == "INSERT":
        return "Reservation created" if is_en else "예약 생성"
    if action == "DELETE":
        return "Reservation deleted" if is_en else "예약 삭제"
    if action == "UPDATE":
        fields = changed_fields if isinstance(changed_fields, list) else []
        labels = [label for label in (field_label(field, locale) for field in fields) if label]
        if labels:
            listing = ", ".join(labels)
        else:
            listing = f"{len(fields)} field(s)" if is_en else f"{len(fields)}개 필드"
        return f"Reservation updated: {listing}" if is_en else f"예약 정보 수정: {listing}"
    return "Change recorded" if is_en else "변경 기록"


def format_changes(
    changed_fields: Optional[list[str]],
    old_values: Optional[Mapping[str, Any]],
    new_values: Optional[Mapping[str, Any]],
    locale: str,
) -> list[dict[str, str]]:
    old_values = old_values or {}
    new_values = new_values or {}
    return [
        {
            "field": field,
            "label": field_label(field, locale),
            "old": format_audit_value(field, old_values.get(field), locale),
            "new": format_audit_value(field, new_values.get(field), locale),
        }
        for field in changed_fields or []
    ]

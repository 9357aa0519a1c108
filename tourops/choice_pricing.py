"""Matching of historical choice pricing records to current choice combinations.

Pricing rows store a ``choices_pricing`` blob keyed by whatever combination key
was current when the row was saved.  Product choices get renamed, regrouped and
reordered over time, so a straight dictionary lookup misses most of the older
rows.  The helpers here try progressively looser keys until something matches.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError

from . import schemas
from .constants import PRICE_TYPES

logger = logging.getLogger(__name__)

KEY_SEPARATOR = "+"


def _is_present(value: Any) -> bool:
    # Containers count as present even when empty; scalars follow truthiness.
    if isinstance(value, (dict, list)):
        return True
    return bool(value)


def _to_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return number


def _sorted_key(key: str) -> str:
    return KEY_SEPARATOR.join(sorted(key.split(KEY_SEPARATOR)))


def parse_choices_pricing(raw: Any) -> dict[str, Any]:
    """Return the ``choices_pricing`` blob as a dict, decoding legacy JSON strings."""

    if raw is None:
        return {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Ignoring unparsable choices_pricing blob: %s", exc)
            return {}
    if not isinstance(raw, Mapping):
        return {}
    return dict(raw)


def find_choice_pricing_data(
    combination: schemas.ChoiceCombination,
    choices_pricing: Optional[Mapping[str, Any]],
) -> tuple[Any, Optional[str]]:
    """Locate the pricing entry for ``combination``.

    Returns ``(data, matched_key)``; ``({}, None)`` when nothing matches.
    """

    if not choices_pricing:
        return {}, None

    combination_id = combination.id
    combination_key = combination.combination_key

    if _is_present(choices_pricing.get(combination_id)):
        return choices_pricing[combination_id], combination_id

    if combination_key and _is_present(choices_pricing.get(combination_key)):
        return choices_pricing[combination_key], combination_key

    available_keys = list(choices_pricing.keys())

    if combination_key:
        sorted_key = _sorted_key(combination_key)
        if sorted_key != combination_key and _is_present(choices_pricing.get(sorted_key)):
            return choices_pricing[sorted_key], sorted_key

        for key in available_keys:
            if _sorted_key(key) == sorted_key:
                return choices_pricing[key], key

    details = combination.combination_details or []
    if details:
        option_ids = KEY_SEPARATOR.join(
            sorted(
                part
                for part in (detail.option_id or detail.option_key for detail in details)
                if part
            )
        )
        if option_ids and _is_present(choices_pricing.get(option_ids)):
            return choices_pricing[option_ids], option_ids

        option_keys = KEY_SEPARATOR.join(
            sorted(
                part
                for part in (detail.option_key or detail.option_id for detail in details)
                if part
            )
        )
        if (
            option_keys
            and option_keys != option_ids
            and _is_present(choices_pricing.get(option_keys))
        ):
            return choices_pricing[option_keys], option_keys

    for key in available_keys:
        if combination_key:
            key_parts = combination_key.split(KEY_SEPARATOR)
            available_parts = key.split(KEY_SEPARATOR)
            if all(
                any(part in available or available in part for available in available_parts)
                for part in key_parts
            ):
                return choices_pricing[key], key

        if combination_id and (combination_id in key or key in combination_id):
            return choices_pricing[key], key

    return {}, None


def get_fallback_ota_sale_price(
    combination: schemas.ChoiceCombination,
    choices_pricing: Optional[Mapping[str, Any]],
) -> Optional[float]:
    """Best-effort OTA sale price for an undecided combination.

    Prefers the highest price among keys with the same number of segments as
    the combination and falls back to the highest price overall.
    """

    if not choices_pricing:
        return None

    key_to_use = combination.combination_key or combination.id
    part_count = len(key_to_use.split(KEY_SEPARATOR)) if key_to_use else 0

    max_same_structure = 0.0
    found_same_structure = False
    max_any = 0.0
    found_any = False

    for key, entry in choices_pricing.items():
        if not isinstance(entry, Mapping):
            continue
        price = _to_number(entry.get("ota_sale_price"))
        if price is None:
            continue
        same_structure = part_count > 0 and len(key.split(KEY_SEPARATOR)) == part_count
        if same_structure and price > max_same_structure:
            max_same_structure = price
            found_same_structure = True
        if price > max_any:
            max_any = price
            found_any = True

    if found_same_structure:
        return max_same_structure
    if found_any:
        return max_any
    return None


def get_ota_sale_price_with_fallback(
    combination: schemas.ChoiceCombination,
    choices_pricing: Optional[Mapping[str, Any]],
) -> float:
    data, _ = find_choice_pricing_data(combination, choices_pricing)
    direct = _to_number(data.get("ota_sale_price")) if isinstance(data, Mapping) else None
    if direct is not None and direct >= 0:
        return direct
    fallback = get_fallback_ota_sale_price(combination, choices_pricing)
    return fallback if fallback is not None else 0.0


def migrate_choice_pricing(
    old_choices_pricing: Optional[Mapping[str, Any]],
    new_combinations: Iterable[schemas.ChoiceCombination],
) -> dict[str, Any]:
    """Re-key an existing pricing blob onto a new set of combinations."""

    if not old_choices_pricing:
        return {}

    migrated: dict[str, Any] = {}
    for combination in new_combinations:
        data, matched_key = find_choice_pricing_data(combination, old_choices_pricing)
        if not isinstance(data, Mapping) or not data:
            continue
        migrated[combination.id] = dict(data)
        # Legacy readers look entries up by combination key.
        if combination.combination_key and combination.combination_key != combination.id:
            migrated[combination.combination_key] = dict(data)
        logger.info(
            "Migrated choice pricing %s -> %s (combination key %s)",
            matched_key,
            combination.id,
            combination.combination_key,
        )
    return migrated


def _record_field(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def _naive_utc(value: datetime) -> datetime:
    # Naive values are taken as UTC already.
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.replace(tzinfo=None)


def _record_timestamp(record: Any) -> datetime:
    value = _record_field(record, "updated_at")
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return datetime.min
    if isinstance(value, datetime):
        return _naive_utc(value)
    return datetime.min


def migrate_dynamic_pricing_choices(
    pricing_records: Iterable[Any],
    new_combinations: Iterable[schemas.ChoiceCombination],
) -> dict[str, Any]:
    """Migrate the choice prices of the most recently updated pricing record."""

    candidates = [
        record for record in pricing_records or [] if _record_field(record, "choices_pricing")
    ]
    if not candidates:
        return {}

    # max() keeps the first of equal elements, so untimestamped lists use their first record.
    latest = max(candidates, key=_record_timestamp)
    choices_pricing = parse_choices_pricing(_record_field(latest, "choices_pricing"))
    return migrate_choice_pricing(choices_pricing, list(new_combinations))


def combinations_from_choices_pricing(raw: Any) -> list[schemas.ChoiceCombination]:
    """Derive the editable choice combinations stored in a pricing blob."""

    data = parse_choices_pricing(raw)
    if not data:
        return []

    canyon_choice = data.get("canyon_choice")
    options = canyon_choice.get("options") if isinstance(canyon_choice, Mapping) else None

    combinations: list[schemas.ChoiceCombination] = []
    if isinstance(options, Mapping):
        for key, option in options.items():
            option = option if isinstance(option, Mapping) else {}
            combinations.append(
                schemas.ChoiceCombination(
                    id=key,
                    combination_key=key,
                    combination_name=option.get("name") or key,
                    combination_name_ko=option.get("name_ko"),
                    adult_price=_to_number(option.get("adult_price")) or 0,
                    child_price=_to_number(option.get("child_price")) or 0,
                    infant_price=_to_number(option.get("infant_price")) or 0,
                    is_active=True,
                )
            )
        return combinations

    for key, entry in data.items():
        if not isinstance(entry, Mapping):
            continue
        combinations.append(
            schemas.ChoiceCombination(
                id=key,
                combination_key=key,
                combination_name=entry.get("name") or key,
                combination_name_ko=entry.get("name_ko"),
                adult_price=_to_number(entry.get("adult_price")) or 0,
                child_price=_to_number(entry.get("child_price")) or 0,
                infant_price=_to_number(entry.get("infant_price")) or 0,
                ota_sale_price=_to_number(entry.get("ota_sale_price")),
                is_active=True,
            )
        )
    return combinations


def choice_groups_from_product(choices: Any) -> list[schemas.ChoiceGroup]:
    if not isinstance(choices, Mapping):
        return []
    required = choices.get("required") or []
    if not isinstance(required, list):
        return []
    groups: list[schemas.ChoiceGroup] = []
    for group in required:
        if not isinstance(group, Mapping):
            continue
        try:
            groups.append(schemas.ChoiceGroup.model_validate(group))
        except ValidationError as exc:
            logger.warning(
                "skipping malformed choice group %s: %d errors", group.get("id"), exc.error_count()
            )
    return groups


def update_combination_price(
    combinations: Iterable[schemas.ChoiceCombination],
    combination_id: str,
    price_type: str,
    value: float,
) -> list[schemas.ChoiceCombination]:
    if price_type not in PRICE_TYPES:
        raise ValueError(f"Unknown price type '{price_type}'")
    return [
        combination.model_copy(update={price_type: value})
        if combination.id == combination_id
        else combination
        for combination in combinations
    ]


def _selected_pairs(selected: Any) -> list[tuple[str, str, int]]:
    """Normalize the reservation ``choices`` blob into (group id, option id, quantity)."""

    if not isinstance(selected, Mapping):
        return []
    entries = selected.get("required")
    if isinstance(entries, list):
        pairs = []
        for entry in entries:
            if not isinstance(entry, Mapping):
                continue
            group_id = entry.get("choice_id") or entry.get("group_id") or entry.get("id")
            option_id = entry.get("option_id") or entry.get("option_key")
            if option_id is None:
                continue
            quantity = entry.get("quantity")
            pairs.append(
                (
                    str(group_id) if group_id is not None else "",
                    str(option_id),
                    quantity if isinstance(quantity, int) and quantity > 0 else 1,
                )
            )
        return pairs
    return [
        (str(group_id), str(option_id), 1)
        for group_id, option_id in selected.items()
        if isinstance(option_id, (str, int)) and not isinstance(option_id, bool)
    ]


def describe_selected_choices(
    selected: Any, groups: Iterable[schemas.ChoiceGroup], locale: str
) -> list[str]:
    """Human readable ``Group: Option`` labels for a reservation's chosen options."""

    def localized(item: Any) -> str:
        if locale == "ko" and item.name_ko:
            return item.name_ko
        return item.name

    groups = list(groups)
    group_index = {group.id: group for group in groups}
    option_index = {
        option.id: (group, option) for group in groups for option in group.options
    }

    labels: list[str] = []
    for group_id, option_id, quantity in _selected_pairs(selected):
        group = group_index.get(group_id)
        found = option_index.get(option_id)
        if found is not None:
            group, option = found
            label = f"{localized(group)}: {localized(option)}"
        elif group is not None:
            label = f"{localized(group)}: {option_id}"
        else:
            label = option_id
        if quantity > 1:
            label = f"{label} x{quantity}"
        labels.append(label)
    return labels

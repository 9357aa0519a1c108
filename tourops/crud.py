"""CRUD helper functions used by the API routers."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from passlib.context import CryptContext
from sqlalchemy import desc, or_, select
from sqlalchemy.orm import Session, selectinload

from . import audit, choice_pricing, coupons, models, schemas, utils
from .action_required import classify_reservations
from .constants import AUDIT_HISTORY_LIMIT, CANCELLATION_REASON_PRESETS, CANCELLED_STATUSES

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# Keeps IN (...) clauses well under backend parameter limits.
ID_CHUNK_SIZE = 200


def _chunks(values: Sequence[Any], size: int = ID_CHUNK_SIZE) -> Iterable[Sequence[Any]]:
    for start in range(0, len(values), size):
        yield values[start : start + size]


def record_audit(
    session: Session,
    *,
    table_name: str,
    record_id: Any,
    action: str,
    old_values: Optional[dict[str, Any]] = None,
    new_values: Optional[dict[str, Any]] = None,
    user_email: Optional[str] = None,
) -> models.AuditLog | None:
    changed_fields = audit.diff_values(old_values, new_values) if action == "UPDATE" else None
    if action == "UPDATE" and not changed_fields:
        return None
    entry = models.AuditLog(
        table_name=table_name,
        record_id=str(record_id),
        action=action,
        changed_fields=changed_fields,
        old_values=old_values,
        new_values=new_values,
        user_email=user_email,
    )
    session.add(entry)
    session.flush()
    logger.debug("Audit %s %s:%s fields=%s", action, table_name, record_id, changed_fields)
    return entry


# Channel helpers


def create_channel(session: Session, channel_in: schemas.ChannelCreate) -> models.Channel:
    channel = models.Channel(**channel_in.model_dump())
    session.add(channel)
    session.flush()
    return channel


def list_channels(session: Session, only_active: bool = False) -> Sequence[models.Channel]:
    statement = select(models.Channel).order_by(models.Channel.name)
    if only_active:
        statement = statement.where(models.Channel.is_active.is_(True))
    return session.scalars(statement).all()


def get_channel(session: Session, channel_id: int) -> models.Channel | None:
    return session.get(models.Channel, channel_id)


def update_channel(
    session: Session, channel: models.Channel, channel_in: schemas.ChannelUpdate
) -> models.Channel:
    for field, value in channel_in.model_dump(exclude_unset=True).items():
        setattr(channel, field, value)
    session.add(channel)
    session.flush()
    return channel


def delete_channel(session: Session, channel: models.Channel) -> None:
    session.delete(channel)
    session.flush()


# Product helpers


def create_product(session: Session, product_in: schemas.ProductCreate) -> models.Product:
    product = models.Product(**product_in.model_dump())
    session.add(product)
    session.flush()
    return product


def list_products(session: Session) -> Sequence[models.Product]:
    return session.scalars(select(models.Product).order_by(models.Product.name)).all()


def get_product(session: Session, product_id: int) -> models.Product | None:
    return session.get(models.Product, product_id)


def update_product(
    session: Session, product: models.Product, product_in: schemas.ProductUpdate
) -> models.Product:
    for field, value in product_in.model_dump(exclude_unset=True).items():
        setattr(product, field, value)
    session.add(product)
    session.flush()
    return product


def delete_product(session: Session, product: models.Product) -> None:
    session.delete(product)
    session.flush()


def create_product_option(
    session: Session, product: models.Product, option_in: schemas.ProductOptionCreate
) -> models.ProductOption:
    data = option_in.model_dump()
    choices_data = data.pop("choices", [])
    option = models.ProductOption(product_id=product.id, **data)
    for choice in choices_data:
        option.choices.append(models.OptionChoice(**choice))
    session.add(option)
    session.flush()
    return option


def list_product_options(session: Session, product_id: int) -> Sequence[models.ProductOption]:
    statement = (
        select(models.ProductOption)
        .where(models.ProductOption.product_id == product_id)
        .options(selectinload(models.ProductOption.choices))
        .order_by(models.ProductOption.id)
    )
    return session.scalars(statement).unique().all()


def option_choice_map(session: Session) -> dict[str, models.OptionChoice]:
    """Every option choice keyed by its stringified id, as stored in reservation JSON."""

    choices = session.scalars(select(models.OptionChoice)).all()
    return {str(choice.id): choice for choice in choices}


# Dynamic pricing helpers


def upsert_dynamic_pricing(
    session: Session, pricing_in: schemas.DynamicPricingUpsert
) -> models.DynamicPricing:
    if not get_product(session, pricing_in.product_id):
        raise ValueError(f"Unknown product {pricing_in.product_id}")
    if not get_channel(session, pricing_in.channel_id):
        raise ValueError(f"Unknown channel {pricing_in.channel_id}")

    data = pricing_in.model_dump()
    data["choices_pricing"] = choice_pricing.parse_choices_pricing(data.get("choices_pricing")) or None

    record = get_dynamic_pricing(
        session, pricing_in.product_id, pricing_in.channel_id, pricing_in.date
    )
    if record is None:
        record = models.DynamicPricing(**data)
    else:
        for field, value in data.items():
            setattr(record, field, value)
    session.add(record)
    session.flush()
    return record


def get_dynamic_pricing(
    session: Session, product_id: int, channel_id: int, pricing_date: date
) -> models.DynamicPricing | None:
    statement = select(models.DynamicPricing).where(
        models.DynamicPricing.product_id == product_id,
        models.DynamicPricing.channel_id == channel_id,
        models.DynamicPricing.date == pricing_date,
    )
    return session.scalars(statement).first()


def list_dynamic_pricing(
    session: Session,
    *,
    product_id: Optional[int] = None,
    channel_id: Optional[int] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> Sequence[models.DynamicPricing]:
    statement = select(models.DynamicPricing)
    if product_id is not None:
        statement = statement.where(models.DynamicPricing.product_id == product_id)
    if channel_id is not None:
        statement = statement.where(models.DynamicPricing.channel_id == channel_id)
    if start is not None:
        statement = statement.where(models.DynamicPricing.date >= start)
    if end is not None:
        statement = statement.where(models.DynamicPricing.date <= end)
    statement = statement.order_by(models.DynamicPricing.date, models.DynamicPricing.channel_id)
    return session.scalars(statement).all()


def latest_choices_pricing(
    session: Session, product_id: int, channel_id: Optional[int] = None
) -> dict[str, Any]:
    statement = (
        select(models.DynamicPricing)
        .where(
            models.DynamicPricing.product_id == product_id,
            models.DynamicPricing.choices_pricing.is_not(None),
        )
        .order_by(desc(models.DynamicPricing.updated_at), desc(models.DynamicPricing.id))
    )
    if channel_id is not None:
        statement = statement.where(models.DynamicPricing.channel_id == channel_id)
    for record in session.scalars(statement):
        parsed = choice_pricing.parse_choices_pricing(record.choices_pricing)
        if parsed:
            return parsed
    return {}


def product_choice_combinations(
    session: Session, product_id: int
) -> list[schemas.ChoiceCombination]:
    return choice_pricing.combinations_from_choices_pricing(
        latest_choices_pricing(session, product_id)
    )


def migrate_product_choice_pricing(
    session: Session,
    product: models.Product,
    combinations: list[schemas.ChoiceCombination],
    channel_id: Optional[int] = None,
) -> tuple[dict[str, Any], int]:
    """Re-key the product's latest choice prices and write them to its pricing rows."""

    records = list_dynamic_pricing(session, product_id=product.id, channel_id=channel_id)
    migrated = choice_pricing.migrate_dynamic_pricing_choices(records, combinations)
    if not migrated:
        return {}, 0

    updated = 0
    for record in records:
        record.choices_pricing = dict(migrated)
        session.add(record)
        updated += 1
    session.flush()
    logger.info(
        "Rewrote choice pricing on %d pricing rows of product %s", updated, product.id
    )
    return migrated, updated


def lookup_choice_pricing(
    session: Session, lookup: schemas.ChoicePricingLookupRequest
) -> schemas.ChoicePricingLookupResult:
    blob: dict[str, Any] = {}
    if lookup.channel_id is not None and lookup.date is not None:
        record = get_dynamic_pricing(session, lookup.product_id, lookup.channel_id, lookup.date)
        if record is not None:
            blob = choice_pricing.parse_choices_pricing(record.choices_pricing)
    if not blob:
        blob = latest_choices_pricing(session, lookup.product_id, lookup.channel_id)

    data, matched_key = choice_pricing.find_choice_pricing_data(lookup.combination, blob)
    return schemas.ChoicePricingLookupResult(
        matched_key=matched_key,
        data=data,
        ota_sale_price=choice_pricing.get_ota_sale_price_with_fallback(lookup.combination, blob),
    )


# Customer helpers


def create_customer(session: Session, customer_in: schemas.CustomerCreate) -> models.Customer:
    customer = models.Customer(**customer_in.model_dump())
    session.add(customer)
    session.flush()
    return customer


def list_customers(session: Session) -> Sequence[models.Customer]:
    return session.scalars(select(models.Customer).order_by(models.Customer.name)).all()


def get_customer(session: Session, customer_id: int) -> models.Customer | None:
    return session.get(models.Customer, customer_id)


def update_customer(
    session: Session, customer: models.Customer, customer_in: schemas.CustomerUpdate
) -> models.Customer:
    for field, value in customer_in.model_dump(exclude_unset=True).items():
        setattr(customer, field, value)
    session.add(customer)
    session.flush()
    return customer


def delete_customer(session: Session, customer: models.Customer) -> None:
    session.delete(customer)
    session.flush()


# Pickup hotel helpers


def create_pickup_hotel(
    session: Session, hotel_in: schemas.PickupHotelCreate
) -> models.PickupHotel:
    hotel = models.PickupHotel(**hotel_in.model_dump())
    session.add(hotel)
    session.flush()
    return hotel


def list_pickup_hotels(session: Session, only_active: bool = False) -> Sequence[models.PickupHotel]:
    statement = select(models.PickupHotel).order_by(models.PickupHotel.hotel)
    if only_active:
        statement = statement.where(models.PickupHotel.is_active.is_(True))
    return session.scalars(statement).all()


def get_pickup_hotel(session: Session, hotel_id: int) -> models.PickupHotel | None:
    return session.get(models.PickupHotel, hotel_id)


def update_pickup_hotel(
    session: Session, hotel: models.PickupHotel, hotel_in: schemas.PickupHotelUpdate
) -> models.PickupHotel:
    for field, value in hotel_in.model_dump(exclude_unset=True).items():
        setattr(hotel, field, value)
    session.add(hotel)
    session.flush()
    return hotel


def set_pickup_hotel_image(
    session: Session, hotel: models.PickupHotel, *, original_path: str, optimized_path: str
) -> models.PickupHotel:
    utils.remove_media_files(hotel.original_image_path, hotel.optimized_image_path)
    hotel.original_image_path = original_path
    hotel.optimized_image_path = optimized_path
    session.add(hotel)
    session.flush()
    return hotel


def delete_pickup_hotel(session: Session, hotel: models.PickupHotel) -> None:
    utils.remove_media_files(hotel.original_image_path, hotel.optimized_image_path)
    session.delete(hotel)
    session.flush()


# Coupon helpers


def _validate_coupon_refs(session: Session, data: dict[str, Any]) -> None:
    if data.get("product_id") is not None and get_product(session, data["product_id"]) is None:
        raise ValueError("Product not found")
    if data.get("channel_id") is not None and get_channel(session, data["channel_id"]) is None:
        raise ValueError("Channel not found")
    start, end = data.get("start_date"), data.get("end_date")
    if start and end and end < start:
        raise ValueError("end_date must not be before start_date")


def _ensure_unique_coupon_code(
    session: Session, code: str, *, exclude_id: Optional[int] = None
) -> None:
    existing = coupons.find_active_coupon(list_coupons(session, status="active"), code)
    if existing is not None and existing.id != exclude_id:
        raise ValueError(f"An active coupon with code '{code}' already exists")


def create_coupon(session: Session, coupon_in: schemas.CouponCreate) -> models.Coupon:
    data = coupon_in.model_dump()
    _validate_coupon_refs(session, data)
    if data["status"] == "active":
        _ensure_unique_coupon_code(session, data["coupon_code"])
    coupon = models.Coupon(**data)
    session.add(coupon)
    session.flush()
    logger.info("coupon %s created", coupon.coupon_code)
    return coupon


def list_coupons(
    session: Session, *, status: Optional[str] = None, search: Optional[str] = None
) -> Sequence[models.Coupon]:
    statement = select(models.Coupon).order_by(models.Coupon.coupon_code)
    if status:
        statement = statement.where(models.Coupon.status == status)
    if search:
        pattern = f"%{search.strip()}%"
        statement = statement.where(
            or_(models.Coupon.coupon_code.ilike(pattern), models.Coupon.description.ilike(pattern))
        )
    return session.scalars(statement).all()


def get_coupon(session: Session, coupon_id: int) -> models.Coupon | None:
    return session.get(models.Coupon, coupon_id)


def update_coupon(
    session: Session, coupon: models.Coupon, coupon_in: schemas.CouponUpdate
) -> models.Coupon:
    changes = coupon_in.model_dump(exclude_unset=True)
    if "coupon_code" in changes:
        changes["coupon_code"] = changes["coupon_code"].strip()
    merged = {
        "product_id": changes.get("product_id"),
        "channel_id": changes.get("channel_id"),
        "start_date": changes.get("start_date", coupon.start_date),
        "end_date": changes.get("end_date", coupon.end_date),
    }
    _validate_coupon_refs(session, merged)
    if changes.get("status", coupon.status) == "active":
        _ensure_unique_coupon_code(
            session, changes.get("coupon_code", coupon.coupon_code), exclude_id=coupon.id
        )
    for field, value in changes.items():
        setattr(coupon, field, value)
    session.add(coupon)
    session.flush()
    return coupon


def delete_coupon(session: Session, coupon: models.Coupon) -> None:
    session.delete(coupon)
    session.flush()


def validate_coupon(
    session: Session, request: schemas.CouponValidationRequest, *, locale: str
) -> schemas.CouponValidationResult:
    return coupons.validate_coupon(
        list_coupons(session, status="active"),
        request.coupon_code,
        request.total_amount,
        request.product_ids,
        today=request.on_date,
        locale=locale,
    )


# Team helpers


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_team_member(
    session: Session, member_in: schemas.TeamMemberCreate
) -> models.TeamMember:
    if get_team_member_by_email(session, member_in.email):
        raise ValueError("A team member with this email already exists")
    data = member_in.model_dump()
    data["email"] = data["email"].lower()
    password = data.pop("password", None)
    member = models.TeamMember(**data)
    if password:
        member.hashed_password = hash_password(password)
    session.add(member)
    session.flush()
    return member


def list_team_members(session: Session) -> Sequence[models.TeamMember]:
    return session.scalars(select(models.TeamMember).order_by(models.TeamMember.email)).all()


def get_team_member_by_email(session: Session, email: str) -> models.TeamMember | None:
    statement = select(models.TeamMember).where(models.TeamMember.email == email.strip().lower())
    return session.scalars(statement).first()


def authenticate_team_member(
    session: Session, email: str, password: str
) -> models.TeamMember | None:
    member = get_team_member_by_email(session, email)
    if not member or not member.is_active or not member.hashed_password:
        return None
    if not verify_password(password, member.hashed_password):
        return None
    return member


def team_display_names(session: Session, emails: Iterable[Optional[str]]) -> dict[str, str]:
    """Map team emails to their Korean display name, falling back to the email."""

    unique = sorted({email for email in emails if email})
    names: dict[str, str] = {}
    for chunk in _chunks(unique):
        statement = select(models.TeamMember).where(models.TeamMember.email.in_(chunk))
        for member in session.scalars(statement):
            names[member.email] = member.name_ko or member.email
    return names


# Reservation helpers


def _reservation_options():
    return (
        selectinload(models.Reservation.pricing),
        selectinload(models.Reservation.payments),
    )


def _validate_reservation_refs(session: Session, data: dict[str, Any]) -> None:
    refs = (
        ("customer_id", models.Customer, "customer"),
        ("product_id", models.Product, "product"),
        ("channel_id", models.Channel, "channel"),
        ("pickup_hotel_id", models.PickupHotel, "pickup hotel"),
    )
    for field, model, label in refs:
        value = data.get(field)
        if value is not None and session.get(model, value) is None:
            raise ValueError(f"Unknown {label} {value}")


def create_reservation(
    session: Session,
    reservation_in: schemas.ReservationCreate,
    *,
    user_email: Optional[str] = None,
) -> models.Reservation:
    data = reservation_in.model_dump()
    _validate_reservation_refs(session, data)
    if not data.get("added_by"):
        data["added_by"] = user_email
    reservation = models.Reservation(**data)
    reservation.total_people = reservation.adults + reservation.child + reservation.infant
    session.add(reservation)
    session.flush()
    record_audit(
        session,
        table_name="reservations",
        record_id=reservation.id,
        action="INSERT",
        new_values=audit.snapshot(reservation),
        user_email=user_email,
    )
    return reservation


def list_reservations(
    session: Session,
    *,
    status: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    customer_id: Optional[int] = None,
    product_id: Optional[int] = None,
) -> Sequence[models.Reservation]:
    statement = select(models.Reservation).options(*_reservation_options())
    if status:
        statement = statement.where(models.Reservation.status == status.strip().lower())
    if start is not None:
        statement = statement.where(models.Reservation.tour_date >= start)
    if end is not None:
        statement = statement.where(models.Reservation.tour_date <= end)
    if customer_id is not None:
        statement = statement.where(models.Reservation.customer_id == customer_id)
    if product_id is not None:
        statement = statement.where(models.Reservation.product_id == product_id)
    statement = statement.order_by(models.Reservation.tour_date, models.Reservation.id)
    return session.scalars(statement).unique().all()


def get_reservation(session: Session, reservation_id: int) -> models.Reservation | None:
    statement = (
        select(models.Reservation)
        .where(models.Reservation.id == reservation_id)
        .options(
            *_reservation_options(),
            selectinload(models.Reservation.customer),
            selectinload(models.Reservation.product),
            selectinload(models.Reservation.channel),
            selectinload(models.Reservation.pickup_hotel),
        )
    )
    return session.scalars(statement).unique().first()


def _apply_reservation_changes(
    session: Session,
    reservation: models.Reservation,
    changes: dict[str, Any],
    user_email: Optional[str],
) -> models.Reservation:
    before = audit.snapshot(reservation)
    for field, value in changes.items():
        setattr(reservation, field, value)
    reservation.total_people = (
        (reservation.adults or 0) + (reservation.child or 0) + (reservation.infant or 0)
    )
    if reservation.pricing is not None:
        utils.apply_pricing_totals(reservation.pricing, reservation, explicit_commission=True)
    session.add(reservation)
    session.flush()
    record_audit(
        session,
        table_name="reservations",
        record_id=reservation.id,
        action="UPDATE",
        old_values=before,
        new_values=audit.snapshot(reservation),
        user_email=user_email,
    )
    return reservation


def update_reservation(
    session: Session,
    reservation: models.Reservation,
    reservation_in: schemas.ReservationUpdate,
    *,
    user_email: Optional[str] = None,
) -> models.Reservation:
    data = reservation_in.model_dump(exclude_unset=True)
    _validate_reservation_refs(session, data)
    return _apply_reservation_changes(session, reservation, data, user_email)


def delete_reservation(
    session: Session, reservation: models.Reservation, *, user_email: Optional[str] = None
) -> None:
    before = audit.snapshot(reservation)
    reservation_id = reservation.id
    session.delete(reservation)
    session.flush()
    record_audit(
        session,
        table_name="reservations",
        record_id=reservation_id,
        action="DELETE",
        old_values=before,
        user_email=user_email,
    )


def upsert_reservation_pricing(
    session: Session,
    reservation: models.Reservation,
    pricing_in: schemas.ReservationPricingUpsert,
) -> models.ReservationPricing:
    data = pricing_in.model_dump()
    coupon_code = (data.pop("coupon_code", None) or "").strip()
    explicit_commission = data.get("commission_amount") is not None
    if data.get("commission_percent") is None:
        channel = reservation.channel or (
            get_channel(session, reservation.channel_id) if reservation.channel_id else None
        )
        data["commission_percent"] = channel.commission_percent if channel else Decimal("0")
    if not explicit_commission:
        data.pop("commission_amount", None)

    data["coupon_code"] = None
    if coupon_code:
        subtotal = utils.product_price_total(
            reservation,
            data["adult_product_price"],
            data["child_product_price"],
            data["infant_product_price"],
        ).quantize(utils.CENTS)
        result = coupons.validate_coupon(
            list_coupons(session, status="active"),
            coupon_code,
            subtotal,
            [reservation.product_id] if reservation.product_id else [],
            locale="en",
        )
        if not result.valid:
            raise ValueError(result.error)
        data["coupon_code"] = result.coupon.coupon_code
        # A coupon never takes the product total below zero.
        data["coupon_discount"] = min(result.discount_amount, subtotal)

    pricing = reservation.pricing
    if pricing is None:
        pricing = models.ReservationPricing(reservation=reservation)
    for field, value in data.items():
        setattr(pricing, field, value)

    utils.apply_pricing_totals(pricing, reservation, explicit_commission=explicit_commission)
    session.add(pricing)
    session.flush()
    return pricing


def add_payment_record(
    session: Session,
    reservation: models.Reservation,
    payment_in: schemas.PaymentRecordCreate,
) -> models.PaymentRecord:
    payment = models.PaymentRecord(reservation_id=reservation.id, **payment_in.model_dump())
    reservation.payments.append(payment)
    session.add(payment)
    session.flush()
    if reservation.pricing is not None:
        utils.apply_pricing_totals(reservation.pricing, reservation, explicit_commission=True)
        session.flush()
    return payment


def list_payment_records(
    session: Session, reservation_id: int
) -> Sequence[models.PaymentRecord]:
    statement = (
        select(models.PaymentRecord)
        .where(models.PaymentRecord.reservation_id == reservation_id)
        .order_by(models.PaymentRecord.submitted_on, models.PaymentRecord.id)
    )
    return session.scalars(statement).all()


def reservation_ids_with_payments(session: Session, reservation_ids: Sequence[int]) -> set[int]:
    found: set[int] = set()
    for chunk in _chunks(list(reservation_ids)):
        statement = select(models.PaymentRecord.reservation_id).where(
            models.PaymentRecord.reservation_id.in_(chunk)
        )
        found.update(session.scalars(statement).all())
    return found


def action_required(
    session: Session, today: Optional[date] = None
) -> dict[str, list[models.Reservation]]:
    reservations = [
        reservation
        for reservation in list_reservations(session)
        if (reservation.status or "").lower() not in CANCELLED_STATUSES
    ]
    pricing_map = {
        reservation.id: reservation.pricing
        for reservation in reservations
        if reservation.pricing is not None
    }
    payment_ids = reservation_ids_with_payments(
        session, [reservation.id for reservation in reservations]
    )
    products = {product.id: product for product in list_products(session)}
    return classify_reservations(
        reservations,
        pricing_map,
        payment_ids,
        products,
        option_choice_map(session),
        today=today,
    )


# Follow-up helpers


def list_follow_ups(session: Session, reservation_id: int) -> Sequence[models.ReservationFollowUp]:
    statement = (
        select(models.ReservationFollowUp)
        .where(models.ReservationFollowUp.reservation_id == reservation_id)
        .order_by(desc(models.ReservationFollowUp.created_at), desc(models.ReservationFollowUp.id))
    )
    return session.scalars(statement).all()


def save_cancellation_reason(
    session: Session,
    reservation: models.Reservation,
    content: Optional[str],
    *,
    user_email: Optional[str] = None,
) -> models.ReservationFollowUp:
    trimmed = (content or "").strip() or None
    existing = next(
        (row for row in list_follow_ups(session, reservation.id) if row.type == "cancellation_reason"),
        None,
    )
    if existing is None:
        existing = models.ReservationFollowUp(
            reservation_id=reservation.id,
            type="cancellation_reason",
            created_by=user_email,
        )
    existing.content = trimmed
    session.add(existing)
    session.flush()
    return existing


def add_contact_log(
    session: Session,
    reservation: models.Reservation,
    content: str,
    *,
    user_email: Optional[str] = None,
) -> models.ReservationFollowUp:
    content = content.strip()
    if not content:
        raise ValueError("Contact content must not be empty")
    row = models.ReservationFollowUp(
        reservation_id=reservation.id,
        type="contact",
        content=content,
        created_by=user_email,
    )
    session.add(row)
    session.flush()
    return row


def list_reservation_history(
    session: Session, reservation_id: int, limit: int = AUDIT_HISTORY_LIMIT
) -> Sequence[models.AuditLog]:
    statement = (
        select(models.AuditLog)
        .where(
            models.AuditLog.table_name == "reservations",
            models.AuditLog.record_id == str(reservation_id),
        )
        .order_by(desc(models.AuditLog.created_at), desc(models.AuditLog.id))
        .limit(limit)
    )
    return session.scalars(statement).all()


def reservation_edit_history(
    session: Session, reservation_id: int, locale: str
) -> list[schemas.EditHistoryEntry]:
    entries = list_reservation_history(session, reservation_id)
    names = team_display_names(session, [entry.user_email for entry in entries])
    history: list[schemas.EditHistoryEntry] = []
    for entry in entries:
        changed = entry.changed_fields if isinstance(entry.changed_fields, list) else []
        history.append(
            schemas.EditHistoryEntry(
                id=entry.id,
                action=entry.action,
                summary=audit.edit_history_summary(entry.action, changed, locale),
                changed_fields=changed,
                changes=[
                    schemas.AuditChange(**change)
                    for change in audit.format_changes(
                        changed, entry.old_values, entry.new_values, locale
                    )
                ],
                user_email=entry.user_email,
                user_name=names.get(entry.user_email, entry.user_email) if entry.user_email else None,
                created_at=entry.created_at,
            )
        )
    return history


def reservation_choice_labels(reservation: models.Reservation, locale: str) -> list[str]:
    product = reservation.product
    groups = choice_pricing.choice_groups_from_product(product.choices if product else None)
    return choice_pricing.describe_selected_choices(reservation.choices, groups, locale)


def follow_up_overview(
    session: Session, reservation: models.Reservation, locale: str
) -> schemas.FollowUpOverview:
    rows = list_follow_ups(session, reservation.id)
    names = team_display_names(session, [row.created_by for row in rows])

    def to_schema(row: models.ReservationFollowUp) -> schemas.FollowUp:
        follow_up = schemas.FollowUp.model_validate(row)
        if row.created_by:
            follow_up.created_by_name = names.get(row.created_by, row.created_by)
        return follow_up

    reason = next((row for row in rows if row.type == "cancellation_reason"), None)
    status = (reservation.status or "").lower()
    return schemas.FollowUpOverview(
        reservation_id=reservation.id,
        status=status,
        is_cancelled=status in {"cancelled", "canceled"},
        cancellation_reason=to_schema(reason) if reason else None,
        contacts=[to_schema(row) for row in rows if row.type == "contact"],
        cancellation_presets=CANCELLATION_REASON_PRESETS.get(locale, []),
    )


# Tour helpers


def create_tour(
    session: Session, tour_in: schemas.TourCreate, *, user_email: Optional[str] = None
) -> models.Tour:
    data = tour_in.model_dump()
    reservation_ids = data.pop("reservation_ids", [])
    tour = models.Tour(**data)
    session.add(tour)
    session.flush()
    if reservation_ids:
        assign_reservations(session, tour, reservation_ids, user_email=user_email)
    return tour


def create_tour_from_reservation(
    session: Session, reservation: models.Reservation, *, user_email: Optional[str] = None
) -> models.Tour:
    if reservation.tour_date is None:
        raise ValueError("Reservation has no tour date")
    tour = models.Tour(product_id=reservation.product_id, tour_date=reservation.tour_date)
    session.add(tour)
    session.flush()
    assign_reservations(session, tour, [reservation.id], user_email=user_email)
    return tour


def list_tours(
    session: Session, *, start: Optional[date] = None, end: Optional[date] = None
) -> Sequence[models.Tour]:
    statement = select(models.Tour).options(selectinload(models.Tour.reservations))
    if start is not None:
        statement = statement.where(models.Tour.tour_date >= start)
    if end is not None:
        statement = statement.where(models.Tour.tour_date <= end)
    statement = statement.order_by(models.Tour.tour_date, models.Tour.id)
    return session.scalars(statement).unique().all()


def get_tour(session: Session, tour_id: int) -> models.Tour | None:
    statement = (
        select(models.Tour)
        .where(models.Tour.id == tour_id)
        .options(selectinload(models.Tour.reservations))
    )
    return session.scalars(statement).unique().first()


def update_tour(session: Session, tour: models.Tour, tour_in: schemas.TourUpdate) -> models.Tour:
    for field, value in tour_in.model_dump(exclude_unset=True).items():
        setattr(tour, field, value)
    session.add(tour)
    session.flush()
    return tour


def assign_reservations(
    session: Session,
    tour: models.Tour,
    reservation_ids: Iterable[int],
    *,
    user_email: Optional[str] = None,
) -> models.Tour:
    reservation_ids = list(dict.fromkeys(reservation_ids))
    reservations = {
        reservation.id: reservation
        for reservation in session.scalars(
            select(models.Reservation).where(models.Reservation.id.in_(reservation_ids))
        )
    }
    missing = [rid for rid in reservation_ids if rid not in reservations]
    if missing:
        raise ValueError(f"Unknown reservation ids: {sorted(missing)}")
    for rid in reservation_ids:
        _apply_reservation_changes(session, reservations[rid], {"tour_id": tour.id}, user_email)
    session.refresh(tour)
    return tour


def unassign_reservation(
    session: Session,
    tour: models.Tour,
    reservation: models.Reservation,
    *,
    user_email: Optional[str] = None,
) -> models.Tour:
    if reservation.tour_id != tour.id:
        raise ValueError("Reservation is not assigned to this tour")
    _apply_reservation_changes(session, reservation, {"tour_id": None}, user_email)
    session.refresh(tour)
    return tour


def delete_tour(session: Session, tour: models.Tour, *, user_email: Optional[str] = None) -> None:
    for reservation in list(tour.reservations):
        _apply_reservation_changes(session, reservation, {"tour_id": None}, user_email)
    session.delete(tour)
    session.flush()


def tour_detail(session: Session, tour: models.Tour) -> schemas.TourDetail:
    active = [
        reservation
        for reservation in tour.reservations
        if (reservation.status or "").lower() not in CANCELLED_STATUSES
    ]
    names = team_display_names(session, [tour.guide_email, tour.assistant_email])
    detail = schemas.TourDetail.model_validate(tour)
    return detail.model_copy(
        update={
            "reservation_ids": sorted(reservation.id for reservation in tour.reservations),
            "total_people": sum(reservation.total_people or 0 for reservation in active),
            "guide_name": names.get(tour.guide_email, tour.guide_email) if tour.guide_email else None,
            "assistant_name": names.get(tour.assistant_email, tour.assistant_email) if tour.assistant_email else None,
            "is_assigned": bool(tour.guide_email),
        }
    )


# Reporting


def reservation_status_report(session: Session) -> dict[str, Any]:
    reservations = list_reservations(session)
    counts: dict[str, int] = {}
    for reservation in reservations:
        status = (reservation.status or "unknown").lower()
        if status == "canceled":
            status = "cancelled"
        counts[status] = counts.get(status, 0) + 1
    return {"counts": counts, "total": len(reservations)}


def channel_sales_report(
    session: Session, *, start: Optional[date] = None, end: Optional[date] = None
) -> dict[str, Any]:
    channels = {channel.id: channel.name for channel in list_channels(session)}
    summary: dict[str, dict[str, float]] = {}
    for reservation in list_reservations(session, start=start, end=end):
        if (reservation.status or "").lower() in CANCELLED_STATUSES:
            continue
        name = channels.get(reservation.channel_id, "unassigned")
        bucket = summary.setdefault(
            name, {"reservations": 0, "total_price": 0.0, "commission": 0.0}
        )
        bucket["reservations"] += 1
        if reservation.pricing is not None:
            bucket["total_price"] += float(reservation.pricing.total_price or 0)
            bucket["commission"] += float(reservation.pricing.commission_amount or 0)
    for bucket in summary.values():
        bucket["total_price"] = round(bucket["total_price"], 2)
        bucket["commission"] = round(bucket["commission"], 2)
    return {"channels": summary}

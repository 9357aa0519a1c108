"""SQLAlchemy models for the tour operations backend."""
from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


class TimestampMixin:
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Channel(Base, TimestampMixin):
    __tablename__ = "channels"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False, unique=True)
    type = Column(String(50), nullable=False, default="ota", doc="Sales channel kind e.g. ota, self, partner")
    commission_percent = Column(Numeric(5, 2), nullable=False, default=0)
    favicon_url = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    reservations = relationship("Reservation", back_populates="channel")
    pricing = relationship("DynamicPricing", back_populates="channel", cascade="all, delete-orphan")


class Product(Base, TimestampMixin):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), nullable=False)
    name_ko = Column(String(150), nullable=True)
    sub_category = Column(String(100), nullable=True)
    base_price = Column(Numeric(10, 2), nullable=True)
    status = Column(String(30), nullable=False, default="active")
    choices = Column(JSON(none_as_null=True), nullable=True, doc="Required choice groups as {'required': [...]}")

    options = relationship("ProductOption", back_populates="product", cascade="all, delete-orphan")
    pricing = relationship("DynamicPricing", back_populates="product", cascade="all, delete-orphan")
    reservations = relationship("Reservation", back_populates="product")
    tours = relationship("Tour", back_populates="product")


class ProductOption(Base, TimestampMixin):
    __tablename__ = "product_options"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(150), nullable=False)
    is_required = Column(Boolean, nullable=False, default=False)

    product = relationship("Product", back_populates="options")
    choices = relationship("OptionChoice", back_populates="option", cascade="all, delete-orphan")


class OptionChoice(Base, TimestampMixin):
    __tablename__ = "option_choices"

    id = Column(Integer, primary_key=True, index=True)
    option_id = Column(Integer, ForeignKey("product_options.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(150), nullable=False)
    adult_price_adjustment = Column(Numeric(10, 2), nullable=True)
    child_price_adjustment = Column(Numeric(10, 2), nullable=True)
    infant_price_adjustment = Column(Numeric(10, 2), nullable=True)

    option = relationship("ProductOption", back_populates="choices")


class DynamicPricing(Base, TimestampMixin):
    __tablename__ = "dynamic_pricing"

    __table_args__ = (
        UniqueConstraint("product_id", "channel_id", "date", name="uq_pricing_product_channel_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    channel_id = Column(Integer, ForeignKey("channels.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False, index=True)
    adult_price = Column(Numeric(10, 2), nullable=False, default=0)
    child_price = Column(Numeric(10, 2), nullable=False, default=0)
    infant_price = Column(Numeric(10, 2), nullable=False, default=0)
    commission_percent = Column(Numeric(5, 2), nullable=False, default=0)
    markup_amount = Column(Numeric(10, 2), nullable=False, default=0)
    not_included_price = Column(Numeric(10, 2), nullable=True)
    is_sale_available = Column(Boolean, nullable=False, default=True)
    choices_pricing = Column(
        JSON(none_as_null=True), nullable=True, doc="Per-combination prices keyed by combination key"
    )

    product = relationship("Product", back_populates="pricing")
    channel = relationship("Channel", back_populates="pricing")


class Coupon(Base, TimestampMixin):
    __tablename__ = "coupons"

    __table_args__ = (
        CheckConstraint(
            "discount_type IS NULL OR discount_type IN ('percentage', 'fixed')",
            name="ck_coupon_discount_type",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    coupon_code = Column(String(60), nullable=False, index=True)
    discount_type = Column(String(20), nullable=True, doc="percentage or fixed; empty combines both values")
    percentage_value = Column(Numeric(5, 2), nullable=True)
    fixed_value = Column(Numeric(10, 2), nullable=True)
    status = Column(String(20), nullable=False, default="active")
    description = Column(Text, nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    channel_id = Column(Integer, ForeignKey("channels.id", ondelete="SET NULL"), nullable=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)


class Customer(Base, TimestampMixin):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    email = Column(String(120), nullable=True, index=True)
    phone = Column(String(50), nullable=True)
    language = Column(String(10), nullable=True)
    channel_id = Column(Integer, ForeignKey("channels.id"), nullable=True)
    notes = Column(Text, nullable=True)

    reservations = relationship("Reservation", back_populates="customer")


class PickupHotel(Base, TimestampMixin):
    __tablename__ = "pickup_hotels"

    id = Column(Integer, primary_key=True, index=True)
    hotel = Column(String(150), nullable=False)
    name_ko = Column(String(150), nullable=True)
    pick_up_location = Column(String(200), nullable=True)
    address = Column(String(255), nullable=True)
    original_image_path = Column(String(255), nullable=True)
    optimized_image_path = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    reservations = relationship("Reservation", back_populates="pickup_hotel")


class TeamMember(Base, TimestampMixin):
    __tablename__ = "team_members"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(120), nullable=False, unique=True)
    name_ko = Column(String(120), nullable=True)
    name_en = Column(String(120), nullable=True)
    position = Column(String(50), nullable=False, default="guide")
    phone = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    hashed_password = Column(String(255), nullable=True)


class Tour(Base, TimestampMixin):
    __tablename__ = "tours"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)
    tour_date = Column(Date, nullable=False, index=True)
    tour_start_datetime = Column(DateTime, nullable=True)
    status = Column(String(30), nullable=False, default="scheduled")
    guide_email = Column(String(120), nullable=True)
    assistant_email = Column(String(120), nullable=True)
    vehicle_name = Column(String(120), nullable=True)

    product = relationship("Product", back_populates="tours")
    reservations = relationship("Reservation", back_populates="tour")


class Reservation(Base, TimestampMixin):
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)
    channel_id = Column(Integer, ForeignKey("channels.id"), nullable=True)
    channel_rn = Column(String(120), nullable=True, doc="Reservation number issued by the channel")
    tour_date = Column(Date, nullable=True, index=True)
    tour_time = Column(String(20), nullable=True)
    pickup_hotel_id = Column(Integer, ForeignKey("pickup_hotels.id"), nullable=True)
    pickup_time = Column(String(20), nullable=True)
    adults = Column(Integer, nullable=False, default=0)
    child = Column(Integer, nullable=False, default=0)
    infant = Column(Integer, nullable=False, default=0)
    total_people = Column(Integer, nullable=False, default=0)
    status = Column(String(30), nullable=False, default="pending")
    event_note = Column(Text, nullable=True)
    is_private_tour = Column(Boolean, nullable=False, default=False)
    selected_options = Column(JSON(none_as_null=True), nullable=True, doc="Option id -> list of chosen option choice ids")
    selected_option_prices = Column(JSON(none_as_null=True), nullable=True)
    choices = Column(JSON(none_as_null=True), nullable=True)
    added_by = Column(String(120), nullable=True)
    tour_id = Column(Integer, ForeignKey("tours.id", ondelete="SET NULL"), nullable=True)

    customer = relationship("Customer", back_populates="reservations")
    product = relationship("Product", back_populates="reservations")
    channel = relationship("Channel", back_populates="reservations")
    pickup_hotel = relationship("PickupHotel", back_populates="reservations")
    tour = relationship("Tour", back_populates="reservations")
    pricing = relationship(
        "ReservationPricing",
        back_populates="reservation",
        uselist=False,
        cascade="all, delete-orphan",
    )
    payments = relationship(
        "PaymentRecord", back_populates="reservation", cascade="all, delete-orphan"
    )
    follow_ups = relationship(
        "ReservationFollowUp", back_populates="reservation", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("adults >= 0 AND child >= 0 AND infant >= 0", name="ck_reservation_party"),
    )


class ReservationPricing(Base, TimestampMixin):
    __tablename__ = "reservation_pricing"

    id = Column(Integer, primary_key=True, index=True)
    reservation_id = Column(
        Integer, ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    adult_product_price = Column(Numeric(10, 2), nullable=False, default=0)
    child_product_price = Column(Numeric(10, 2), nullable=False, default=0)
    infant_product_price = Column(Numeric(10, 2), nullable=False, default=0)
    product_price_total = Column(Numeric(10, 2), nullable=False, default=0)
    coupon_code = Column(String(60), nullable=True)
    coupon_discount = Column(Numeric(10, 2), nullable=False, default=0)
    additional_discount = Column(Numeric(10, 2), nullable=False, default=0)
    additional_cost = Column(Numeric(10, 2), nullable=False, default=0)
    commission_percent = Column(Numeric(5, 2), nullable=False, default=0)
    commission_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total_price = Column(Numeric(10, 2), nullable=True)
    deposit_amount = Column(Numeric(10, 2), nullable=False, default=0)
    balance_amount = Column(Numeric(10, 2), nullable=True)
    currency = Column(String(10), nullable=False, default="USD")

    reservation = relationship("Reservation", back_populates="pricing")


class PaymentRecord(Base, TimestampMixin):
    __tablename__ = "payment_records"

    id = Column(Integer, primary_key=True, index=True)
    reservation_id = Column(
        Integer, ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String(50), nullable=True)
    status = Column(String(30), nullable=False, default="pending")
    submitted_on = Column(Date, default=date.today, nullable=False)
    submitted_by = Column(String(120), nullable=True)
    note = Column(Text, nullable=True)

    reservation = relationship("Reservation", back_populates="payments")


class ReservationFollowUp(Base, TimestampMixin):
    __tablename__ = "reservation_follow_ups"

    id = Column(Integer, primary_key=True, index=True)
    reservation_id = Column(
        Integer, ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type = Column(String(40), nullable=False, doc="cancellation_reason or contact")
    content = Column(Text, nullable=True)
    created_by = Column(String(120), nullable=True)

    reservation = relationship("Reservation", back_populates="follow_ups")


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    table_name = Column(String(80), nullable=False, index=True)
    record_id = Column(String(80), nullable=False, index=True)
    action = Column(String(10), nullable=False)
    changed_fields = Column(JSON(none_as_null=True), nullable=True)
    old_values = Column(JSON(none_as_null=True), nullable=True)
    new_values = Column(JSON(none_as_null=True), nullable=True)
    user_email = Column(String(120), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

"""Pydantic schemas powering the tour operations API."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
)


# Alias so fields named "date" do not shadow the type during annotation evaluation.
PricingDate = date


class TimestampMixin(BaseModel):
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Catalog


class ChannelBase(BaseModel):
    name: str
    type: str = Field("ota", description="Sales channel kind e.g. ota, self, partner")
    commission_percent: Decimal = Field(Decimal("0"), ge=0, le=100)
    favicon_url: Optional[str] = None
    is_active: bool = True


class ChannelCreate(ChannelBase):
    pass


class ChannelUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None
    commission_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    favicon_url: Optional[str] = None
    is_active: Optional[bool] = None


class Channel(ChannelBase, TimestampMixin):
    id: int


class ChoiceOption(BaseModel):
    id: str
    name: str
    name_ko: Optional[str] = None
    is_default: bool = False
    adult_price: Optional[float] = 0
    child_price: Optional[float] = 0
    infant_price: Optional[float] = 0

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, value: Any) -> str:
        return str(value)


class ChoiceGroup(BaseModel):
    id: str
    name: str
    name_ko: Optional[str] = None
    description: Optional[str] = None
    options: List[ChoiceOption] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, value: Any) -> str:
        return str(value)


class CombinationDetail(BaseModel):
    """One group/option pair of a combination; legacy rows use camelCase keys."""

    group_id: Optional[str] = Field(None, validation_alias=AliasChoices("group_id", "groupId"))
    option_id: Optional[str] = Field(None, validation_alias=AliasChoices("option_id", "optionId"))
    option_key: Optional[str] = Field(
        None, validation_alias=AliasChoices("option_key", "optionKey")
    )

    model_config = ConfigDict(populate_by_name=True)


class ChoiceCombination(BaseModel):
    id: str
    combination_key: Optional[str] = None
    combination_details: List[CombinationDetail] = Field(default_factory=list)
    combination_name: Optional[str] = None
    combination_name_ko: Optional[str] = None
    adult_price: float = 0
    child_price: float = 0
    infant_price: float = 0
    ota_sale_price: Optional[float] = None
    is_active: bool = True


class ProductBase(BaseModel):
    name: str
    name_ko: Optional[str] = None
    sub_category: Optional[str] = None
    base_price: Optional[Decimal] = Field(None, ge=0)
    status: str = "active"
    choices: Optional[Dict[str, Any]] = Field(
        None, description="Choice groups as {'required': [group, ...]}"
    )


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    name_ko: Optional[str] = None
    sub_category: Optional[str] = None
    base_price: Optional[Decimal] = Field(None, ge=0)
    status: Optional[str] = None
    choices: Optional[Dict[str, Any]] = None


class Product(ProductBase, TimestampMixin):
    id: int


class OptionChoiceBase(BaseModel):
    name: str
    adult_price_adjustment: Optional[Decimal] = None
    child_price_adjustment: Optional[Decimal] = None
    infant_price_adjustment: Optional[Decimal] = None


class OptionChoiceCreate(OptionChoiceBase):
    pass


class OptionChoice(OptionChoiceBase, TimestampMixin):
    id: int
    option_id: int


class ProductOptionCreate(BaseModel):
    name: str
    is_required: bool = False
    choices: List[OptionChoiceCreate] = Field(default_factory=list)


class ProductOption(TimestampMixin):
    id: int
    product_id: int
    name: str
    is_required: bool
    choices: List[OptionChoice] = Field(default_factory=list)


# Dynamic pricing


class DynamicPricingBase(BaseModel):
    product_id: int
    channel_id: int
    date: PricingDate
    adult_price: Decimal = Decimal("0")
    child_price: Decimal = Decimal("0")
    infant_price: Decimal = Decimal("0")
    commission_percent: Decimal = Field(Decimal("0"), ge=0, le=100)
    markup_amount: Decimal = Decimal("0")
    not_included_price: Optional[Decimal] = None
    is_sale_available: bool = True
    choices_pricing: Optional[Union[Dict[str, Any], str]] = None


class DynamicPricingUpsert(DynamicPricingBase):
    pass


class DynamicPricing(DynamicPricingBase, TimestampMixin):
    id: int


class ChoiceMigrationRequest(BaseModel):
    combinations: List[ChoiceCombination]
    channel_id: Optional[int] = Field(
        None, description="Restrict the rewrite to one channel's pricing rows"
    )


class ChoiceMigrationResult(BaseModel):
    choices_pricing: Dict[str, Any]
    updated_records: int


class ChoicePricingLookupRequest(BaseModel):
    product_id: int
    channel_id: Optional[int] = None
    date: Optional[PricingDate] = None
    combination: ChoiceCombination


class ChoicePricingLookupResult(BaseModel):
    matched_key: Optional[str] = None
    data: Any = Field(default_factory=dict)
    ota_sale_price: float = 0


class CombinationPriceUpdate(BaseModel):
    combinations: List[ChoiceCombination]
    combination_id: str
    price_type: Literal["adult_price", "child_price", "infant_price"]
    value: float


# Customers and pickup hotels


class CustomerBase(BaseModel):
    name: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    language: Optional[str] = Field(None, description="Preferred language code e.g. ko, en")
    channel_id: Optional[int] = None
    notes: Optional[str] = None


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    language: Optional[str] = None
    channel_id: Optional[int] = None
    notes: Optional[str] = None


class Customer(CustomerBase, TimestampMixin):
    id: int


class PickupHotelBase(BaseModel):
    hotel: str
    name_ko: Optional[str] = None
    pick_up_location: Optional[str] = None
    address: Optional[str] = None
    is_active: bool = True


class PickupHotelCreate(PickupHotelBase):
    pass


class PickupHotelUpdate(BaseModel):
    hotel: Optional[str] = None
    name_ko: Optional[str] = None
    pick_up_location: Optional[str] = None
    address: Optional[str] = None
    is_active: Optional[bool] = None


class PickupHotel(PickupHotelBase, TimestampMixin):
    id: int
    original_image_path: Optional[str] = None
    optimized_image_path: Optional[str] = None


# Coupons


class CouponBase(BaseModel):
    coupon_code: str = Field(..., min_length=1, max_length=60)
    discount_type: Optional[Literal["percentage", "fixed"]] = None
    percentage_value: Optional[Decimal] = Field(None, ge=0, le=100)
    fixed_value: Optional[Decimal] = Field(None, ge=0)
    status: Literal["active", "inactive"] = "active"
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    channel_id: Optional[int] = None
    product_id: Optional[int] = None

    @field_validator("coupon_code")
    @classmethod
    def strip_code(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Coupon code cannot be blank")
        return value


class CouponCreate(CouponBase):
    pass


class CouponUpdate(BaseModel):
    coupon_code: Optional[str] = Field(None, min_length=1, max_length=60)
    discount_type: Optional[Literal["percentage", "fixed"]] = None
    percentage_value: Optional[Decimal] = Field(None, ge=0, le=100)
    fixed_value: Optional[Decimal] = Field(None, ge=0)
    status: Optional[Literal["active", "inactive"]] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    channel_id: Optional[int] = None
    product_id: Optional[int] = None

    @field_validator("coupon_code", "status", mode="before")
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class Coupon(CouponBase, TimestampMixin):
    id: int


class CouponSummary(BaseModel):
    id: int
    coupon_code: str
    discount_type: Optional[str] = None
    percentage_value: Optional[Decimal] = None
    fixed_value: Optional[Decimal] = None
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CouponValidationRequest(BaseModel):
    coupon_code: Optional[str] = Field(None, validation_alias=AliasChoices("coupon_code", "couponCode"))
    total_amount: Decimal = Field(
        Decimal("0"), validation_alias=AliasChoices("total_amount", "totalAmount")
    )
    product_ids: List[int] = Field(
        default_factory=list, validation_alias=AliasChoices("product_ids", "productIds")
    )
    on_date: Optional[date] = Field(None, description="Defaults to today")


class CouponValidationResult(BaseModel):
    valid: bool
    error_code: Optional[str] = None
    error: Optional[str] = None
    discount_amount: Decimal = Decimal("0")
    final_amount: Optional[Decimal] = None
    coupon: Optional[CouponSummary] = None


# Reservations


class ReservationBase(BaseModel):
    customer_id: Optional[int] = None
    product_id: Optional[int] = None
    channel_id: Optional[int] = None
    channel_rn: Optional[str] = None
    tour_date: Optional[date] = None
    tour_time: Optional[str] = None
    pickup_hotel_id: Optional[int] = None
    pickup_time: Optional[str] = None
    adults: int = Field(1, ge=0)
    child: int = Field(0, ge=0)
    infant: int = Field(0, ge=0)
    status: str = Field("pending", description="pending, confirmed, completed or cancelled")
    event_note: Optional[str] = None
    is_private_tour: bool = False
    selected_options: Optional[Dict[str, List[Any]]] = None
    selected_option_prices: Optional[Dict[str, Any]] = None
    choices: Optional[Dict[str, Any]] = None
    added_by: Optional[str] = None

    @field_validator("status")
    @classmethod
    def normalize_status(cls, value: str) -> str:
        return value.strip().lower()


class ReservationCreate(ReservationBase):
    pass


class ReservationUpdate(BaseModel):
    customer_id: Optional[int] = None
    product_id: Optional[int] = None
    channel_id: Optional[int] = None
    channel_rn: Optional[str] = None
    tour_date: Optional[date] = None
    tour_time: Optional[str] = None
    pickup_hotel_id: Optional[int] = None
    pickup_time: Optional[str] = None
    adults: Optional[int] = Field(None, ge=0)
    child: Optional[int] = Field(None, ge=0)
    infant: Optional[int] = Field(None, ge=0)
    status: Optional[str] = None
    event_note: Optional[str] = None
    is_private_tour: Optional[bool] = None
    selected_options: Optional[Dict[str, List[Any]]] = None
    selected_option_prices: Optional[Dict[str, Any]] = None
    choices: Optional[Dict[str, Any]] = None

    @field_validator("adults", "child", "infant", "status", "is_private_tour", mode="before")
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        # These columns are NOT NULL; leave the field out to keep the stored value.
        if value is None:
            raise ValueError("may be omitted but not null")
        return value

    @field_validator("status")
    @classmethod
    def normalize_status(cls, value: Optional[str]) -> Optional[str]:
        return value.strip().lower() if value is not None else None


class ReservationPricingUpsert(BaseModel):
    adult_product_price: Decimal = Decimal("0")
    child_product_price: Decimal = Decimal("0")
    infant_product_price: Decimal = Decimal("0")
    coupon_code: Optional[str] = Field(
        None, description="When given, the coupon discount is computed from the coupon"
    )
    coupon_discount: Decimal = Field(Decimal("0"), ge=0)
    additional_discount: Decimal = Field(Decimal("0"), ge=0)
    additional_cost: Decimal = Field(Decimal("0"), ge=0)
    commission_percent: Optional[Decimal] = Field(
        None, ge=0, le=100, description="Defaults to the reservation channel's commission"
    )
    commission_amount: Optional[Decimal] = Field(
        None, description="Overrides the computed commission when given"
    )
    deposit_amount: Decimal = Field(Decimal("0"), ge=0)
    currency: str = "USD"


class ReservationPricing(BaseModel):
    reservation_id: int
    adult_product_price: Decimal
    child_product_price: Decimal
    infant_product_price: Decimal
    product_price_total: Decimal
    coupon_code: Optional[str] = None
    coupon_discount: Decimal
    additional_discount: Decimal
    additional_cost: Decimal
    commission_percent: Decimal
    commission_amount: Decimal
    total_price: Optional[Decimal] = None
    deposit_amount: Decimal
    balance_amount: Optional[Decimal] = None
    currency: str

    model_config = ConfigDict(from_attributes=True)


class Reservation(ReservationBase, TimestampMixin):
    id: int
    total_people: int
    tour_id: Optional[int] = None
    pricing: Optional[ReservationPricing] = None


class PaymentRecordCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payment_method: Optional[str] = None
    status: str = Field("pending", description="pending, received, confirmed or refunded")
    submitted_on: date = Field(default_factory=date.today)
    submitted_by: Optional[str] = None
    note: Optional[str] = None


class PaymentRecord(PaymentRecordCreate, TimestampMixin):
    id: int
    reservation_id: int


# Follow-up and edit history


class CancellationReasonUpdate(BaseModel):
    content: Optional[str] = None


class ContactLogCreate(BaseModel):
    content: str

    @field_validator("content")
    @classmethod
    def require_content(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("content must not be empty")
        return value


class FollowUp(TimestampMixin):
    id: int
    reservation_id: int
    type: str
    content: Optional[str] = None
    created_by: Optional[str] = None
    created_by_name: Optional[str] = None


class FollowUpOverview(BaseModel):
    reservation_id: int
    status: str
    is_cancelled: bool
    cancellation_reason: Optional[FollowUp] = None
    contacts: List[FollowUp] = Field(default_factory=list)
    cancellation_presets: List[str] = Field(default_factory=list)


class AuditChange(BaseModel):
    field: str
    label: str
    old: str
    new: str


class EditHistoryEntry(BaseModel):
    id: int
    action: str
    summary: str
    changed_fields: List[str] = Field(default_factory=list)
    changes: List[AuditChange] = Field(default_factory=list)
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    created_at: datetime


# Team


class TeamMemberBase(BaseModel):
    email: EmailStr
    name_ko: Optional[str] = None
    name_en: Optional[str] = None
    position: str = Field("guide", description="guide, driver, office, manager or admin")
    phone: Optional[str] = None
    is_active: bool = True


class TeamMemberCreate(TeamMemberBase):
    password: Optional[str] = Field(None, min_length=8)


class TeamMember(TeamMemberBase, TimestampMixin):
    id: int


class TeamLogin(BaseModel):
    email: EmailStr
    password: str


# Tours


class TourBase(BaseModel):
    product_id: Optional[int] = None
    tour_date: date
    tour_start_datetime: Optional[datetime] = None
    status: str = "scheduled"
    guide_email: Optional[str] = None
    assistant_email: Optional[str] = None
    vehicle_name: Optional[str] = None


class TourCreate(TourBase):
    reservation_ids: List[int] = Field(default_factory=list)


class TourUpdate(BaseModel):
    tour_start_datetime: Optional[datetime] = None
    status: Optional[str] = None
    guide_email: Optional[str] = None
    assistant_email: Optional[str] = None
    vehicle_name: Optional[str] = None


class TourAssignment(BaseModel):
    reservation_ids: List[int] = Field(..., min_length=1)


class Tour(TourBase, TimestampMixin):
    id: int


class TourDetail(Tour):
    reservation_ids: List[int] = Field(default_factory=list)
    total_people: int = 0
    guide_name: Optional[str] = None
    assistant_name: Optional[str] = None
    is_assigned: bool = False


# Action required


class ActionRequiredCounts(BaseModel):
    status: int = 0
    tour: int = 0
    pricing: int = 0
    deposit: int = 0
    balance: int = 0


class ActionRequiredResponse(BaseModel):
    tab: Optional[str] = None
    counts: ActionRequiredCounts
    total: int
    reservations: List[Reservation] = Field(default_factory=list)

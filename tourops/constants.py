"""Application-wide constants and defaults."""
from __future__ import annotations

import os

APP_NAME = "Tour Operations"

SUPPORTED_LOCALES: tuple[str, ...] = ("ko", "en")

DEFAULT_LOCALE = os.getenv("TOUROPS_DEFAULT_LOCALE", "ko")

LOG_LEVEL = os.getenv("TOUROPS_LOG_LEVEL", "INFO").upper()

CANCELLED_STATUSES: frozenset[str] = frozenset({"cancelled", "canceled", "deleted"})

# Payment record statuses that reduce the outstanding balance.
SETTLED_PAYMENT_STATUSES: frozenset[str] = frozenset({"confirmed", "received"})

ACTION_REQUIRED_TABS: tuple[str, ...] = ("status", "tour", "pricing", "deposit", "balance")

ACTION_REQUIRED_WINDOW_DAYS = 7

CHILD_PRICE_RATIO = 0.7
INFANT_PRICE_RATIO = 0.3

PRICE_TOLERANCE = 0.01

PRICE_TYPES: tuple[str, ...] = ("adult_price", "child_price", "infant_price")

AUDIT_HISTORY_LIMIT = 50

# Reservation column -> display label, used to describe edit history entries.
RESERVATION_FIELD_LABELS: dict[str, dict[str, str]] = {
    "customer_id": {"ko": "고객", "en": "Customer"},
    "product_id": {"ko": "상품", "en": "Product"},
    "tour_date": {"ko": "투어 날짜", "en": "Tour date"},
    "tour_time": {"ko": "투어 시간", "en": "Tour time"},
    "event_note": {"ko": "이벤트 노트", "en": "Event note"},
    "pickup_hotel_id": {"ko": "픽업 호텔", "en": "Pickup hotel"},
    "pickup_time": {"ko": "픽업 시간", "en": "Pickup time"},
    "adults": {"ko": "성인 인원", "en": "Adults"},
    "child": {"ko": "아동 인원", "en": "Child"},
    "infant": {"ko": "유아 인원", "en": "Infant"},
    "total_people": {"ko": "총 인원", "en": "Total people"},
    "channel_id": {"ko": "채널", "en": "Channel"},
    "status": {"ko": "상태", "en": "Status"},
    "selected_options": {"ko": "선택 옵션", "en": "Selected options"},
    "selected_option_prices": {"ko": "옵션 가격", "en": "Option prices"},
    "choices": {"ko": "초이스", "en": "Choices"},
    "is_private_tour": {"ko": "프라이빗 투어", "en": "Private tour"},
    "added_by": {"ko": "등록자", "en": "Added by"},
    "updated_at": {"ko": "수정 일시", "en": "Updated at"},
    "channel_rn": {"ko": "채널 RN", "en": "Channel RN"},
    "tour_id": {"ko": "투어", "en": "Tour"},
}

STATUS_LABELS: dict[str, dict[str, str]] = {
    "pending": {"ko": "대기", "en": "Pending"},
    "confirmed": {"ko": "확정", "en": "Confirmed"},
    "completed": {"ko": "완료", "en": "Completed"},
    "cancelled": {"ko": "취소", "en": "Cancelled"},
    "canceled": {"ko": "취소", "en": "Cancelled"},
    "deleted": {"ko": "삭제", "en": "Deleted"},
}

CANCELLATION_REASON_PRESETS: dict[str, list[str]] = {
    "en": [
        "No Show",
        "Canceled by customer",
        "Not recruited",
        "Weather",
        "Schedule conflict",
        "Duplicate booking",
        "Price / Policy",
        "Other",
    ],
    "ko": ["No Show", "고객 취소", "미모집", "날씨", "일정 변경", "중복 예약", "가격/정책", "기타"],
}

DOCUMENT_TEMPLATES: dict[str, str] = {
    "confirmation": "reservation_confirmation.html",
    "receipt": "reservation_receipt.html",
}

ADMIN_POSITIONS: frozenset[str] = frozenset({"admin", "manager"})

COUPON_ERRORS: dict[str, dict[str, str]] = {
    "code_required": {"ko": "쿠폰 코드가 필요합니다.", "en": "A coupon code is required."},
    "invalid_amount": {"ko": "유효한 결제 금액이 필요합니다.", "en": "A positive amount is required."},
    "not_found": {"ko": "유효하지 않은 쿠폰 코드입니다.", "en": "Unknown or inactive coupon code."},
    "not_started": {
        "ko": "쿠폰 사용 기간이 아직 시작되지 않았습니다.",
        "en": "This coupon is not valid yet.",
    },
    "expired": {"ko": "쿠폰 사용 기간이 만료되었습니다.", "en": "This coupon has expired."},
    "wrong_product": {
        "ko": "이 쿠폰은 해당 상품에 사용할 수 없습니다.",
        "en": "This coupon cannot be used for this product.",
    },
}

from __future__ import annotations

import io
import shutil
from datetime import date, timedelta
from typing import Any, Generator, Optional

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tourops import crud, schemas
from tourops.database import Base
from tourops.main import app, get_db
from tourops.utils import MEDIA_ROOT

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    future=True,
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

ADMIN_EMAIL = "lead@example.com"
ADMIN_HEADERS = {"X-Team-Email": ADMIN_EMAIL}

CANYON_CHOICES = {
    "required": [
        {
            "id": "canyon",
            "name": "Canyon",
            "name_ko": "캐년",
            "options": [
                {"id": "upper", "name": "Upper Antelope", "name_ko": "어퍼 앤텔롭", "is_default": True},
                {"id": "lower", "name": "Lower Antelope", "name_ko": "로어 앤텔롭", "adult_price": 20},
            ],
        }
    ]
}


def reset_media_storage() -> None:
    if MEDIA_ROOT.exists():
        shutil.rmtree(MEDIA_ROOT)


def reset_database() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    reset_media_storage()


def override_get_db() -> Generator[Session, None, None]:
    db = TestingSessionLocal()
    try:
        yield db
        db.commit()
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture
def api_client() -> Generator[TestClient, None, None]:
    reset_database()
    with TestClient(app) as client:
        yield client


def create_admin_member(email: str = ADMIN_EMAIL) -> str:
    with TestingSessionLocal() as session:
        crud.create_team_member(
            session,
            schemas.TeamMemberCreate(
                email=email,
                name_ko="김팀장",
                name_en="Team Lead",
                position="admin",
                password="Operations#2024",
            ),
        )
        session.commit()
    return email


def create_sample_channel(client: TestClient, name: str = "Viator", commission: str = "10") -> int:
    response = client.post(
        "/channels",
        json={"name": name, "type": "ota", "commission_percent": commission},
    )
    assert response.status_code == 201
    return response.json()["id"]


def create_sample_product(client: TestClient, base_price: str = "100.00") -> int:
    response = client.post(
        "/products",
        json={
            "name": "Antelope Canyon Tour",
            "name_ko": "앤텔롭 캐년 투어",
            "sub_category": "day tour",
            "base_price": base_price,
            "choices": CANYON_CHOICES,
        },
    )
    assert response.status_code == 201
    return response.json()["id"]


def create_sample_customer(client: TestClient) -> int:
    response = client.post(
        "/customers",
        json={"name": "Minji Park", "email": "minji@example.com", "language": "ko"},
    )
    assert response.status_code == 201
    return response.json()["id"]


def create_sample_reservation(
    client: TestClient,
    *,
    product_id: Optional[int] = None,
    headers: Optional[dict[str, str]] = None,
    **overrides: Any,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "product_id": product_id,
        "tour_date": "2024-06-15",
        "tour_time": "08:00",
        "adults": 2,
        "status": "confirmed",
    }
    payload.update(overrides)
    response = client.post("/reservations", json=payload, headers=headers or {})
    assert response.status_code == 201, response.text
    return response.json()


def set_reservation_pricing(client: TestClient, reservation_id: int, **fields: Any) -> dict[str, Any]:
    response = client.put(f"/reservations/{reservation_id}/pricing", json=fields)
    assert response.status_code == 200, response.text
    return response.json()


def test_healthcheck(api_client: TestClient) -> None:
    response = api_client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_catalog_channels_products_and_options(api_client: TestClient) -> None:
    channel_id = create_sample_channel(api_client)
    create_sample_channel(api_client, name="Direct", commission="0")

    response = api_client.put(f"/channels/{channel_id}", json={"is_active": False})
    assert response.status_code == 200
    assert response.json()["is_active"] is False

    active = api_client.get("/channels", params={"active": True}).json()
    assert [channel["name"] for channel in active] == ["Direct"]

    product_id = create_sample_product(api_client)
    groups = api_client.get(f"/products/{product_id}/choice-groups").json()
    assert groups[0]["id"] == "canyon"
    assert [option["id"] for option in groups[0]["options"]] == ["upper", "lower"]

    response = api_client.post(
        f"/products/{product_id}/options",
        json={
            "name": "Lunch",
            "choices": [
                {"name": "Sandwich", "adult_price_adjustment": "12.50"},
                {"name": "None"},
            ],
        },
    )
    assert response.status_code == 201
    options = api_client.get(f"/products/{product_id}/options").json()
    assert len(options) == 1
    assert [choice["name"] for choice in options[0]["choices"]] == ["Sandwich", "None"]

    assert api_client.get("/products/999").status_code == 404


def test_dynamic_pricing_lookup_and_choice_migration(api_client: TestClient) -> None:
    channel_id = create_sample_channel(api_client)
    product_id = create_sample_product(api_client)

    response = api_client.put(
        "/pricing/dynamic",
        json={
            "product_id": product_id,
            "channel_id": channel_id,
            "date": "2024-05-01",
            "adult_price": "180.00",
            "choices_pricing": {
                "opt_a+opt_b": {"adult_price": 100, "ota_sale_price": 150},
                "opt_c": {"adult_price": 60, "ota_sale_price": 90},
            },
        },
    )
    assert response.status_code == 200, response.text

    response = api_client.put(
        "/pricing/dynamic",
        json={"product_id": 999, "channel_id": channel_id, "date": "2024-05-01"},
    )
    assert response.status_code == 400

    lookup = api_client.post(
        "/pricing/lookup",
        json={
            "product_id": product_id,
            "channel_id": channel_id,
            "date": "2024-05-01",
            "combination": {"id": "new-1", "combination_key": "opt_b+opt_a"},
        },
    )
    assert lookup.status_code == 200
    body = lookup.json()
    assert body["matched_key"] == "opt_a+opt_b"
    assert body["data"]["adult_price"] == 100
    assert body["ota_sale_price"] == 150

    unmatched = api_client.post(
        "/pricing/lookup",
        json={
            "product_id": product_id,
            "combination": {"id": "q", "combination_key": "zzz+yyy"},
        },
    ).json()
    assert unmatched["matched_key"] is None
    assert unmatched["data"] == {}
    assert unmatched["ota_sale_price"] == 150

    response = api_client.post(
        f"/pricing/products/{product_id}/migrate-choices",
        json={"combinations": [{"id": "combo-1", "combination_key": "opt_b+opt_a"}]},
    )
    assert response.status_code == 200
    result = response.json()
    assert result["updated_records"] == 1
    assert set(result["choices_pricing"]) == {"combo-1", "opt_b+opt_a"}
    assert result["choices_pricing"]["combo-1"]["ota_sale_price"] == 150

    stored = api_client.get("/pricing/dynamic", params={"product_id": product_id}).json()
    assert set(stored[0]["choices_pricing"]) == {"combo-1", "opt_b+opt_a"}

    combinations = api_client.get(f"/pricing/products/{product_id}/combinations").json()
    assert {combination["id"] for combination in combinations} == {"combo-1", "opt_b+opt_a"}

    updated = api_client.post(
        "/pricing/combinations/price",
        json={
            "combinations": combinations,
            "combination_id": "combo-1",
            "price_type": "child_price",
            "value": 75,
        },
    ).json()
    prices = {combination["id"]: combination["child_price"] for combination in updated}
    assert prices["combo-1"] == 75
    assert prices["opt_b+opt_a"] == 0


def test_reservation_pricing_payments_and_history(api_client: TestClient) -> None:
    create_admin_member()
    channel_id = create_sample_channel(api_client)
    product_id = create_sample_product(api_client)
    customer_id = create_sample_customer(api_client)

    reservation = create_sample_reservation(
        api_client,
        product_id=product_id,
        headers=ADMIN_HEADERS,
        customer_id=customer_id,
        channel_id=channel_id,
        child=1,
        status="Confirmed",
    )
    reservation_id = reservation["id"]
    assert reservation["status"] == "confirmed"
    assert reservation["total_people"] == 3
    assert reservation["added_by"] == ADMIN_EMAIL

    pricing = set_reservation_pricing(
        api_client,
        reservation_id,
        adult_product_price="100.00",
        child_product_price="70.00",
        deposit_amount="50.00",
    )
    assert float(pricing["product_price_total"]) == 270.0
    assert float(pricing["total_price"]) == 270.0
    assert float(pricing["commission_percent"]) == 10.0
    assert float(pricing["commission_amount"]) == 27.0
    assert float(pricing["balance_amount"]) == 220.0

    response = api_client.post(
        f"/reservations/{reservation_id}/payments",
        json={"amount": "100.00", "status": "received", "payment_method": "card"},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 201
    assert response.json()["submitted_by"] == ADMIN_EMAIL
    api_client.post(
        f"/reservations/{reservation_id}/payments",
        json={"amount": "40.00", "status": "pending"},
    )

    pricing = api_client.get(f"/reservations/{reservation_id}/pricing").json()
    assert float(pricing["balance_amount"]) == 120.0
    assert len(api_client.get(f"/reservations/{reservation_id}/payments").json()) == 2

    response = api_client.put(
        f"/reservations/{reservation_id}", json={"adults": 3}, headers=ADMIN_HEADERS
    )
    assert response.status_code == 200
    assert response.json()["total_people"] == 4
    assert float(response.json()["pricing"]["total_price"]) == 370.0

    response = api_client.put(f"/reservations/{reservation_id}", json={"product_id": 999})
    assert response.status_code == 400

    history = api_client.get(
        f"/reservations/{reservation_id}/history", params={"locale": "en"}
    ).json()
    assert [entry["action"] for entry in history] == ["UPDATE", "INSERT"]
    assert history[0]["summary"] == "Reservation updated: Adults, Total people"
    assert history[0]["user_name"] == "김팀장"
    assert history[0]["changes"][0] == {
        "field": "adults",
        "label": "Adults",
        "old": "2",
        "new": "3",
    }
    assert history[1]["summary"] == "Reservation created"

    korean = api_client.get(f"/reservations/{reservation_id}/history").json()
    assert korean[0]["summary"] == "예약 정보 수정: 성인 인원, 총 인원"

    response = api_client.delete(f"/reservations/{reservation_id}", headers=ADMIN_HEADERS)
    assert response.status_code == 204
    assert api_client.get(f"/reservations/{reservation_id}").status_code == 404

    history = api_client.get(
        f"/reservations/{reservation_id}/history", params={"locale": "en"}
    ).json()
    assert history[0]["summary"] == "Reservation deleted"
    assert len(history) == 3


def test_follow_ups_and_cancellation_reason(api_client: TestClient) -> None:
    create_admin_member()
    reservation = create_sample_reservation(api_client, status="cancelled")
    reservation_id = reservation["id"]

    response = api_client.put(
        f"/reservations/{reservation_id}/cancellation-reason",
        json={"content": "  Weather  "},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 200
    assert response.json()["content"] == "Weather"

    response = api_client.put(
        f"/reservations/{reservation_id}/cancellation-reason", json={"content": "Other"}
    )
    assert response.status_code == 200

    response = api_client.post(
        f"/reservations/{reservation_id}/contacts",
        json={"content": "Called the customer about a refund"},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 201

    response = api_client.post(f"/reservations/{reservation_id}/contacts", json={"content": "   "})
    assert response.status_code == 422

    overview = api_client.get(
        f"/reservations/{reservation_id}/follow-ups", params={"locale": "en"}
    ).json()
    assert overview["is_cancelled"] is True
    assert overview["cancellation_reason"]["content"] == "Other"
    assert overview["cancellation_reason"]["created_by_name"] == "김팀장"
    assert len(overview["contacts"]) == 1
    assert overview["contacts"][0]["created_by_name"] == "김팀장"
    assert "Weather" in overview["cancellation_presets"]

    korean = api_client.get(f"/reservations/{reservation_id}/follow-ups").json()
    assert "날씨" in korean["cancellation_presets"]

    response = api_client.put(
        f"/reservations/{reservation_id}/cancellation-reason", json={"content": "   "}
    )
    assert response.json()["content"] is None


def test_reservation_documents(api_client: TestClient) -> None:
    product_id = create_sample_product(api_client)
    customer_id = create_sample_customer(api_client)
    hotel = api_client.post(
        "/pickup-hotels",
        json={"hotel": "Bellagio", "name_ko": "벨라지오", "pick_up_location": "Main lobby"},
    ).json()
    reservation = create_sample_reservation(
        api_client,
        product_id=product_id,
        customer_id=customer_id,
        pickup_hotel_id=hotel["id"],
        pickup_time="06:30",
        choices={"required": [{"choice_id": "canyon", "option_id": "lower", "quantity": 2}]},
    )
    reservation_id = reservation["id"]
    set_reservation_pricing(api_client, reservation_id, adult_product_price="120.00")

    response = api_client.get(
        f"/reservations/{reservation_id}/documents/confirmation", params={"locale": "en"}
    )
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "Reservation confirmation" in response.text
    assert "Minji Park" in response.text
    assert "Bellagio" in response.text
    assert "Canyon: Lower Antelope x2" in response.text
    assert "240.00" in response.text

    receipt = api_client.get(f"/reservations/{reservation_id}/documents/receipt")
    assert receipt.status_code == 200
    assert "영수증" in receipt.text
    assert "캐년: 로어 앤텔롭 x2" in receipt.text
    assert "벨라지오" in receipt.text

    assert api_client.get(f"/reservations/{reservation_id}/documents/invoice").status_code == 404
    assert api_client.get("/reservations/999/documents/receipt").status_code == 404


def test_malformed_product_choices_do_not_break_pages(api_client: TestClient) -> None:
    response = api_client.post(
        "/products",
        json={"name": "Legacy Tour", "choices": {"required": [{"id": "g1", "options": [{"id": "o"}]}]}},
    )
    assert response.status_code == 201
    product_id = response.json()["id"]

    response = api_client.get(f"/products/{product_id}/choice-groups")
    assert response.status_code == 200
    assert response.json() == []

    reservation = create_sample_reservation(
        api_client,
        product_id=product_id,
        choices={"required": [{"choice_id": "g1", "option_id": "o"}]},
    )
    document = api_client.get(
        f"/reservations/{reservation['id']}/documents/confirmation", params={"locale": "en"}
    )
    assert document.status_code == 200
    assert "Legacy Tour" in document.text


def test_reservation_update_rejects_null_for_required_columns(api_client: TestClient) -> None:
    reservation = create_sample_reservation(api_client)
    reservation_id = reservation["id"]

    for field in ("status", "adults", "child", "infant", "is_private_tour"):
        response = api_client.put(f"/reservations/{reservation_id}", json={field: None})
        assert response.status_code == 422, field

    stored = api_client.get(f"/reservations/{reservation_id}").json()
    assert stored["status"] == "confirmed"
    assert stored["adults"] == 2

    # Nullable columns can still be cleared.
    response = api_client.put(f"/reservations/{reservation_id}", json={"tour_time": None})
    assert response.status_code == 200
    assert response.json()["tour_time"] is None


def create_sample_coupon(client: TestClient, code: str, **fields: Any) -> dict[str, Any]:
    response = client.post("/coupons", json={"coupon_code": code, **fields})
    assert response.status_code == 201, response.text
    return response.json()


def test_coupon_management_and_validation(api_client: TestClient) -> None:
    product_id = create_sample_product(api_client)
    today = date.today()

    summer = create_sample_coupon(
        api_client, "SUMMER10", discount_type="percentage", percentage_value="10", product_id=product_id
    )
    welcome = create_sample_coupon(api_client, "WELCOME", discount_type="fixed", fixed_value="25")
    create_sample_coupon(api_client, "COMBO", fixed_value="10", percentage_value="10")
    create_sample_coupon(
        api_client, "OLD", discount_type="fixed", fixed_value="5", end_date=str(today - timedelta(days=1))
    )
    create_sample_coupon(
        api_client, "SOON", discount_type="fixed", fixed_value="5", start_date=str(today + timedelta(days=1))
    )

    duplicate = api_client.post("/coupons", json={"coupon_code": " summer10 "})
    assert duplicate.status_code == 400
    bad_range = api_client.post(
        "/coupons",
        json={"coupon_code": "RANGE", "start_date": "2024-06-02", "end_date": "2024-06-01"},
    )
    assert bad_range.status_code == 400
    assert api_client.post("/coupons", json={"coupon_code": "X", "discount_type": "bogo"}).status_code == 422

    def check(code: Any, total: Any, **extra: Any) -> dict[str, Any]:
        response = api_client.post(
            "/coupons/validate",
            json={"couponCode": code, "totalAmount": total, **extra},
            params={"locale": "en"},
        )
        assert response.status_code == 200
        return response.json()

    result = check(" summer10 ", 200, productIds=[product_id])
    assert result["valid"] is True
    assert float(result["discount_amount"]) == 20.0
    assert float(result["final_amount"]) == 180.0
    assert result["coupon"]["id"] == summer["id"]
    assert result["coupon"]["coupon_code"] == "SUMMER10"

    assert check("SUMMER10", 200, productIds=[product_id + 1])["error_code"] == "wrong_product"
    assert check("SUMMER10", 200)["valid"] is True

    combo = check("COMBO", 110)
    assert float(combo["discount_amount"]) == 20.0
    assert float(combo["final_amount"]) == 90.0

    capped = check("WELCOME", 20)
    assert float(capped["discount_amount"]) == 25.0
    assert float(capped["final_amount"]) == 0.0

    assert check("OLD", 100)["error_code"] == "expired"
    assert check("SOON", 100)["error_code"] == "not_started"
    assert check("NOPE", 100)["error_code"] == "not_found"
    assert check("", 100)["error_code"] == "code_required"
    missing_amount = check("WELCOME", 0)
    assert missing_amount == {
        "valid": False,
        "error_code": "invalid_amount",
        "error": "A positive amount is required.",
        "discount_amount": "0",
        "final_amount": None,
        "coupon": None,
    }
    korean = api_client.post("/coupons/validate", json={"couponCode": "NOPE", "totalAmount": 10}).json()
    assert korean["error"] == "유효하지 않은 쿠폰 코드입니다."

    response = api_client.patch(f"/coupons/{welcome['id']}", json={"status": "inactive"})
    assert response.status_code == 200
    assert check("WELCOME", 100)["error_code"] == "not_found"
    assert api_client.patch(f"/coupons/{welcome['id']}", json={"coupon_code": None}).status_code == 422

    active = api_client.get("/coupons", params={"status": "active"}).json()
    assert [coupon["coupon_code"] for coupon in active] == ["COMBO", "OLD", "SOON", "SUMMER10"]
    found = api_client.get("/coupons", params={"search": "summ"}).json()
    assert [coupon["id"] for coupon in found] == [summer["id"]]

    assert api_client.delete(f"/coupons/{welcome['id']}").status_code == 204
    assert api_client.get(f"/coupons/{welcome['id']}").status_code == 404


def test_reservation_pricing_applies_coupon_code(api_client: TestClient) -> None:
    product_id = create_sample_product(api_client)
    other_product_id = create_sample_product(api_client)
    create_sample_coupon(
        api_client, "SUMMER10", discount_type="percentage", percentage_value="10", product_id=product_id
    )
    create_sample_coupon(api_client, "BIG", discount_type="fixed", fixed_value="500")
    create_sample_coupon(
        api_client, "ELSEWHERE", discount_type="fixed", fixed_value="5", product_id=other_product_id
    )
    reservation_id = create_sample_reservation(api_client, product_id=product_id)["id"]

    pricing = set_reservation_pricing(
        api_client, reservation_id, adult_product_price="100.00", coupon_code="summer10"
    )
    assert pricing["coupon_code"] == "SUMMER10"
    assert float(pricing["coupon_discount"]) == 20.0
    assert float(pricing["total_price"]) == 180.0

    for code in ("NOPE", "ELSEWHERE"):
        response = api_client.put(
            f"/reservations/{reservation_id}/pricing",
            json={"adult_product_price": "100.00", "coupon_code": code},
        )
        assert response.status_code == 400, code
    unchanged = api_client.get(f"/reservations/{reservation_id}/pricing").json()
    assert unchanged["coupon_code"] == "SUMMER10"
    assert float(unchanged["total_price"]) == 180.0

    capped = set_reservation_pricing(
        api_client, reservation_id, adult_product_price="100.00", coupon_code="BIG"
    )
    assert float(capped["coupon_discount"]) == 200.0
    assert float(capped["total_price"]) == 0.0

    manual = set_reservation_pricing(
        api_client, reservation_id, adult_product_price="100.00", coupon_discount="15.00"
    )
    assert manual["coupon_code"] is None
    assert float(manual["total_price"]) == 185.0


def test_action_required_tabs(api_client: TestClient) -> None:
    product_id = create_sample_product(api_client)

    pending_soon = create_sample_reservation(
        api_client, product_id=product_id, status="pending", tour_date="2024-06-12", adults=1
    )
    confirmed_unassigned = create_sample_reservation(
        api_client, product_id=product_id, tour_date="2024-06-15"
    )
    set_reservation_pricing(api_client, confirmed_unassigned["id"], adult_product_price="100.00")
    past_with_balance = create_sample_reservation(
        api_client, product_id=product_id, tour_date="2024-06-01", adults=1
    )
    set_reservation_pricing(api_client, past_with_balance["id"], adult_product_price="100.00")
    create_sample_reservation(
        api_client, product_id=product_id, status="cancelled", tour_date="2024-06-11"
    )
    mispriced = create_sample_reservation(
        api_client, product_id=product_id, status="pending", tour_date="2024-06-30", adults=1
    )
    set_reservation_pricing(api_client, mispriced["id"], adult_product_price="80.00")

    response = api_client.get("/reservations/action-required", params={"today": "2024-06-10"})
    assert response.status_code == 200
    body = response.json()
    assert body["counts"] == {"status": 1, "tour": 2, "pricing": 2, "deposit": 2, "balance": 1}
    assert body["total"] == 4
    assert body["reservations"] == []

    pricing_tab = api_client.get(
        "/reservations/action-required", params={"tab": "pricing", "today": "2024-06-10"}
    ).json()
    assert {item["id"] for item in pricing_tab["reservations"]} == {
        pending_soon["id"],
        mispriced["id"],
    }

    balance_tab = api_client.get(
        "/reservations/action-required", params={"tab": "balance", "today": "2024-06-10"}
    ).json()
    assert [item["id"] for item in balance_tab["reservations"]] == [past_with_balance["id"]]

    api_client.post(
        f"/reservations/{confirmed_unassigned['id']}/payments",
        json={"amount": "50.00", "status": "received"},
    )
    deposit_tab = api_client.get(
        "/reservations/action-required", params={"tab": "deposit", "today": "2024-06-10"}
    ).json()
    # Paid but still without a tour, so it stays in the deposit tab.
    assert confirmed_unassigned["id"] in {item["id"] for item in deposit_tab["reservations"]}

    response = api_client.get("/reservations/action-required", params={"tab": "unknown"})
    assert response.status_code == 400


def test_tours_assignment_flow(api_client: TestClient) -> None:
    create_admin_member()
    product_id = create_sample_product(api_client)
    first = create_sample_reservation(api_client, product_id=product_id, adults=2, child=1)
    second = create_sample_reservation(api_client, product_id=product_id, adults=4)
    cancelled = create_sample_reservation(
        api_client, product_id=product_id, adults=5, status="canceled"
    )
    undated = create_sample_reservation(api_client, product_id=product_id, tour_date=None)

    response = api_client.post(
        "/tours",
        json={
            "product_id": product_id,
            "tour_date": "2024-06-15",
            "guide_email": ADMIN_EMAIL,
            "reservation_ids": [first["id"], cancelled["id"]],
        },
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 201, response.text
    tour = response.json()
    tour_id = tour["id"]
    assert tour["reservation_ids"] == sorted([first["id"], cancelled["id"]])
    assert tour["total_people"] == 3
    assert tour["guide_name"] == "김팀장"
    assert tour["is_assigned"] is True

    response = api_client.post(
        f"/tours/{tour_id}/reservations", json={"reservation_ids": [second["id"]]}
    )
    assert response.status_code == 200
    assert response.json()["total_people"] == 7

    response = api_client.post(f"/tours/{tour_id}/reservations", json={"reservation_ids": [999]})
    assert response.status_code == 400

    history = api_client.get(
        f"/reservations/{second['id']}/history", params={"locale": "en"}
    ).json()
    assert history[0]["summary"] == "Reservation updated: Tour"

    response = api_client.delete(f"/tours/{tour_id}/reservations/{second['id']}")
    assert response.status_code == 200
    assert second["id"] not in response.json()["reservation_ids"]
    response = api_client.delete(f"/tours/{tour_id}/reservations/{second['id']}")
    assert response.status_code == 400

    response = api_client.post(f"/tours/from-reservation/{second['id']}")
    assert response.status_code == 201
    assert response.json()["reservation_ids"] == [second["id"]]
    assert response.json()["tour_date"] == "2024-06-15"
    assert response.json()["is_assigned"] is False

    assert api_client.post(f"/tours/from-reservation/{undated['id']}").status_code == 400

    listed = api_client.get("/tours", params={"start": "2024-06-01", "end": "2024-06-30"}).json()
    assert len(listed) == 2
    assert api_client.get("/tours", params={"start": "2024-07-01"}).json() == []

    response = api_client.put(f"/tours/{tour_id}", json={"vehicle_name": "Van 3"})
    assert response.json()["vehicle_name"] == "Van 3"

    assert api_client.delete(f"/tours/{tour_id}").status_code == 204
    assert api_client.get(f"/reservations/{first['id']}").json()["tour_id"] is None
    assert api_client.get(f"/tours/{tour_id}").status_code == 404


def test_team_members_and_login(api_client: TestClient) -> None:
    response = api_client.post(
        "/team", json={"email": "guide@example.com", "position": "guide", "password": "password123"}
    )
    assert response.status_code == 400

    response = api_client.post(
        "/team",
        json={
            "email": "Owner@Example.com",
            "name_ko": "대표",
            "position": "admin",
            "password": "password123",
        },
    )
    assert response.status_code == 201
    assert response.json()["email"] == "owner@example.com"

    guide_payload = {"email": "guide@example.com", "position": "guide", "password": "password123"}
    assert api_client.post("/team", json=guide_payload).status_code == 401
    response = api_client.post(
        "/team", json=guide_payload, headers={"X-Team-Email": "owner@example.com"}
    )
    assert response.status_code == 201
    response = api_client.post(
        "/team", json=guide_payload, headers={"X-Team-Email": "owner@example.com"}
    )
    assert response.status_code == 400

    response = api_client.get("/team", headers={"X-Team-Email": "guide@example.com"})
    assert response.status_code == 403
    members = api_client.get("/team", headers={"X-Team-Email": "OWNER@example.com"}).json()
    assert [member["email"] for member in members] == ["guide@example.com", "owner@example.com"]
    assert all("hashed_password" not in member for member in members)

    response = api_client.post(
        "/team/login", json={"email": "guide@example.com", "password": "password123"}
    )
    assert response.status_code == 200
    assert response.json()["position"] == "guide"

    response = api_client.post(
        "/team/login", json={"email": "guide@example.com", "password": "wrong-password"}
    )
    assert response.status_code == 401


def test_pickup_hotel_image_upload(api_client: TestClient) -> None:
    hotel = api_client.post("/pickup-hotels", json={"hotel": "Excalibur"}).json()

    image = Image.new("RGB", (2400, 1200), color=(255, 140, 0))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    buffer.seek(0)
    response = api_client.post(
        f"/pickup-hotels/{hotel['id']}/image",
        files={"file": ("lobby.png", buffer, "image/png")},
    )
    buffer.close()
    assert response.status_code == 200
    body = response.json()
    assert body["optimized_image_path"].endswith(".jpg")
    assert body["original_image_path"].endswith(".png")

    optimized = MEDIA_ROOT / body["optimized_image_path"]
    original = MEDIA_ROOT / body["original_image_path"]
    assert optimized.exists() and original.exists()
    with Image.open(optimized) as rendition:
        assert max(rendition.size) == 1600

    response = api_client.post(
        f"/pickup-hotels/{hotel['id']}/image",
        files={"file": ("notes.txt", io.BytesIO(b"not an image"), "text/plain")},
    )
    assert response.status_code == 400

    assert api_client.delete(f"/pickup-hotels/{hotel['id']}").status_code == 204
    assert not optimized.exists()
    assert not original.exists()


def test_reports(api_client: TestClient) -> None:
    channel_id = create_sample_channel(api_client)
    product_id = create_sample_product(api_client)
    sold = create_sample_reservation(api_client, product_id=product_id, channel_id=channel_id)
    set_reservation_pricing(api_client, sold["id"], adult_product_price="100.00")
    create_sample_reservation(
        api_client, product_id=product_id, channel_id=channel_id, status="canceled"
    )
    create_sample_reservation(
        api_client, product_id=product_id, status="pending", tour_date="2024-08-01"
    )

    statuses = api_client.get("/reports/reservation-status").json()
    assert statuses == {"counts": {"confirmed": 1, "cancelled": 1, "pending": 1}, "total": 3}

    sales = api_client.get("/reports/channel-sales").json()["channels"]
    assert sales["Viator"] == {"reservations": 1, "total_price": 200.0, "commission": 20.0}
    assert sales["unassigned"]["reservations"] == 1

    june = api_client.get("/reports/channel-sales", params={"end": "2024-06-30"}).json()
    assert "unassigned" not in june["channels"]

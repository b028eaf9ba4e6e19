import json
from decimal import Decimal

import pytest

from app.core.config import settings
from app.models import CourseEnrollment, DiscountCode, DiscountRedemption, Order, ReferralUse
from app.services.signature import SignatureVerifier

BUYER = {
    "email": "Buyer@Example.com",
    "name": "Ayşe Yılmaz",
    "phone": "+905551112233",
    "city": "Ankara",
    "locale": "en",
}


def checkout(client, course, headers=None, **extra):
    body = {"course_id": course.id, **BUYER, **extra}
    return client.post("/checkout", json=body, headers=headers or {})


# ---------------------------------------------------------------------------
# Paid checkout
# ---------------------------------------------------------------------------
def test_early_bird_and_percentage_code_give_signed_form(db, client, make_course, make_discount, future):
    course = make_course(price="100.00", early_bird_price="60.00", early_bird_deadline=future)
    make_discount(code="SAVE20", amount="20")

    response = checkout(client, course, discount_codes=["SAVE20"])

    assert response.status_code == 200
    data = response.json()
    form = data["form_data"]
    assert data["form_action"] == settings.shopier_form_action
    assert form["total_order_value"] == "48.00"
    assert form["platform_order_id"] == data["order_id"]
    assert form["API_key"] == "test-api-key"
    assert form["buyer_name"] == "Ayşe"
    assert form["buyer_surname"] == "Yılmaz"
    assert form["billing_city"] == "Ankara"
    assert form["billing_address"] == "Dijital Ürün"
    assert form["current_language"] == 1
    assert form["callback_url"] == "http://api.test/payments/shopier/callback"
    assert form["return_url"] == "http://api.test/payments/shopier/return"
    assert form["signature"] == SignatureVerifier.compute(
        form["random_nr"], data["order_id"], "48.00", form["currency"], "S"
    )

    params = json.loads(form["custom_params"])
    assert params["orderId"] == data["order_id"]
    assert params["discountCode"] == "SAVE20"
    assert params["totalDiscount"] == "12.00"

    db.expire_all()
    order = db.query(Order).filter_by(order_id=data["order_id"]).one()
    assert order.status == "pending"
    assert order.original_amount == Decimal("60.00")
    assert order.discount_amount == Decimal("12.00")
    assert order.amount == Decimal("48.00")
    assert order.buyer_ref == "buyer@example.com"
    assert order.locale == "en"
    assert order.custom_data == {"city": "Ankara"}
    assert db.query(DiscountCode).filter_by(code="SAVE20").one().usage_count == 1
    assert db.query(DiscountRedemption).filter_by(order_id=order.order_id).count() == 1


def test_partial_balance_is_used_up(db, client, make_course, make_discount):
    course = make_course(price="100.00")
    make_discount(code="GIFT30", discount_type="fixed", amount="0", balance="30")

    response = checkout(client, course, discount_codes=["GIFT30"])

    assert response.status_code == 200
    assert response.json()["form_data"]["total_order_value"] == "70.00"
    db.expire_all()
    gift = db.query(DiscountCode).filter_by(code="GIFT30").one()
    assert gift.remaining_balance == Decimal("0.00")
    assert gift.usage_count == 1


def test_comma_separated_codes_are_accepted(client, make_course, make_discount):
    course = make_course(price="100.00")
    make_discount(code="SAVE20")

    response = checkout(client, course, discount_codes="SAVE20")

    assert response.json()["form_data"]["total_order_value"] == "80.00"


def test_token_subject_becomes_buyer_ref(db, client, make_course, auth_headers):
    course = make_course()

    response = checkout(client, course, headers=auth_headers("user_buyer"), user_id="ignored")

    db.expire_all()
    order = db.query(Order).filter_by(order_id=response.json()["order_id"]).one()
    assert order.buyer_ref == "user_buyer"


def test_email_shaped_user_id_falls_back_to_email(db, client, make_course):
    course = make_course()

    response = checkout(client, course, user_id="someone@example.com")

    db.expire_all()
    order = db.query(Order).filter_by(order_id=response.json()["order_id"]).one()
    assert order.buyer_ref == "buyer@example.com"


def test_referral_is_recorded_with_the_order(db, client, make_course, make_referral):
    course = make_course()
    make_referral(owner="user_referrer", code="REFOWNER1")

    response = checkout(client, course, referral_code="refowner1")

    assert response.status_code == 200
    db.expire_all()
    order_id = response.json()["order_id"]
    use = db.query(ReferralUse).filter_by(order_id=order_id).one()
    assert use.buyer_ref == "buyer@example.com"
    assert use.usage_counted is False
    assert db.query(Order).filter_by(order_id=order_id).one().referral_code == "refowner1"


# ---------------------------------------------------------------------------
# Free checkout
# ---------------------------------------------------------------------------
def test_balance_covering_price_enrolls_directly(db, client, mailer, make_course, make_discount):
    course = make_course(price="100.00")
    make_discount(code="GIFT150", discount_type="fixed", amount="0", balance="150")

    response = checkout(client, course, discount_codes=["GIFT150"])

    assert response.status_code == 200
    data = response.json()
    assert data["redirect_to_direct"] is True
    assert data["enrollment_status"] == "new"
    assert data["redirect_url"].startswith("http://frontend.test/en/payment-success?")
    assert "free=true" in data["redirect_url"]

    db.expire_all()
    order = db.query(Order).filter_by(order_id=data["order_id"]).one()
    assert order.status == "completed"
    assert order.payment_method == "free_discount"
    assert order.amount == Decimal("0.00")
    assert order.enrolled is True
    assert order.enrollment_id == data["enrollment_id"]
    assert order.completed_at is not None

    enrollment = db.get(CourseEnrollment, data["enrollment_id"])
    assert enrollment.user_id == "buyer@example.com"
    assert enrollment.is_active is True

    assert db.query(DiscountCode).filter_by(code="GIFT150").one().remaining_balance == Decimal("50.00")
    assert mailer.sent == [order.order_id]


def test_free_checkout_for_enrolled_buyer_keeps_one_enrollment(db, client, make_course, make_discount):
    course = make_course(price="50.00")
    make_discount(code="FREE", amount="100", max_usage=5)

    first = checkout(client, course, discount_codes=["FREE"]).json()
    second = checkout(client, course, discount_codes=["FREE"]).json()

    assert first["enrollment_status"] == "new"
    assert second["enrollment_status"] == "already_enrolled"
    assert first["enrollment_id"] == second["enrollment_id"]
    db.expire_all()
    assert db.query(CourseEnrollment).count() == 1


def test_free_checkout_survives_mail_failure(db, client, mailer, make_course, make_discount):
    mailer.fail = True
    course = make_course(price="50.00")
    make_discount(code="FREE", amount="100")

    response = checkout(client, course, discount_codes=["FREE"])

    assert response.status_code == 200
    db.expire_all()
    assert db.query(Order).one().status == "completed"


# ---------------------------------------------------------------------------
# Rejections
# ---------------------------------------------------------------------------
def test_unknown_course_is_404(client):
    response = client.post("/checkout", json={"course_id": 9999, **BUYER})

    assert response.status_code == 404
    assert response.json()["reason"] == "course_not_found"


def test_inactive_course_is_404(client, make_course):
    course = make_course(is_active=False)
    assert checkout(client, course).status_code == 404


@pytest.mark.parametrize(
    "codes, reason",
    [
        (["NOPE"], "invalid_code"),
        (["SAVE20", "OTHER"], "only_one_discount"),
    ],
)
def test_rejected_code_is_400_with_reason(db, client, make_course, make_discount, codes, reason):
    course = make_course()
    make_discount(code="SAVE20")

    response = checkout(client, course, discount_codes=codes)

    assert response.status_code == 400
    assert response.json()["reason"] == reason
    db.expire_all()
    assert db.query(Order).count() == 0


def test_self_referral_leaves_nothing_behind(db, client, make_course, make_discount, make_referral, auth_headers):
    course = make_course()
    make_discount(code="LAST", max_usage=1)
    make_referral(owner="user_buyer", code="REFMINE")

    response = checkout(
        client,
        course,
        headers=auth_headers("user_buyer"),
        discount_codes=["LAST"],
        referral_code="REFMINE",
    )

    assert response.status_code == 400
    assert response.json()["reason"] == "self_referral"
    db.expire_all()
    assert db.query(Order).count() == 0
    assert db.query(DiscountRedemption).count() == 0
    assert db.query(DiscountCode).filter_by(code="LAST").one().usage_count == 0


def test_missing_provider_key_is_500(client, make_course, monkeypatch):
    monkeypatch.setattr(settings, "shopier_api_key", "")
    course = make_course()

    response = checkout(client, course)

    assert response.status_code == 500
    assert response.json()["type"] == "configuration_error"


def test_invalid_email_is_422(client, make_course):
    course = make_course()
    response = client.post("/checkout", json={"course_id": course.id, "email": "nope", "name": "X"})
    assert response.status_code == 422


# ---------------------------------------------------------------------------
# Discount preview
# ---------------------------------------------------------------------------
def test_discount_preview_does_not_use_the_code(db, client, make_course, make_discount):
    course = make_course(price="100.00")
    make_discount(code="GIFT", discount_type="fixed", amount="0", balance="150")

    response = client.post("/checkout/discount-preview", json={"course_id": course.id, "code": "gift"})

    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["discount_amount"]) == Decimal("100.00")
    assert Decimal(data["payable_amount"]) == Decimal("0.00")
    assert Decimal(data["balance_after"]) == Decimal("50.00")
    assert data["is_free"] is True
    db.expire_all()
    assert db.query(DiscountCode).one().usage_count == 0


def test_discount_preview_rejection(client, make_course, make_discount):
    course = make_course()
    make_discount(code="SAVE20", usage_count=10, max_usage=10)

    response = client.post("/checkout/discount-preview", json={"course_id": course.id, "code": "SAVE20"})

    assert response.status_code == 400
    assert response.json()["reason"] == "usage_limit_reached"


# ---------------------------------------------------------------------------
# Enrollments
# ---------------------------------------------------------------------------
def test_my_enrollments_after_free_checkout(client, make_course, make_discount, auth_headers):
    course = make_course(price="50.00", title="SQL Basics")
    make_discount(code="FREE", amount="100")
    headers = auth_headers("user_buyer")
    checkout(client, course, headers=headers, discount_codes=["FREE"])

    listing = client.get("/enrollments/me", headers=headers).json()
    check = client.get(f"/enrollments/check/{course.id}", headers=headers).json()
    other = client.get(f"/enrollments/check/{course.id}", headers=auth_headers("user_other")).json()

    assert listing["total"] == 1
    assert listing["enrollments"][0]["course_name"] == "SQL Basics"
    assert check == {"course_id": course.id, "is_enrolled": True}
    assert other["is_enrolled"] is False


def test_enrollments_require_auth(client):
    assert client.get("/enrollments/me").status_code == 401

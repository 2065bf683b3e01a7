from datetime import timedelta

from storefront.utils.timestamps import utcnow
from tests.factories import make_coupon, make_template

VERIFY_URL = "/api/v1/coupons/verify"


def test_valid_coupon_preview(client, db):
    template = make_template(db)
    make_coupon(db)

    response = client.post(VERIFY_URL, json={"code": "save10", "template_id": template.id})

    assert response.status_code == 200
    assert response.json() == {
        "valid": True,
        "reason": None,
        "code": "SAVE10",
        "discount_type": "percentage",
        "discount_amount": 4990,
        "final_price": 44910,
        "message": None,
    }


def test_fixed_coupon_clamped_to_price(client, db):
    template = make_template(db, price=1000)
    make_coupon(db, code="BIG", discount_type="fixed", discount_value=5000)

    data = client.post(VERIFY_URL, json={"code": "BIG", "template_id": template.id}).json()

    assert data["discount_amount"] == 1000
    assert data["final_price"] == 0


def test_unknown_coupon_is_reported_in_body(client, db):
    template = make_template(db)

    response = client.post(VERIFY_URL, json={"code": "NOPE", "template_id": template.id})

    assert response.status_code == 200
    assert response.json()["valid"] is False
    assert response.json()["message"] == "Invalid coupon code"
    assert response.json()["reason"] == "COUPON_INVALID"


def test_limit_reached(client, db):
    template = make_template(db)
    make_coupon(db, usage_limit=3, used_count=3)

    data = client.post(VERIFY_URL, json={"code": "SAVE10", "template_id": template.id}).json()

    assert data["valid"] is False
    assert data["message"] == "This coupon has reached its usage limit"
    assert data["reason"] == "COUPON_LIMIT_REACHED"


def test_email_restricted_coupon_uses_body_email(client, db):
    template = make_template(db)
    make_coupon(db, specific_email="vip@example.com")

    wrong = client.post(VERIFY_URL, json={"code": "SAVE10", "template_id": template.id})
    right = client.post(
        VERIFY_URL,
        json={"code": "SAVE10", "template_id": template.id, "email": "VIP@example.com"},
    )

    assert wrong.json()["valid"] is False
    assert wrong.json()["reason"] == "COUPON_INVALID_EMAIL"
    assert right.json()["valid"] is True


def test_expired_coupon(client, db):
    template = make_template(db)
    make_coupon(
        db,
        valid_from=utcnow() - timedelta(days=10),
        valid_until=utcnow() - timedelta(days=1),
    )

    data = client.post(VERIFY_URL, json={"code": "SAVE10", "template_id": template.id}).json()

    assert data["valid"] is False
    assert data["reason"] == "COUPON_EXPIRED"
    assert data["discount_amount"] == 0


def test_unknown_template(client):
    response = client.post(VERIFY_URL, json={"code": "SAVE10", "template_id": "tpl_missing"})
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "TEMPLATE_NOT_FOUND"


def test_rate_limited(client, db):
    template = make_template(db)
    payload = {"code": "SAVE10", "template_id": template.id}

    for _ in range(20):
        client.post(VERIFY_URL, json=payload)
    response = client.post(VERIFY_URL, json=payload)

    assert response.status_code == 429
    assert response.json()["error"]["code"] == "RATE_LIMIT_EXCEEDED"

"""
Coupon rules: existence, validity window, usage limit, email restriction,
and discount arithmetic in minor units.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from storefront.core.errors import CouponRejectedError
from storefront.services.coupon_engine import (
    COUPON_EXPIRED,
    COUPON_INVALID,
    COUPON_INVALID_EMAIL,
    COUPON_LIMIT_REACHED,
    CouponEngine,
    compute_discount,
    evaluate_coupon,
)
from storefront.utils.timestamps import to_epoch_millis
from tests.factories import make_coupon

VALID_FROM = datetime(2025, 6, 1, tzinfo=timezone.utc)
VALID_UNTIL = datetime(2025, 6, 30, tzinfo=timezone.utc)
NOW_MS = to_epoch_millis(datetime(2025, 6, 15, 12, tzinfo=timezone.utc))


def _make_coupon(**overrides):
    """Create a mock Coupon object."""
    defaults = {
        "code": "SAVE10",
        "discount_type": "percentage",
        "discount_value": 10,
        "valid_from": VALID_FROM,
        "valid_until": VALID_UNTIL,
        "usage_limit": None,
        "used_count": 0,
        "specific_email": None,
        "is_active": True,
    }
    defaults.update(overrides)
    mock = MagicMock()
    for key, val in defaults.items():
        setattr(mock, key, val)
    return mock


def _evaluate(coupon, email="buyer@example.com", price=49900, now_ms=NOW_MS):
    return evaluate_coupon(coupon, buyer_email=email, price=price, now_ms=now_ms)


# ---------------------------------------------------------------------------
# Discount arithmetic
# ---------------------------------------------------------------------------

class TestComputeDiscount:
    def test_percentage_of_price(self):
        assert compute_discount("percentage", 10, 49900) == 4990

    def test_percentage_rounds_half_up_to_minor_unit(self):
        # 15% of 999 = 149.85
        assert compute_discount("percentage", 15, 999) == 150
        # 50% of 1 = 0.5
        assert compute_discount("percentage", 50, 1) == 1

    def test_fixed_amount(self):
        assert compute_discount("fixed", 10000, 49900) == 10000

    def test_fixed_amount_is_clamped_to_price(self):
        assert compute_discount("fixed", 60000, 49900) == 49900

    def test_full_percentage_is_whole_price(self):
        assert compute_discount("percentage", 100, 49900) == 49900

    def test_zero_price(self):
        assert compute_discount("percentage", 10, 0) == 0


# ---------------------------------------------------------------------------
# Rule evaluation
# ---------------------------------------------------------------------------

class TestEvaluateCoupon:
    def test_valid_coupon(self):
        result = _evaluate(_make_coupon())
        assert result.valid is True
        assert result.discount_amount == 4990
        assert result.final_price == 44910
        assert result.discount_type == "percentage"

    def test_missing_coupon_is_invalid(self):
        result = _evaluate(None)
        assert result.valid is False
        assert result.reason == COUPON_INVALID

    def test_inactive_coupon_is_invalid(self):
        assert _evaluate(_make_coupon(is_active=False)).reason == COUPON_INVALID

    def test_missing_window_bound_is_invalid(self):
        assert _evaluate(_make_coupon(valid_from=None)).reason == COUPON_INVALID
        assert _evaluate(_make_coupon(valid_until="whenever")).reason == COUPON_INVALID

    def test_window_is_inclusive_at_start(self):
        result = _evaluate(_make_coupon(), now_ms=to_epoch_millis(VALID_FROM))
        assert result.valid is True

    def test_window_is_inclusive_at_end(self):
        result = _evaluate(_make_coupon(), now_ms=to_epoch_millis(VALID_UNTIL))
        assert result.valid is True

    def test_one_millisecond_after_end_is_expired(self):
        result = _evaluate(_make_coupon(), now_ms=to_epoch_millis(VALID_UNTIL) + 1)
        assert result.reason == COUPON_EXPIRED

    def test_before_start_is_expired(self):
        result = _evaluate(_make_coupon(), now_ms=to_epoch_millis(VALID_FROM) - 1)
        assert result.reason == COUPON_EXPIRED

    def test_window_in_mixed_representations(self):
        coupon = _make_coupon(
            valid_from=int(VALID_FROM.timestamp()),
            valid_until={"_seconds": int(VALID_UNTIL.timestamp()), "_nanoseconds": 0},
        )
        assert _evaluate(coupon).valid is True

    def test_usage_limit_reached(self):
        result = _evaluate(_make_coupon(usage_limit=5, used_count=5))
        assert result.reason == COUPON_LIMIT_REACHED

    def test_usage_below_limit(self):
        assert _evaluate(_make_coupon(usage_limit=5, used_count=4)).valid is True

    def test_email_restriction_mismatch(self):
        coupon = _make_coupon(specific_email="vip@example.com")
        assert _evaluate(coupon).reason == COUPON_INVALID_EMAIL

    def test_email_restriction_is_case_insensitive(self):
        coupon = _make_coupon(specific_email="VIP@Example.com")
        assert _evaluate(coupon, email="vip@example.COM").valid is True

    def test_email_restriction_requires_an_email(self):
        coupon = _make_coupon(specific_email="vip@example.com")
        assert _evaluate(coupon, email=None).reason == COUPON_INVALID_EMAIL

    def test_window_is_checked_before_limit(self):
        coupon = _make_coupon(usage_limit=1, used_count=1)
        result = _evaluate(coupon, now_ms=to_epoch_millis(VALID_UNTIL) + 1)
        assert result.reason == COUPON_EXPIRED

    def test_limit_is_checked_before_email(self):
        coupon = _make_coupon(usage_limit=1, used_count=1, specific_email="vip@example.com")
        assert _evaluate(coupon).reason == COUPON_LIMIT_REACHED

    def test_fixed_discount_larger_than_price(self):
        result = _evaluate(_make_coupon(discount_type="fixed", discount_value=90000))
        assert result.discount_amount == 49900
        assert result.final_price == 0

    def test_rejection_raises_with_reason_code(self):
        result = _evaluate(_make_coupon(is_active=False))
        with pytest.raises(CouponRejectedError) as exc:
            result.raise_if_invalid()
        assert exc.value.code == COUPON_INVALID
        assert exc.value.status_code == 400


# ---------------------------------------------------------------------------
# Database-backed engine
# ---------------------------------------------------------------------------

class TestCouponEngine:
    def test_lookup_is_case_insensitive(self, db):
        make_coupon(db, code="SAVE10")
        result = CouponEngine(db).validate("save10", buyer_email=None, catalog_price=10000)
        assert result.valid is True
        assert result.discount_amount == 1000

    def test_unknown_code(self, db):
        result = CouponEngine(db).validate("NOPE", buyer_email=None, catalog_price=10000)
        assert result.reason == COUPON_INVALID
        assert result.message == "Invalid coupon code"

    def test_validation_has_no_side_effects(self, db):
        coupon = make_coupon(db, code="ONCE", usage_limit=1)
        engine = CouponEngine(db)
        for _ in range(3):
            assert engine.validate("ONCE", buyer_email=None, catalog_price=10000).valid
        db.refresh(coupon)
        assert coupon.used_count == 0

    def test_explicit_now(self, db):
        make_coupon(db, code="LATER")
        later = datetime.now(timezone.utc) + timedelta(days=60)
        result = CouponEngine(db).validate("LATER", buyer_email=None, catalog_price=100, now=later)
        assert result.reason == COUPON_EXPIRED

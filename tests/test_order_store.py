"""
Order persistence: conditional status transitions, atomic token writes
and coupon redemption accounting.
"""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError

from storefront import crud
from storefront.core.errors import OrderAlreadyProcessedError, OrderNotFoundError
from storefront.crud.crud_coupon import RedemptionOutcome
from storefront.models import CouponRedemption, DownloadToken
from storefront.services.download_tokens import DownloadTokenIssuer
from tests.factories import make_coupon, make_order, make_template


@pytest.fixture
def template(db):
    return make_template(db)


@pytest.fixture
def order(db, template):
    return make_order(db, template)


def _mint(order):
    return DownloadTokenIssuer().mint(order)


class TestCreateOrder:
    def test_snapshots_price_and_totals(self, db, template):
        created = crud.order.create_order(
            db,
            buyer_id="buyer_123",
            buyer_email="buyer@example.com",
            buyer_name="Test Buyer",
            currency="INR",
            templates=[template],
            discount_amount=4990,
            coupon_code="SAVE10",
            payment_provider="razorpay",
        )
        assert created.id.startswith("ord_")
        assert created.status == "created"
        assert created.subtotal == 49900
        assert created.total_amount == 44910
        assert created.download_tokens == []
        assert [i.price_at_purchase for i in created.items] == [49900]

        template.price = 99900
        db.commit()
        db.refresh(created)
        assert created.items[0].price_at_purchase == 49900


class TestTransitionToPaid:
    def test_flips_status_and_persists_tokens(self, db, order):
        tokens = _mint(order)

        paid, transitioned = crud.order.transition_to_paid(
            db, order_id=order.id, confirmation_id="pay_1", tokens=tokens
        )

        assert transitioned is True
        assert paid.status == "paid"
        assert paid.confirmation_id == "pay_1"
        assert paid.paid_at is not None
        assert paid.download_tokens == [t.token for t in tokens]
        stored = crud.download_token.get_by_order(db, order_id=order.id)
        assert [t.token for t in stored] == paid.download_tokens

    def test_second_transition_is_noop(self, db, order):
        first = _mint(order)
        crud.order.transition_to_paid(db, order_id=order.id, confirmation_id="pay_1", tokens=first)

        second = _mint(order)
        paid, transitioned = crud.order.transition_to_paid(
            db, order_id=order.id, confirmation_id="pay_2", tokens=second
        )

        assert transitioned is False
        assert paid.confirmation_id == "pay_1"
        assert paid.download_tokens == [t.token for t in first]
        assert db.query(DownloadToken).count() == 1

    @pytest.mark.parametrize("status", ["failed", "refunded"])
    def test_terminal_order_is_rejected(self, db, template, status):
        order = make_order(db, template, status=status)

        with pytest.raises(OrderAlreadyProcessedError) as exc:
            crud.order.transition_to_paid(
                db, order_id=order.id, confirmation_id="pay_1", tokens=_mint(order)
            )

        assert exc.value.status == status
        assert db.query(DownloadToken).count() == 0

    def test_missing_order(self, db, order):
        with pytest.raises(OrderNotFoundError):
            crud.order.transition_to_paid(
                db, order_id="ord_missing", confirmation_id="pay_1", tokens=[]
            )

    def test_token_write_failure_leaves_order_pending(self, db, template, order):
        tokens = _mint(order)
        clash = DownloadToken(
            token=tokens[0].token,
            buyer_id="other",
            template_id=template.id,
            order_id=make_order(db, template).id,
            expires_at=tokens[0].expires_at,
        )
        db.add(clash)
        db.commit()

        with pytest.raises(IntegrityError):
            crud.order.transition_to_paid(
                db, order_id=order.id, confirmation_id="pay_1", tokens=tokens
            )

        db.expire_all()
        reloaded = crud.order.get(db, id=order.id)
        assert reloaded.status == "created"
        assert reloaded.confirmation_id is None
        assert reloaded.download_tokens == []
        assert crud.download_token.get_by_order(db, order_id=order.id) == []

    def test_status_write_failure_leaves_no_tokens(self, db, order):
        with patch.object(
            crud.order, "_mark_paid_if_created", side_effect=RuntimeError("connection lost")
        ):
            with pytest.raises(RuntimeError):
                crud.order.transition_to_paid(
                    db, order_id=order.id, confirmation_id="pay_1", tokens=_mint(order)
                )

        db.expire_all()
        assert crud.order.get(db, id=order.id).status == "created"
        assert db.query(DownloadToken).count() == 0


class TestOtherTransitions:
    def test_mark_failed_only_from_created(self, db, template):
        pending = make_order(db, template)
        paid = make_order(db, template, status="paid")

        assert crud.order.mark_failed(db, order_id=pending.id) is True
        assert crud.order.mark_failed(db, order_id=paid.id) is False

        db.expire_all()
        assert crud.order.get(db, id=pending.id).status == "failed"
        assert crud.order.get(db, id=pending.id).failed_at is not None
        assert crud.order.get(db, id=paid.id).status == "paid"

    def test_refund_only_from_paid(self, db, template):
        pending = make_order(db, template)
        paid = make_order(db, template, status="paid")

        assert crud.order.transition_to_refunded(db, order_id=pending.id) is False
        assert crud.order.transition_to_refunded(db, order_id=paid.id) is True

        db.expire_all()
        assert crud.order.get(db, id=pending.id).status == "created"
        assert crud.order.get(db, id=paid.id).status == "refunded"

    def test_get_by_buyer_newest_first(self, db, template):
        make_order(db, template)
        make_order(db, template)
        make_order(db, template, buyer_id="someone_else")

        orders, total = crud.order.get_by_buyer(db, buyer_id="buyer_123")

        assert total == 2
        assert all(o.buyer_id == "buyer_123" for o in orders)


class TestRecordRedemption:
    def _redeem(self, db, order, code="SAVE10"):
        return crud.coupon.record_redemption(
            db,
            code=code,
            order_id=order.id,
            buyer_id=order.buyer_id,
            buyer_email=order.buyer_email,
            buyer_name=order.buyer_name,
            amount=order.total_amount,
            discount_applied=order.discount_amount,
        )

    def test_counts_once_per_order(self, db, order):
        coupon = make_coupon(db)

        assert self._redeem(db, order) == RedemptionOutcome.COUNTED
        assert self._redeem(db, order) == RedemptionOutcome.DUPLICATE

        db.expire_all()
        assert crud.coupon.get(db, id=coupon.id).used_count == 1
        assert db.query(CouponRedemption).count() == 1

    def test_counter_never_exceeds_limit(self, db, template):
        coupon = make_coupon(db, usage_limit=1)
        first = make_order(db, template)
        second = make_order(db, template)

        assert self._redeem(db, first) == RedemptionOutcome.COUNTED
        assert self._redeem(db, second) == RedemptionOutcome.OVER_LIMIT

        db.expire_all()
        assert crud.coupon.get(db, id=coupon.id).used_count == 1
        assert len(crud.coupon.get_redemptions(db, coupon_id=coupon.id)) == 2

    def test_missing_coupon(self, db, order):
        assert self._redeem(db, order, code="GONE") == RedemptionOutcome.COUPON_MISSING

    def test_code_lookup_ignores_case(self, db, order):
        make_coupon(db)
        assert self._redeem(db, order, code="save10") == RedemptionOutcome.COUNTED

from unittest.mock import MagicMock

from fastapi import BackgroundTasks

from storefront import crud
from storefront.services.post_purchase import OrderPaidEvent, PostPurchaseDispatcher
from tests.factories import make_coupon, make_order, make_template


def _event(order, **overrides):
    event = OrderPaidEvent.from_order(order)
    for key, value in overrides.items():
        setattr(event, key, value)
    return event


def test_publish_with_background_tasks_defers(session_factory, settings, email_sender, db):
    order = make_order(db, make_template(db))
    tasks = BackgroundTasks()
    dispatcher = PostPurchaseDispatcher(
        session_factory, settings, background_tasks=tasks, email_sender=email_sender
    )

    dispatcher.publish(_event(order))

    email_sender.assert_not_called()
    assert len(tasks.tasks) == 1


def test_failing_handler_does_not_stop_others(dispatcher, email_sender, db):
    order = make_order(db, make_template(db))
    dispatcher.record_coupon_redemption = MagicMock(side_effect=RuntimeError("boom"))
    dispatcher.record_coupon_redemption.__name__ = "record_coupon_redemption"

    dispatcher.run(_event(order, coupon_code="SAVE10"))

    email_sender.assert_called_once()


def test_redemption_over_limit_is_recorded(dispatcher, db):
    coupon = make_coupon(db, usage_limit=1, used_count=1)
    order = make_order(db, make_template(db), coupon_code="SAVE10", discount_amount=4990)

    dispatcher.record_coupon_redemption(_event(order))

    db.expire_all()
    assert crud.coupon.get(db, id=coupon.id).used_count == 1
    assert len(crud.coupon.get_redemptions(db, coupon_id=coupon.id)) == 1


def test_no_coupon_no_redemption(dispatcher, db):
    order = make_order(db, make_template(db))
    dispatcher.record_coupon_redemption(_event(order))
    assert crud.coupon.get_multi(db) == []


def test_email_skipped_when_notifications_disabled(dispatcher, email_sender, db):
    site = crud.site_settings.get_current(db)
    site.enable_email_notifications = False
    db.commit()
    order = make_order(db, make_template(db))

    dispatcher.send_purchase_notification(_event(order))

    email_sender.assert_not_called()


def test_email_carries_order_details(dispatcher, email_sender, settings, db):
    template = make_template(db, title="Habit Tracker")
    order = make_order(db, template, download_tokens=["a" * 64])

    dispatcher.send_purchase_notification(_event(order))

    args, kwargs = email_sender.call_args
    assert args == (settings,)
    assert kwargs["order_id"] == order.id
    assert kwargs["item_titles"] == ["Habit Tracker"]
    assert kwargs["tokens"] == ["a" * 64]
    assert kwargs["total_amount"] == 49900
    assert kwargs["currency"] == "INR"

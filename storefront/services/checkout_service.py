# storefront/services/checkout_service.py
import logging
from typing import Optional

from sqlalchemy.orm import Session

from storefront import crud
from storefront.core.config import Settings
from storefront.core.errors import (
    GatewayError,
    InvalidPaymentError,
    NotFoundError,
    OrderAlreadyProcessedError,
    OrderNotFoundError,
    PaymentNotConfirmedError,
    PaymentsDisabledError,
    ValidationError,
)
from storefront.models.order import Order, OrderStatus
from storefront.schemas.order import (
    CheckoutSessionResponse,
    CreateOrderInput,
    VerifyOrderInput,
    VerifyOrderResponse,
)
from storefront.schemas.token import TokenPayload
from storefront.services.audit import log_audit
from storefront.services.coupon_engine import CouponEngine
from storefront.services.download_tokens import DownloadTokenIssuer
from storefront.services.fulfillment_service import FulfillmentService
from storefront.services.payment.provider_factory import PaymentProviderFactory
from storefront.services.payment.provider_interface import (
    CONFIRMATION_INVALID_SIGNATURE,
    CONFIRMATION_SESSION_MISMATCH,
    CreateSessionParams,
    PaymentError,
    WebhookEvent,
    WebhookEventType,
)
from storefront.services.post_purchase import PostPurchaseDispatcher
from storefront.services.velocity_guard import VelocityGuard

logger = logging.getLogger(__name__)


class CheckoutService:
    """
    Orchestrates the order lifecycle:

    1. ``create_order``: gate, price, persist and open a gateway session
    2. ``verify_order``: confirm a client-reported payment
    3. ``handle_gateway_event``: reconcile asynchronous gateway notifications

    Both confirmation paths end in the same FulfillmentService call.
    """

    def __init__(
        self,
        db: Session,
        *,
        settings: Settings,
        provider_factory: PaymentProviderFactory,
        dispatcher: Optional[PostPurchaseDispatcher] = None,
    ):
        self.db = db
        self.settings = settings
        self.provider_factory = provider_factory
        self.fulfillment = FulfillmentService(
            db,
            dispatcher=dispatcher,
            token_issuer=DownloadTokenIssuer(ttl_days=settings.DOWNLOAD_TOKEN_TTL_DAYS),
        )

    # ------------------------------------------------------------------
    # Order creation
    # ------------------------------------------------------------------

    async def create_order(
        self, *, buyer: TokenPayload, input_data: CreateOrderInput
    ) -> CheckoutSessionResponse:
        site = crud.site_settings.get_current(self.db)
        if not site.enable_payments:
            raise PaymentsDisabledError()

        buyer_email = input_data.buyer_email or buyer.email
        if not buyer_email:
            raise ValidationError("Buyer email is required")
        buyer_name = input_data.buyer_name or buyer.name or buyer_email.split("@")[0]

        VelocityGuard(
            self.db,
            limit=self.settings.VELOCITY_LIMIT,
            window_minutes=self.settings.VELOCITY_WINDOW_MINUTES,
        ).check(buyer.sub)

        template = crud.template.get(self.db, id=input_data.template_id)
        if template is None:
            raise NotFoundError("Template not found", code="TEMPLATE_NOT_FOUND")
        if not template.is_available:
            raise ValidationError("Template is not available", code="TEMPLATE_UNAVAILABLE")
        if not template.in_stock:
            raise ValidationError("Template is out of stock", code="OUT_OF_STOCK")

        discount = 0
        if input_data.coupon_code:
            validation = CouponEngine(self.db).validate(
                input_data.coupon_code,
                buyer_email=buyer_email,
                catalog_price=template.price,
            )
            validation.raise_if_invalid()
            discount = validation.discount_amount

        currency = (template.currency or site.default_currency).upper()
        total = template.price - discount

        provider = None
        if total > 0:
            # Resolve before persisting so a configuration gap leaves no order behind
            provider = self.provider_factory.get_provider_for_currency(
                currency, preferred=input_data.provider
            )

        order = crud.order.create_order(
            self.db,
            buyer_id=buyer.sub,
            buyer_email=buyer_email,
            buyer_name=buyer_name,
            currency=currency,
            templates=[template],
            discount_amount=discount,
            coupon_code=input_data.coupon_code,
            payment_provider=provider.code if provider else None,
        )
        logger.info(
            f"Order {order.id} created for buyer {buyer.sub}: "
            f"{order.total_amount} {currency} (discount {discount})"
        )
        log_audit(
            self.db,
            action="order.created",
            entity_id=order.id,
            actor_type="buyer",
            actor_id=buyer.sub,
            new_state={"status": OrderStatus.CREATED.value, "total_amount": order.total_amount},
            coupon_code=order.coupon_code,
        )

        if provider is None:
            result = self.fulfillment.fulfill(order, f"free_{order.id}")
            return self._session_response(result.order)

        try:
            session = await provider.create_session(
                CreateSessionParams(
                    order_id=order.id,
                    amount=order.total_amount,
                    currency=currency,
                    customer_id=buyer.sub,
                    customer_email=buyer_email,
                    customer_name=buyer_name,
                    description=f"Purchase of {template.title}",
                    idempotency_key=f"checkout_{order.id}",
                    return_url=f"{self.settings.APP_URL.rstrip('/')}/checkout/result?order_id={order.id}",
                    metadata={"template_id": template.id},
                )
            )
        except PaymentError as e:
            logger.error(f"{provider.name} session creation failed for order {order.id}: {e.code} {e.message}")
            crud.order.mark_failed(self.db, order_id=order.id)
            log_audit(
                self.db,
                action="payment.session_failed",
                entity_id=order.id,
                provider=provider.code,
                error_code=e.code,
            )
            raise GatewayError()

        order = crud.order.attach_gateway_session(
            self.db, order=order, gateway_reference=session.session_ref
        )
        log_audit(
            self.db,
            action="payment.session_created",
            entity_id=order.id,
            provider=provider.code,
            gateway_reference=session.session_ref,
        )

        return self._session_response(
            order,
            client_session_token=session.client_session_token,
            public_key=session.public_key or provider.get_publishable_key(),
        )

    @staticmethod
    def _session_response(
        order: Order,
        *,
        client_session_token: Optional[str] = None,
        public_key: Optional[str] = None,
    ) -> CheckoutSessionResponse:
        return CheckoutSessionResponse(
            order_id=order.id,
            status=order.status,
            provider=order.payment_provider,
            gateway_reference=order.gateway_reference,
            client_session_token=client_session_token,
            public_key=public_key,
            currency=order.currency,
            subtotal=order.subtotal,
            discount_amount=order.discount_amount,
            total_amount=order.total_amount,
            coupon_code=order.coupon_code,
        )

    # ------------------------------------------------------------------
    # Client-driven verification
    # ------------------------------------------------------------------

    def _load_order(self, input_data: VerifyOrderInput) -> Order:
        if input_data.order_id:
            order = crud.order.get_with_items(self.db, order_id=input_data.order_id)
        else:
            order = crud.order.get_by_gateway_reference(
                self.db, gateway_reference=input_data.gateway_reference
            )
        if order is None:
            raise OrderNotFoundError()

        if input_data.gateway_reference and order.gateway_reference != input_data.gateway_reference:
            logger.warning(
                f"Gateway reference mismatch for order {order.id}: "
                f"got {input_data.gateway_reference}"
            )
            raise InvalidPaymentError("Order ID mismatch", code="INVALID_ORDER_ID")
        return order

    @staticmethod
    def _verified_response(order: Order, *, already_verified: bool) -> VerifyOrderResponse:
        return VerifyOrderResponse(
            message="Payment already verified" if already_verified else "Payment verified successfully",
            order_id=order.id,
            status=order.status,
            total_amount=order.total_amount,
            currency=order.currency,
            already_verified=already_verified,
        )

    async def verify_order(self, input_data: VerifyOrderInput) -> VerifyOrderResponse:
        order = self._load_order(input_data)

        if order.is_paid:
            return self._verified_response(order, already_verified=True)
        if order.is_terminal:
            raise OrderAlreadyProcessedError(order.id, order.status)
        if not order.gateway_reference or not order.payment_provider:
            raise InvalidPaymentError("Order has no payment session", code="INVALID_ORDER_ID")

        provider = self.provider_factory.get_provider(order.payment_provider)

        verification = None
        if input_data.signature or input_data.payment_id:
            verification = {
                "payment_id": input_data.payment_id,
                "signature": input_data.signature,
                "session_ref": input_data.gateway_reference,
            }

        try:
            confirmation = await provider.confirm_payment(
                order.gateway_reference, verification=verification
            )
        except PaymentError as e:
            logger.error(f"Could not confirm payment for order {order.id}: {e.code} {e.message}")
            raise GatewayError("Could not confirm payment with the gateway")

        if not confirmation.succeeded:
            if confirmation.status == CONFIRMATION_INVALID_SIGNATURE:
                raise InvalidPaymentError("Invalid payment signature")
            if confirmation.status == CONFIRMATION_SESSION_MISMATCH:
                raise InvalidPaymentError("Order ID mismatch", code="INVALID_ORDER_ID")
            logger.warning(
                f"Payment for order {order.id} not confirmed (gateway status {confirmation.status})"
            )
            raise PaymentNotConfirmedError()

        result = self.fulfillment.fulfill(order, confirmation.confirmation_id)
        return self._verified_response(result.order, already_verified=result.already_fulfilled)

    # ------------------------------------------------------------------
    # Gateway notifications
    # ------------------------------------------------------------------

    async def handle_gateway_event(self, provider_code: str, event: WebhookEvent) -> dict:
        """
        Reconcile one verified webhook event. Returns ``{"order_id": ...}``
        when the event maps to a local order.
        """
        if event.event_type == WebhookEventType.UNKNOWN:
            logger.info(f"Ignoring {provider_code} event type {event.provider_event_type}")
            return {}

        order = None
        if event.session_ref:
            order = crud.order.get_by_gateway_reference(
                self.db, gateway_reference=event.session_ref
            )
        if order is None:
            if event.event_type == WebhookEventType.PAYMENT_SUCCEEDED:
                logger.critical(
                    f"{provider_code} reports payment {event.confirmation_id} for unknown "
                    f"session {event.session_ref}; manual reconciliation required"
                )
            else:
                logger.warning(
                    f"{provider_code} event {event.event_id} references unknown session {event.session_ref}"
                )
            return {}

        if order.payment_provider != provider_code:
            logger.warning(
                f"{provider_code} event {event.event_id} for order {order.id} "
                f"which uses {order.payment_provider}"
            )
            return {"order_id": order.id}

        if event.event_type == WebhookEventType.PAYMENT_SUCCEEDED:
            await self._handle_payment_succeeded(provider_code, order)
        elif event.event_type == WebhookEventType.PAYMENT_FAILED:
            logger.info(
                f"Payment attempt failed for order {order.id}: {event.data.get('failureMessage')}"
            )
            log_audit(
                self.db,
                action="payment.failed",
                entity_id=order.id,
                actor_type="webhook",
                provider=provider_code,
                failure_message=event.data.get("failureMessage"),
            )
        elif event.event_type == WebhookEventType.PAYMENT_CANCELLED:
            if crud.order.mark_failed(self.db, order_id=order.id):
                logger.info(f"Order {order.id} marked failed after gateway cancellation")
                log_audit(
                    self.db,
                    action="order.failed",
                    entity_id=order.id,
                    actor_type="webhook",
                    previous_state={"status": "created"},
                    new_state={"status": "failed"},
                )
        elif event.event_type == WebhookEventType.REFUNDED:
            if crud.order.transition_to_refunded(self.db, order_id=order.id):
                logger.info(f"Order {order.id} refunded")
                log_audit(
                    self.db,
                    action="order.refunded",
                    entity_id=order.id,
                    actor_type="webhook",
                    previous_state={"status": "paid"},
                    new_state={"status": "refunded"},
                )
            else:
                logger.warning(f"Refund event for order {order.id} in status {order.status}")

        return {"order_id": order.id}

    async def _handle_payment_succeeded(self, provider_code: str, order: Order) -> None:
        if order.is_paid:
            logger.info(f"Order {order.id} already paid, webhook is a no-op")
            return

        provider = self.provider_factory.get_provider(provider_code)
        # Never trust the notification body alone: ask the gateway
        confirmation = await provider.confirm_payment(order.gateway_reference)
        if not confirmation.succeeded:
            logger.warning(
                f"Webhook success for order {order.id} not confirmed by status API "
                f"(status {confirmation.status})"
            )
            return

        self.fulfillment.fulfill(order, confirmation.confirmation_id)

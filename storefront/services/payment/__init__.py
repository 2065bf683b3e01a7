from .provider_factory import PaymentProviderFactory
from .provider_interface import (
    CreateSessionParams,
    PaymentConfirmation,
    PaymentError,
    PaymentProviderInterface,
    PaymentSession,
    WebhookEvent,
    WebhookEventType,
)

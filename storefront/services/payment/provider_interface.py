# storefront/services/payment/provider_interface.py
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional


# PaymentConfirmation.status values for rejected client proofs
CONFIRMATION_INVALID_SIGNATURE = "invalid_signature"
CONFIRMATION_SESSION_MISMATCH = "session_mismatch"


class WebhookEventType(str, Enum):
    """Standardized webhook event types."""
    PAYMENT_SUCCEEDED = "payment.succeeded"
    PAYMENT_FAILED = "payment.failed"
    PAYMENT_CANCELLED = "payment.cancelled"
    REFUNDED = "refund.succeeded"
    UNKNOWN = "unknown"


@dataclass
class CreateSessionParams:
    """Parameters for opening a gateway payment session."""
    order_id: str
    amount: int  # In smallest currency unit
    currency: str  # ISO 4217
    customer_id: str
    customer_email: str
    customer_name: str
    description: str
    idempotency_key: str
    return_url: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class PaymentSession:
    """A gateway session the client uses to complete payment."""
    session_ref: str
    client_session_token: Optional[str] = None
    public_key: Optional[str] = None
    provider_metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentConfirmation:
    """
    Outcome of a confirmation attempt.

    ``succeeded`` is True only for a definitive success reported by the
    gateway; pending or unknown states are not successes.
    """
    succeeded: bool
    confirmation_id: Optional[str] = None
    status: Optional[str] = None
    failure_message: Optional[str] = None


@dataclass
class WebhookEvent:
    """Standardized webhook event."""
    event_id: str
    event_type: WebhookEventType
    provider_event_type: str
    session_ref: Optional[str]
    confirmation_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    raw_payload: Dict[str, Any] = field(default_factory=dict)


class PaymentError(Exception):
    """Gateway or transport failure."""

    def __init__(self, code: str, message: str, retryable: bool = False):
        self.code = code
        self.message = message
        self.retryable = retryable
        super().__init__(message)


def get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup that works for plain dicts too."""
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower())
    if value is None:
        lowered = name.lower()
        for key, candidate in headers.items():
            if key.lower() == lowered:
                return candidate
    return value


class PaymentProviderInterface(ABC):
    """
    Abstract interface for payment gateways.

    Every adapter creates sessions, confirms payments against the gateway
    and authenticates webhook deliveries.
    """

    @property
    @abstractmethod
    def code(self) -> str:
        """Unique provider code (e.g., 'razorpay')."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable provider name."""

    @abstractmethod
    async def create_session(self, params: CreateSessionParams) -> PaymentSession:
        """Open a payment session for an order."""

    @abstractmethod
    async def confirm_payment(
        self,
        session_ref: str,
        verification: Optional[Dict[str, Any]] = None,
    ) -> PaymentConfirmation:
        """
        Confirm the payment for ``session_ref``.

        ``verification`` carries client-supplied proof (payment id and
        signature) where the gateway uses signed client callbacks. Without
        it the adapter queries the gateway's status API.
        """

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes, headers: Mapping[str, str]) -> bool:
        """Authenticate a webhook delivery."""

    @abstractmethod
    def parse_webhook_event(
        self, payload: bytes, headers: Optional[Mapping[str, str]] = None
    ) -> WebhookEvent:
        """Parse a verified webhook body into a WebhookEvent."""

    def get_publishable_key(self) -> Optional[str]:
        return None

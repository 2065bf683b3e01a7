from .cashfree_provider import CashfreeConfig, CashfreeProvider
from .razorpay_provider import RazorpayConfig, RazorpayProvider
from .stripe_provider import StripeConfig, StripeProvider

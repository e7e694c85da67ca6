import logging
from typing import Any, Dict
import stripe
from mahattati.core.config import settings
from mahattati.core.exceptions import UpstreamError

logger = logging.getLogger(__name__)

# Stripe reports amounts in the currency's minor unit (halalas, cents)
MINOR_UNITS = 100


class PaymentGateway:
    """Thin wrapper over Stripe PaymentIntents"""

    name = "stripe"

    @staticmethod
    def _api_key() -> str:
        if not settings.STRIPE_SECRET_KEY:
            raise UpstreamError("Payment gateway is not configured")
        return settings.STRIPE_SECRET_KEY

    def create_intent(self, amount: float, currency: str, metadata: Dict[str, str]) -> Dict[str, Any]:
        """Create a PaymentIntent and return its id and client secret"""
        api_key = self._api_key()
        try:
            intent = stripe.PaymentIntent.create(
                amount=int(round(amount * MINOR_UNITS)),
                currency=currency.lower(),
                metadata=metadata,
                api_key=api_key,
            )
        except stripe.StripeError as e:
            logger.error("Stripe create intent failed: %s", e)
            raise UpstreamError("Server error creating payment")
        return {"id": intent["id"], "client_secret": intent["client_secret"]}

    def get_intent_status(self, transaction_id: str) -> str:
        api_key = self._api_key()
        try:
            intent = stripe.PaymentIntent.retrieve(transaction_id, api_key=api_key)
        except stripe.StripeError as e:
            logger.error("Stripe retrieve intent %s failed: %s", transaction_id, e)
            raise UpstreamError("Server error confirming payment")
        return intent["status"]


payment_gateway = PaymentGateway()

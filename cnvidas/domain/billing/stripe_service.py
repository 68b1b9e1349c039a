"""Stripe service - customers, payment intents and webhook verification"""

import logging
from typing import Any, Optional

import stripe

from ...config import STRIPE_CURRENCY, STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET
from ...models import User

logger = logging.getLogger(__name__)


class PaymentProviderError(Exception):
    """Raised when Stripe rejects or cannot process a request"""


class StripePaymentService:
    """Service for Stripe API operations"""

    def __init__(self, api_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        self.api_key = api_key if api_key is not None else STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret if webhook_secret is not None else STRIPE_WEBHOOK_SECRET
        self.currency = STRIPE_CURRENCY

        if not self.api_key:
            logger.warning("STRIPE_SECRET_KEY not set; payment endpoints will fail until configured")
        else:
            stripe.api_key = self.api_key
            logger.info("Stripe client initialized")

    def is_available(self) -> bool:
        """Check if Stripe is configured"""
        return bool(self.api_key)

    def _require_client(self) -> None:
        if not self.api_key:
            raise PaymentProviderError("Stripe is not configured")

    async def ensure_customer(self, user: User) -> str:
        """Return the user's Stripe customer id, creating the customer if needed"""
        self._require_client()
        if user.stripe_customer_id:
            return user.stripe_customer_id

        try:
            customer = await stripe.Customer.create_async(
                email=user.email,
                name=user.full_name,
                metadata={"user_id": str(user.id)},
            )
        except stripe.StripeError as e:
            logger.error(f"❌ Failed to create Stripe customer for user {user.id}: {e}")
            raise PaymentProviderError(str(e)) from e

        logger.info(f"✅ Stripe customer {customer.id} created for user {user.id}")
        return customer.id

    async def create_payment_intent(
        self,
        amount: int,
        metadata: dict[str, Any],
        customer_id: Optional[str] = None,
        capture_method: str = "automatic",
        description: Optional[str] = None,
    ) -> Any:
        """
        Create a PaymentIntent in the configured currency

        Args:
            amount: Amount in cents
            metadata: Values copied back on webhooks (all stringified)
            customer_id: Stripe customer to attach
            capture_method: "automatic" or "manual" (pre-authorization)
            description: Shown on the Stripe dashboard
        """
        self._require_client()
        params: dict[str, Any] = {
            "amount": amount,
            "currency": self.currency,
            "capture_method": capture_method,
            "metadata": {key: str(value) for key, value in metadata.items()},
            "automatic_payment_methods": {"enabled": True},
        }
        if customer_id:
            params["customer"] = customer_id
        if description:
            params["description"] = description

        try:
            return await stripe.PaymentIntent.create_async(**params)
        except stripe.StripeError as e:
            logger.error(f"❌ Failed to create payment intent ({amount} {self.currency}): {e}")
            raise PaymentProviderError(str(e)) from e

    async def retrieve_payment_intent(self, payment_intent_id: str) -> Any:
        self._require_client()
        try:
            return await stripe.PaymentIntent.retrieve_async(payment_intent_id)
        except stripe.StripeError as e:
            logger.error(f"❌ Failed to retrieve payment intent {payment_intent_id}: {e}")
            raise PaymentProviderError(str(e)) from e

    async def capture_payment_intent(self, payment_intent_id: str) -> Any:
        self._require_client()
        try:
            return await stripe.PaymentIntent.capture_async(payment_intent_id)
        except stripe.StripeError as e:
            logger.error(f"❌ Failed to capture payment intent {payment_intent_id}: {e}")
            raise PaymentProviderError(str(e)) from e

    async def cancel_payment_intent(self, payment_intent_id: str) -> Any:
        self._require_client()
        try:
            return await stripe.PaymentIntent.cancel_async(payment_intent_id)
        except stripe.StripeError as e:
            logger.error(f"❌ Failed to cancel payment intent {payment_intent_id}: {e}")
            raise PaymentProviderError(str(e)) from e

    def construct_webhook_event(self, payload: bytes, signature: Optional[str]) -> Any:
        """
        Verify the Stripe-Signature header and parse the event.

        Raises:
            ValueError: Invalid payload or signature, or no webhook secret configured
        """
        if not self.webhook_secret:
            raise ValueError("STRIPE_WEBHOOK_SECRET not configured")
        if not signature:
            raise ValueError("Missing Stripe-Signature header")
        try:
            return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise ValueError(f"Invalid signature: {e}") from e


# Singleton instance
stripe_service = StripePaymentService()


def get_stripe_service() -> StripePaymentService:
    """Dependency injection for StripePaymentService"""
    return stripe_service

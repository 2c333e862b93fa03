from __future__ import annotations

import stripe

from storefront.core.config import settings
from storefront.core.logging import get_logger
from storefront.services.payment_providers import (
    PaymentProviderConfigurationError,
    PaymentProviderError,
    WebhookSignatureError,
)

logger = get_logger("storefront.payments.stripe")

SESSION_EXPAND = ["line_items", "payment_intent"]

# configuración global del SDK; la api key va por request
stripe.api_base = settings.STRIPE_API_BASE
stripe.max_network_retries = settings.STRIPE_MAX_NETWORK_RETRIES
stripe.default_http_client = stripe.HTTPXClient(timeout=settings.STRIPE_TIMEOUT_SECONDS, allow_sync_methods=True)


def _get_secret_key() -> str:
    key = settings.STRIPE_SECRET_KEY
    if not key:
        raise PaymentProviderConfigurationError("Stripe secret key is not configured")
    return key


def create_checkout_session(payload: dict) -> dict:
    try:
        session = stripe.checkout.Session.create(**payload, api_key=_get_secret_key())
    except stripe.StripeError as exc:
        logger.error("Stripe checkout session creation failed", extra={"error_type": type(exc).__name__})
        raise PaymentProviderError(f"Stripe error: {exc.user_message or exc}") from exc
    return session.to_dict()


def retrieve_checkout_session(session_id: str) -> dict:
    try:
        session = stripe.checkout.Session.retrieve(session_id, expand=SESSION_EXPAND, api_key=_get_secret_key())
    except stripe.StripeError as exc:
        raise PaymentProviderError(f"Stripe error: {exc.user_message or exc}") from exc
    return session.to_dict()


def construct_webhook_event(payload: bytes, signature: str | None) -> dict:
    """Verify the ``Stripe-Signature`` header before trusting the body."""
    secret = settings.STRIPE_WEBHOOK_SECRET
    if not secret:
        raise PaymentProviderConfigurationError("Stripe webhook secret is not configured")
    if not signature:
        raise WebhookSignatureError("Missing Stripe-Signature header")

    try:
        event = stripe.Webhook.construct_event(
            payload,
            signature,
            secret,
            tolerance=settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
        )
    except stripe.SignatureVerificationError as exc:
        raise WebhookSignatureError("Invalid Stripe signature") from exc
    except ValueError as exc:
        # cuerpo firmado pero que no es JSON válido (o no es UTF-8)
        raise WebhookSignatureError("Malformed webhook payload") from exc
    return event.to_dict()

import logging
from dataclasses import dataclass

import stripe
from fastapi.concurrency import run_in_threadpool

from book_orders.config import StripeSettings, get_stripe_settings
from book_orders.interfaces.payment_interface import AbstractPaymentInterface
from book_orders.schemas.order_schema import CheckoutLineItem, CheckoutSession

logger = logging.getLogger(__name__)


@dataclass
class StripePaymentRepository(AbstractPaymentInterface):
    """
    Opens Stripe hosted checkout sessions.

    The Stripe SDK is blocking, so the call runs in the threadpool. Errors
    raised by Stripe (`stripe.StripeError` and subclasses) are not caught
    here; the route maps them to a 502 response.

    Attributes:
        settings (StripeSettings): API key, redirect URLs and currency.
    """

    settings: StripeSettings

    async def create_checkout_session(
        self,
        line_items: list[CheckoutLineItem],
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
    ) -> CheckoutSession:
        session = await run_in_threadpool(
            stripe.checkout.Session.create,
            api_key=self.settings.secret_key,
            payment_method_types=["card"],
            line_items=[
                {
                    "price_data": {
                        "currency": self.settings.currency,
                        "product_data": {
                            "name": item.name,
                            "description": item.description,
                        },
                        "unit_amount": item.unit_amount,
                    },
                    "quantity": item.quantity,
                }
                for item in line_items
            ],
            mode="payment",
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
        )
        logger.info(
            "Stripe checkout session %s created for order %s",
            session.id,
            metadata.get("orderId"),
        )
        return CheckoutSession(session_id=session.id, url=session.url)


def get_payment_gateway() -> AbstractPaymentInterface:
    """FastAPI dependency returning the configured payment provider."""
    return StripePaymentRepository(settings=get_stripe_settings())

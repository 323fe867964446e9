import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class StripeSettings:
    secret_key: str | None
    success_url: str
    cancel_url: str
    currency: str = "usd"


def get_stripe_settings() -> StripeSettings:
    """Read the Stripe checkout settings from the environment (.env supported)."""
    return StripeSettings(
        secret_key=os.getenv("STRIPE_SECRET_KEY"),
        success_url=os.getenv("STRIPE_SUCCESS_URL", "http://localhost:3000/payment/success"),
        cancel_url=os.getenv("STRIPE_CANCEL_URL", "http://localhost:3000/payment/cancel"),
        currency=os.getenv("STRIPE_CURRENCY", "usd"),
    )

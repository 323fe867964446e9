from abc import ABC, abstractmethod


class AbstractPaymentInterface(ABC):
    """
    Contract for a hosted-checkout payment provider.

    `create_checkout_session` receives the priced line items, the URLs the
    provider redirects to after payment or cancellation, and a metadata bag
    echoed back by the provider's webhooks. It returns a `CheckoutSession`
    holding the provider's session id and the hosted payment URL.
    """

    @abstractmethod
    async def create_checkout_session(
        self, line_items, success_url, cancel_url, metadata
    ) -> None:
        pass

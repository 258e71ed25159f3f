import hashlib
import logging
from typing import Dict, Optional

import stripe

from .models import PaymentLink

logger = logging.getLogger(__name__)


class StripeAPIError(Exception):
    """Raised when Stripe rejects a call or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None,
                 payload: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.payload = payload or {}


def to_unit_amount(price: float) -> int:
    """Convert a decimal price to the smallest currency unit (cents)."""
    return int(round((price or 0) * 100))


def idempotency_key(step: str, *parts) -> str:
    """
    Stable key for one creation step, so repeated or concurrent attempts with
    the same inputs resolve to the same Stripe object.
    """
    digest = hashlib.sha256("|".join(str(part) for part in parts).encode("utf-8")).hexdigest()
    return f"notion-events-{step}-{digest[:48]}"


def clean_metadata(metadata: Dict[str, str]) -> Dict[str, str]:
    return {key: str(value) for key, value in metadata.items() if value is not None}


class StripeClient:
    """
    Products, prices, payment links and customers through the Stripe SDK.
    Every call carries this client's secret key instead of the global one.
    """

    def __init__(self, secret_key: str, currency: str = "usd"):
        self.secret_key = secret_key
        self.currency = currency

    async def _call(self, operation, idempotency: Optional[str] = None, **params):
        if not self.secret_key:
            raise StripeAPIError("Missing Stripe secret key")

        if idempotency:
            params["idempotency_key"] = idempotency
        try:
            return await operation(api_key=self.secret_key, **params)
        except stripe.StripeError as e:
            message = e.user_message or str(e)
            logger.error("Stripe API error: %s %s", e.http_status, message)
            raise StripeAPIError(message, status_code=e.http_status, code=e.code, payload=e.json_body) from e

    async def create_product(self, name: str, description: str, metadata: Dict[str, str],
                             url: Optional[str] = None, idempotency: Optional[str] = None):
        params = {"name": name, "description": description, "metadata": clean_metadata(metadata)}
        if url:
            params["url"] = url
        return await self._call(stripe.Product.create_async, idempotency, **params)

    async def create_price(self, product_id: str, unit_amount: int, idempotency: Optional[str] = None):
        return await self._call(stripe.Price.create_async, idempotency,
                                product=product_id, unit_amount=unit_amount, currency=self.currency)

    async def create_hosted_link(self, price_id: str, metadata: Dict[str, str], idempotency: Optional[str] = None):
        return await self._call(
            stripe.PaymentLink.create_async, idempotency,
            line_items=[{"price": price_id, "quantity": 1}],
            after_completion={"type": "hosted_confirmation"},
            billing_address_collection="auto",
            submit_type="pay",
            metadata=clean_metadata(metadata),
        )

    async def get_customer(self, customer_id: str) -> dict:
        customer = await self._call(stripe.Customer.retrieve_async, id=customer_id)
        return {
            "id": customer.id,
            "email": getattr(customer, "email", None),
            "name": getattr(customer, "name", None),
        }

    async def create_payment_link(self, product_name: str, description: str, price: float,
                                  metadata: Dict[str, str], product_url: Optional[str] = None) -> PaymentLink:
        """
        Create the product, price and payment link that sell one ticket.

        Every step carries an idempotency key derived from the ticket's
        identity and from every parameter sent, so a second attempt with the
        same inputs returns the objects created by the first one instead of
        new billable products.

        Args:
            product_name (str): Name shown at checkout.
            description (str): Product description.
            price (float): Ticket price in major currency units.
            metadata (dict): Metadata stored on the product and the payment link.
            product_url (str): Public page of the event, if known.

        Returns:
            PaymentLink: The hosted checkout URL and the ids backing it.
        """
        unit_amount = to_unit_amount(price)
        identity = (metadata.get("event_id"), metadata.get("ticket_id"), unit_amount, self.currency,
                    product_name, description, product_url or "")

        logger.info("Creating Stripe payment link for %s at %d %s", product_name, unit_amount, self.currency)

        product = await self.create_product(
            product_name, description, {"event_id": metadata.get("event_id"), "ticket_id": metadata.get("ticket_id")},
            url=product_url, idempotency=idempotency_key("product", *identity),
        )
        price_obj = await self.create_price(
            product.id, unit_amount, idempotency=idempotency_key("price", product.id, *identity),
        )
        link = await self.create_hosted_link(
            price_obj.id, metadata, idempotency=idempotency_key("link", price_obj.id, *identity),
        )

        logger.info("Payment link ready for %s: %s", product_name, link.url)
        return PaymentLink(
            url=link.url,
            product_id=product.id,
            price_id=price_obj.id,
            payment_link_id=link.id,
        )

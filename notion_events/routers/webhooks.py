import json
import logging
from datetime import datetime, timezone
from typing import Optional

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Request

from ..config import Settings, get_settings
from ..dependencies import get_notion, get_stripe
from ..notion_service import NotionAPIError, NotionClient
from ..stripe_service import StripeAPIError, StripeClient

logger = logging.getLogger(__name__)

router = APIRouter()

# Maximum age of a signed webhook, in seconds
SIGNATURE_TOLERANCE = 300

CHECKOUT_COMPLETED = "checkout.session.completed"


def verify_signature(payload: bytes, header: Optional[str], secret: str,
                     tolerance: int = SIGNATURE_TOLERANCE) -> bool:
    """
    Check a Stripe-Signature header ("t=<timestamp>,v1=<hex digest>,...") against the raw body.
    """
    # Stripe signature headers are ASCII; the SDK compares digests as str
    if not header or not header.isascii():
        return False
    try:
        stripe.WebhookSignature.verify_header(payload.decode("utf-8"), header, secret, tolerance)
    except (stripe.SignatureVerificationError, UnicodeDecodeError) as e:
        logger.warning("Rejected Stripe webhook signature: %s", e)
        return False
    return True


async def fetch_customer(stripe_client: StripeClient, customer_id: Optional[str]) -> Optional[dict]:
    if not customer_id:
        return None
    try:
        return await stripe_client.get_customer(customer_id)
    except StripeAPIError as e:
        logger.error("Error fetching customer %s: %s", customer_id, e.message)
        return None


@router.post("/stripe/webhook")
async def stripe_webhook(request: Request, stripe_signature: Optional[str] = Header(None),
                         settings: Settings = Depends(get_settings),
                         notion: NotionClient = Depends(get_notion),
                         stripe_client: StripeClient = Depends(get_stripe)):
    """
    Record completed checkouts from payment links in the Revenue database.
    """
    payload = await request.body()

    if settings.stripe_webhook_secret:
        if not verify_signature(payload, stripe_signature, settings.stripe_webhook_secret):
            raise HTTPException(status_code=400, detail="Invalid Stripe signature")
    else:
        logger.warning("STRIPE_WEBHOOK_SECRET is not set; accepting unsigned webhook")

    try:
        event = json.loads(payload)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")
    if not isinstance(event, dict):
        raise HTTPException(status_code=400, detail="Invalid event payload")

    event_type = event.get("type")
    logger.info("Processing Stripe webhook event: %s", event_type)

    if event_type != CHECKOUT_COMPLETED:
        return {"received": True, "message": f"Event type {event_type} ignored"}

    session = (event.get("data") or {}).get("object") or {}
    metadata = session.get("metadata") or {}
    if metadata.get("revenue_object") != "true":
        return {"received": True, "message": "No Revenue object requested in metadata"}

    if not settings.revenue_database_id:
        logger.error("Missing Notion Revenue Database ID in environment variables")
        raise HTTPException(status_code=500, detail="Revenue database is not configured")

    buyer_email = buyer_name = None
    if metadata.get("attach_buyer") == "true":
        customer = await fetch_customer(stripe_client, session.get("customer"))
        details = customer or session.get("customer_details") or {}
        buyer_email = details.get("email")
        buyer_name = details.get("name")

    try:
        revenue = await notion.add_revenue(
            settings.revenue_database_id,
            name=metadata.get("revenue_name") or datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC"),
            income=(session.get("amount_total") or 0) / 100,
            product_id=metadata.get("ticket_id"),
            buyer_email=buyer_email,
            buyer_name=buyer_name,
        )
    except NotionAPIError as e:
        logger.error("Error creating Revenue object: %s", e.message)
        raise HTTPException(status_code=500, detail=f"Error creating Revenue object: {e.message}")

    logger.info("Created Revenue object %s", revenue.get("id"))
    return {"received": True, "message": "Revenue object created successfully", "revenueId": revenue.get("id")}

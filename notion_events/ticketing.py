import logging
from typing import List, Optional

from .config import Settings
from .models import Event, EventPage, PaymentLink, Ticket, TicketOption
from .notion_service import NotionAPIError, NotionClient
from .stripe_service import StripeAPIError, StripeClient

logger = logging.getLogger(__name__)


def product_name_for(event: Event, ticket: Ticket) -> str:
    if ticket.name:
        return f"{event.name} - {ticket.name}"
    return f"Ticket: {event.name}"


def payment_link_metadata(event: Event, ticket: Ticket) -> dict:
    # revenue_object/attach_buyer are read back by the Stripe webhook
    return {
        "event_id": event.id,
        "event_name": event.name,
        "ticket_id": ticket.id,
        "revenue_name": product_name_for(event, ticket),
        "revenue_object": "true",
        "attach_buyer": "true",
    }


async def create_ticket_link(event: Event, ticket: Ticket, stripe: StripeClient,
                             settings: Settings) -> Optional[PaymentLink]:
    """
    Create the Stripe payment link for one priced ticket.

    Returns:
        PaymentLink | None: None when Stripe refused or could not be reached.
    """
    product_url = f"{settings.public_base_url}/events/{event.id}" if settings.public_base_url else None
    try:
        return await stripe.create_payment_link(
            product_name_for(event, ticket),
            ticket.description or f"Admission to {event.name}",
            ticket.price,
            payment_link_metadata(event, ticket),
            product_url=product_url,
        )
    except StripeAPIError as e:
        logger.error("Failed to create payment link for ticket %s: %s", ticket.name, e.message)
        return None


async def persist_ticket_link(notion: NotionClient, ticket: Ticket, link: str):
    try:
        await notion.update_ticket_payment_link(ticket.id, link)
        logger.info("Saved payment link on ticket %s", ticket.id)
    except NotionAPIError as e:
        logger.error("Error saving payment link on ticket %s: %s", ticket.id, e.message)


async def persist_event_link(notion: NotionClient, event: Event, link: str):
    try:
        await notion.update_event_ticket_link(event.id, link)
        logger.info("Saved ticket link on event %s", event.id)
    except NotionAPIError as e:
        logger.error("Error saving ticket link on event %s: %s", event.id, e.message)


async def build_ticket_options(event: Event, tickets: List[Ticket], notion: NotionClient,
                               stripe: StripeClient, settings: Settings) -> List[TicketOption]:
    options = []
    for ticket in tickets:
        if ticket.is_free:
            options.append(TicketOption(ticket=ticket))
            continue

        if ticket.stripe_payment_link:
            options.append(TicketOption(ticket=ticket, ticket_link=ticket.stripe_payment_link))
            continue

        # An event-level link covers every priced ticket that has none of its own
        if event.ticket_link:
            options.append(TicketOption(ticket=ticket, ticket_link=event.ticket_link))
            continue

        if not event.name or not event.id:
            logger.error("Missing event data; not creating a payment link for ticket %s", ticket.name)
            options.append(TicketOption(ticket=ticket))
            continue

        payment_link = await create_ticket_link(event, ticket, stripe, settings)
        if payment_link is None:
            options.append(TicketOption(ticket=ticket))
            continue

        await persist_ticket_link(notion, ticket, payment_link.url)
        options.append(TicketOption(ticket=ticket, ticket_link=payment_link.url))

    return options


async def build_event_page(event: Event, notion: NotionClient, stripe: StripeClient,
                           settings: Settings) -> EventPage:
    """
    Resolve how tickets for an event are sold, provisioning Stripe payment
    links for priced tickets that have none yet.

    Failures from Stripe or from writing links back to Notion never fail the
    page; the affected tickets are rendered without a purchase link.
    """
    page = EventPage(event=event, ticket_link=event.ticket_link)

    tickets = await notion.get_tickets_for_event(settings.products_database_id, event.id)
    if not tickets:
        logger.info("No tickets found for event %s", event.id)
        return page

    page.has_tickets = True

    if all(ticket.is_free for ticket in tickets):
        logger.info("Event %s is free; no payment link needed", event.id)
        page.is_free_event = True
        page.ticket_options = [TicketOption(ticket=ticket) for ticket in tickets]
        return page

    page.ticket_options = await build_ticket_options(event, tickets, notion, stripe, settings)

    if not page.ticket_link:
        first_link = next((option.ticket_link for option in page.ticket_options if option.ticket_link), "")
        if first_link:
            await persist_event_link(notion, event, first_link)
            page.ticket_link = first_link
        else:
            logger.info("No payment links available for event %s", event.id)

    return page

from typing import List

from pydantic import BaseModel

from .enums.contact_preference import ContactPreference


# Event record as read from the Events database
class Event(BaseModel):
    id: str
    name: str = "Untitled"
    description: str = ""
    date: str = ""  # ISO date or datetime, as stored in Notion
    image: str = ""
    price: float = 0
    ticket_link: str = ""


# Ticket record as read from the Products database
class Ticket(BaseModel):
    id: str
    name: str = "Untitled"
    description: str = ""
    price: float = 0
    stripe_payment_link: str = ""

    @property
    def is_free(self) -> bool:
        return self.price <= 0


# Ticket as shown on the event page, with the link it is sold through
class TicketOption(BaseModel):
    ticket: Ticket
    ticket_link: str = ""


class GuestSubmission(BaseModel):
    name: str
    email: str
    event_id: str
    phone: str = ""
    contact_preference: str = ContactPreference.DO_NOT_CONTACT.value
    membership_type: str = "Guest"
    message: str = ""


class PaymentLink(BaseModel):
    url: str
    product_id: str
    price_id: str
    payment_link_id: str


# Everything the event page template needs
class EventPage(BaseModel):
    event: Event
    ticket_options: List[TicketOption] = []
    ticket_link: str = ""
    is_free_event: bool = False
    has_tickets: bool = False

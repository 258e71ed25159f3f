import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from .config import NOTION_API_URL, NOTION_VERSION
from .models import Event, GuestSubmission, Ticket

logger = logging.getLogger(__name__)

# Notion caps query results at 100 per page
PAGE_SIZE = 100
COMMENT_TITLE_LENGTH = 100

# Errors Notion returns for ids that do not resolve to a page
NOT_FOUND_CODES = ("object_not_found", "validation_error")

NOTION_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{32}$")


class NotionAPIError(Exception):
    """
    Raised when the Notion API answers with an error object, a non-2xx status,
    or cannot be reached at all.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None,
                 payload: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.payload = payload or {}

    def to_dict(self) -> dict:
        return {"status": self.status_code, "code": self.code, "message": self.message}


# === Property helpers ===

def normalize_id(notion_id: str) -> str:
    """Notion accepts ids with or without dashes; compare them without."""
    return (notion_id or "").replace("-", "").lower()


def is_valid_notion_id(notion_id: str) -> bool:
    return bool(NOTION_ID_PATTERN.match(normalize_id(notion_id)))


def extract_title(prop: Optional[dict], default: str = "Untitled") -> str:
    items = (prop or {}).get("title") or []
    if items and items[0].get("plain_text"):
        return items[0]["plain_text"]
    return default


def extract_rich_text(prop: Optional[dict]) -> str:
    items = (prop or {}).get("rich_text") or []
    if items:
        return items[0].get("plain_text") or ""
    return ""


def extract_number(prop: Optional[dict]) -> float:
    value = (prop or {}).get("number")
    try:
        return float(value) if value is not None else 0
    except (TypeError, ValueError):
        return 0


def extract_url(prop: Optional[dict]) -> str:
    return (prop or {}).get("url") or ""


def extract_image_url(prop: Optional[dict]) -> str:
    """
    Resolve the event image from whichever property type the database uses.

    Tried in order: a URL property, a files property (first file, external or
    Notion-hosted), a rich text property, and a plain text property. Anything
    else, including an empty files list, yields an empty string.
    """
    if not prop:
        return ""

    prop_type = prop.get("type")

    if prop_type == "url" and prop.get("url"):
        return prop["url"]

    if prop_type == "files" and prop.get("files"):
        first_file = prop["files"][0]
        if first_file.get("type") == "external":
            return (first_file.get("external") or {}).get("url") or ""
        if first_file.get("type") == "file":
            return (first_file.get("file") or {}).get("url") or ""
        return ""

    if prop_type == "rich_text" and prop.get("rich_text"):
        return prop["rich_text"][0].get("plain_text") or ""

    if prop_type == "text" and prop.get("text"):
        return prop["text"].get("content") or ""

    return ""


def page_to_event(page: dict) -> Event:
    properties = page.get("properties") or {}
    return Event(
        id=page["id"],
        name=extract_title(properties.get("Name")),
        description=extract_rich_text(properties.get("Description")),
        date=((properties.get("Date") or {}).get("date") or {}).get("start") or "",
        image=extract_image_url(properties.get("Image")),
        price=extract_number(properties.get("Price")),
        ticket_link=extract_url(properties.get("Event Ticket Link")),
    )


def page_to_ticket(page: dict) -> Ticket:
    properties = page.get("properties") or {}
    return Ticket(
        id=page["id"],
        name=extract_title(properties.get("Name")),
        description=extract_rich_text(properties.get("Description")),
        price=extract_number(properties.get("Price")),
        stripe_payment_link=extract_url(properties.get("Stripe Payment Link")),
    )


def title_property(content: str) -> dict:
    return {"title": [{"text": {"content": content}}]}


def rich_text_property(content: str) -> dict:
    return {"rich_text": [{"text": {"content": content}}]}


def relation_property(*page_ids: str) -> dict:
    return {"relation": [{"id": page_id} for page_id in page_ids]}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class NotionClient:
    """
    Thin async wrapper over the Notion REST API, scoped to the Events, Products,
    People, Comments and Revenue databases this site works with.
    """

    def __init__(self, http: httpx.AsyncClient, token: str, base_url: str = NOTION_API_URL,
                 version: str = NOTION_VERSION):
        self.http = http
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.version = version

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
            "Notion-Version": self.version,
        }

    async def _request(self, method: str, path: str, payload: Optional[dict] = None) -> dict:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = await self.http.request(method, url, headers=self._headers(), json=payload)
        except httpx.HTTPError as e:
            raise NotionAPIError(f"Error calling Notion API: {str(e)}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_error or data.get("object") == "error":
            message = data.get("message") or f"Notion API returned HTTP {response.status_code}"
            logger.error("Notion API error on %s %s: %s %s", method, path, response.status_code, message)
            raise NotionAPIError(message, status_code=response.status_code, code=data.get("code"), payload=data)

        return data

    # === Generic page/database operations ===

    async def query_database(self, database_id: str, query_filter: Optional[dict] = None) -> List[dict]:
        """
        Query a database and follow pagination cursors until every row is read.
        """
        results: List[dict] = []
        cursor = None
        while True:
            body: Dict[str, Any] = {"page_size": PAGE_SIZE}
            if query_filter:
                body["filter"] = query_filter
            if cursor:
                body["start_cursor"] = cursor

            data = await self._request("POST", f"databases/{database_id}/query", body)
            results.extend(data.get("results") or [])

            cursor = data.get("next_cursor")
            if not data.get("has_more") or not cursor:
                return results

    async def get_page(self, page_id: str) -> dict:
        return await self._request("GET", f"pages/{page_id}")

    async def create_page(self, database_id: str, properties: dict) -> dict:
        return await self._request("POST", "pages", {
            "parent": {"database_id": database_id},
            "properties": properties,
        })

    async def update_page(self, page_id: str, properties: dict) -> dict:
        return await self._request("PATCH", f"pages/{page_id}", {"properties": properties})

    # === Events ===

    async def get_all_events(self, database_id: str) -> List[Event]:
        pages = await self.query_database(database_id)
        return [page_to_event(page) for page in pages if page.get("id")]

    async def get_event(self, database_id: str, event_id: str) -> Optional[Event]:
        """
        Fetch one event by page id.

        Returns:
            Event | None: None when the id does not resolve to a page of the events database.
        """
        if not is_valid_notion_id(event_id):
            return None

        try:
            page = await self.get_page(event_id)
        except NotionAPIError as e:
            if e.code in NOT_FOUND_CODES:
                return None
            raise

        if not page.get("id"):
            return None

        parent = page.get("parent") or {}
        if database_id and parent.get("type") == "database_id" and \
                normalize_id(parent.get("database_id")) != normalize_id(database_id):
            logger.warning("Page %s does not belong to the events database", event_id)
            return None

        return page_to_event(page)

    async def update_event_ticket_link(self, event_id: str, link: str) -> dict:
        return await self.update_page(event_id, {"Event Ticket Link": {"url": link}})

    # === Tickets (Products database) ===

    async def get_tickets_for_event(self, products_database_id: str, event_id: str) -> List[Ticket]:
        """
        Fetch the tickets related to an event. Errors are logged and yield no tickets.
        """
        if not products_database_id:
            logger.warning("Products database is not configured; no tickets for event %s", event_id)
            return []

        try:
            pages = await self.query_database(products_database_id, {
                "property": "Events",
                "relation": {"contains": event_id},
            })
        except NotionAPIError as e:
            logger.error("Error fetching tickets for event %s: %s", event_id, e.message)
            return []

        tickets = [page_to_ticket(page) for page in pages if page.get("id")]
        logger.info("Found %d tickets for event %s", len(tickets), event_id)
        return tickets

    async def update_ticket_payment_link(self, ticket_id: str, link: str) -> dict:
        return await self.update_page(ticket_id, {"Stripe Payment Link": {"url": link}})

    # === Guestbook (People and Comments databases) ===

    async def add_guest(self, people_database_id: str, guest: GuestSubmission) -> dict:
        """
        Create a Guest in the People database.

        The Events Attended relation is set by update_events_attended in a
        second call once the page exists.
        """
        if not people_database_id:
            raise ValueError("Missing people database ID")

        properties = {
            "Name": title_property(guest.name),
            "Email": {"email": guest.email},
            "Contact Preference": {"select": {"name": guest.contact_preference}},
            "Guestbook Date": {"date": {"start": utc_now_iso()}},
            "Membership Type": {"multi_select": [{"name": guest.membership_type}]},
        }
        if guest.phone:
            properties["Phone"] = {"phone_number": guest.phone}

        page = await self.create_page(people_database_id, properties)
        logger.info("Created guest %s for event %s", page.get("id"), guest.event_id)
        return page

    async def update_events_attended(self, person_id: str, event_id: str) -> dict:
        if not person_id or not event_id:
            raise ValueError("Both person ID and event ID are required")
        return await self.update_page(person_id, {"Events Attended": relation_property(event_id)})

    async def add_comment(self, comments_database_id: str, person_id: str, event_id: str, text: str) -> dict:
        if not comments_database_id:
            raise ValueError("Missing comments database ID")
        if not person_id or not event_id or not text:
            raise ValueError("Missing required comment data fields")

        return await self.create_page(comments_database_id, {
            "Name": title_property(text[:COMMENT_TITLE_LENGTH]),
            "People": relation_property(person_id),
            "Event Comments": relation_property(event_id),
        })

    # === Revenue database ===

    async def add_revenue(self, revenue_database_id: str, name: str, income: float,
                          product_id: Optional[str] = None, buyer_email: Optional[str] = None,
                          buyer_name: Optional[str] = None) -> dict:
        if not revenue_database_id:
            raise ValueError("Missing revenue database ID")

        properties = {
            "Name": title_property(name),
            "Income": {"number": income},
            "Created time": {"date": {"start": utc_now_iso()}},
        }
        if product_id:
            properties["product"] = relation_property(product_id)
        if buyer_email:
            properties["Buyer"] = rich_text_property(buyer_email)
        if buyer_name:
            properties["Buyer Name"] = rich_text_property(buyer_name)

        return await self.create_page(revenue_database_id, properties)

import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Form, Request
from starlette.responses import RedirectResponse

from ..config import Settings, get_settings
from ..dependencies import get_notion
from ..enums.contact_preference import ContactPreference
from ..enums.guestbook_status import GuestbookStatus
from ..models import GuestSubmission
from ..notion_service import NotionAPIError, NotionClient
from ..rendering import raise_debug_page

logger = logging.getLogger(__name__)

router = APIRouter()

# Notion's message when a property named in the request is missing from the database
SCHEMA_MISMATCH_MESSAGE = "not a property that exists"


def event_page_url(request: Request, event_id: str, status: GuestbookStatus, reason: str = "") -> str:
    url = f"{str(request.base_url).rstrip('/')}/events/{quote(event_id, safe='')}?guestbook={status.value}"
    if reason:
        url += f"&reason={reason}"
    return url


def is_safe_redirect(target: Optional[str]) -> bool:
    """Only same-site relative paths are accepted as redirect overrides."""
    return bool(target) and target.startswith("/") and not target.startswith(("//", "/\\"))


@router.post("/guestbook")
async def sign_guestbook(
        request: Request,
        event_id: Optional[str] = Form(None, alias="eventId"),
        name: Optional[str] = Form(None),
        email: Optional[str] = Form(None),
        phone: Optional[str] = Form(None),
        contact_preference: Optional[str] = Form(None, alias="contactPreference"),
        message: Optional[str] = Form(None),
        redirect: Optional[str] = None,
        settings: Settings = Depends(get_settings),
        notion: NotionClient = Depends(get_notion),
):
    """
    Record a guestbook submission: create the Guest, link it to the event,
    and store the message as a Comment.

    Only the Guest creation decides the outcome. The attendance link and the
    comment are best-effort: their failures are logged and the visitor is
    still thanked.
    """
    submitted = {
        "name": name,
        "email": email,
        "phone": phone,
        "contactPreference": contact_preference,
        "message": message,
        "eventId": event_id,
    }
    missing_fields = [field for field in ("name", "email", "eventId") if not submitted[field]]
    if missing_fields:
        logger.warning("Guestbook submission missing fields: %s", ", ".join(missing_fields))
        raise_debug_page(settings, 400, "Missing Required Fields", {
            "guestData": submitted,
            "missingFields": missing_fields,
        })

    if not settings.people_database_id:
        logger.error("Missing Notion People Database ID in environment variables")
        raise_debug_page(settings, 500, "Configuration Error", {
            "error": "Missing Notion People Database ID",
            "env": settings.masked(),
        })

    guest = GuestSubmission(
        name=name,
        email=email,
        event_id=event_id,
        phone=phone or "",
        contact_preference=contact_preference or ContactPreference.DO_NOT_CONTACT.value,
        message=message or "",
    )

    try:
        person = await notion.add_guest(settings.people_database_id, guest)
    except NotionAPIError as e:
        if SCHEMA_MISMATCH_MESSAGE in (e.message or ""):
            logger.warning("Schema mismatch in People database: %s", e.message)
            return RedirectResponse(
                event_page_url(request, guest.event_id, GuestbookStatus.ERROR, reason="schema"),
                status_code=303,
            )
        raise_debug_page(settings, 500, "Notion API Error (Guestbook)", {
            "guestData": guest.model_dump(),
            "notionResponse": e.payload or e.to_dict(),
            "env": settings.masked(),
        })

    person_id = person.get("id")
    if not person_id:
        raise_debug_page(settings, 500, "Notion API Error", {
            "guestData": guest.model_dump(),
            "error": "No page id in the response from Notion API",
            "env": settings.masked(),
        })

    try:
        await notion.update_events_attended(person_id, guest.event_id)
        logger.info("Events Attended updated for guest %s", person_id)
    except (NotionAPIError, ValueError):
        logger.exception("Error updating Events Attended for guest %s", person_id)

    if guest.message:
        if not settings.comments_database_id:
            logger.warning("Comments database is not configured; dropping guestbook message")
        else:
            try:
                await notion.add_comment(settings.comments_database_id, person_id, guest.event_id, guest.message)
                logger.info("Comment added for guest %s", person_id)
            except (NotionAPIError, ValueError):
                logger.exception("Error adding comment for guest %s", person_id)

    logger.info("Guestbook submission stored for event %s", guest.event_id)

    if is_safe_redirect(redirect):
        return RedirectResponse(redirect, status_code=303)
    return RedirectResponse(event_page_url(request, guest.event_id, GuestbookStatus.THANKS), status_code=303)

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from ..config import Settings, get_settings, mask_secret
from ..dependencies import get_notion, get_stripe
from ..enums.contact_preference import ContactPreference
from ..notion_service import NotionAPIError, NotionClient
from ..rendering import raise_debug_page, templates
from ..stripe_service import StripeClient
from ..ticketing import build_event_page

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_class=HTMLResponse)
@router.get("/events", response_class=HTMLResponse)
async def list_events(request: Request, settings: Settings = Depends(get_settings),
                      notion: NotionClient = Depends(get_notion)):
    """
    Render every event in the events database.
    """
    try:
        events = await notion.get_all_events(settings.events_database_id)
    except NotionAPIError as e:
        logger.error("Error fetching events: %s", e.message)
        raise_debug_page(settings, 500, "Error fetching events", {
            "error": e.to_dict(),
            "token": mask_secret(settings.notion_token) or "No token provided",
            "databaseId": settings.events_database_id,
        })

    if not events:
        logger.warning("No events returned from database %s", settings.events_database_id)
        raise_debug_page(settings, 200, "No events found", {
            "token": mask_secret(settings.notion_token) or "No token provided",
            "databaseId": settings.events_database_id,
            "message": "No events were returned from Notion. Make sure your database has events "
                       "and the integration has access.",
        })

    return templates.TemplateResponse(
        request=request,
        name="events.html",
        context={"events": events, "site_title": settings.site_title},
    )


@router.get("/events/{event_id}", response_class=HTMLResponse)
async def get_event_page(request: Request, event_id: str, guestbook: str = "", reason: str = "",
                         settings: Settings = Depends(get_settings),
                         notion: NotionClient = Depends(get_notion),
                         stripe: StripeClient = Depends(get_stripe)):
    """
    Render one event, provisioning payment links for its priced tickets on the way.
    """
    try:
        event = await notion.get_event(settings.events_database_id, event_id)
    except NotionAPIError as e:
        logger.error("Error fetching event %s: %s", event_id, e.message)
        raise_debug_page(settings, 500, "Error fetching event", {
            "eventId": event_id,
            "databaseId": settings.events_database_id,
            "error": e.to_dict(),
            "token": mask_secret(settings.notion_token) or "No token provided",
        })

    if event is None:
        raise_debug_page(settings, 404, "Event Not Found", {
            "eventId": event_id,
            "databaseId": settings.events_database_id,
            "message": "No event was found with this ID. Make sure the event exists in your Notion "
                       "database and is shared with your integration.",
        })

    page = await build_event_page(event, notion, stripe, settings)

    return templates.TemplateResponse(
        request=request,
        name="event.html",
        context={
            "page": page,
            "event": page.event,
            "guestbook_status": guestbook,
            "guestbook_reason": reason,
            "contact_preferences": [preference.value for preference in ContactPreference],
            "site_title": settings.site_title,
        },
    )

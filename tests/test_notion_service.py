import pytest

from fakes import (COMMENTS_DB, EVENT_ID, EVENTS_DB, NOTION, PEOPLE_DB, PERSON_ID, PRODUCTS_DB, event_page,
                   json_body, notion_error, query_result, ticket_page)
from notion_events.models import GuestSubmission
from notion_events.notion_service import (NotionAPIError, extract_image_url, is_valid_notion_id, page_to_event,
                                          page_to_ticket)


# === Property extraction ===

def test_image_from_url_property():
    assert extract_image_url({"type": "url", "url": "https://img.example/a.jpg"}) == "https://img.example/a.jpg"


def test_image_from_external_file():
    prop = {"type": "files", "files": [{"type": "external", "external": {"url": "https://img.example/b.png"}}]}
    assert extract_image_url(prop) == "https://img.example/b.png"


def test_image_from_notion_hosted_file():
    prop = {"type": "files", "files": [{"type": "file", "file": {"url": "https://s3.example/c.png"}},
                                       {"type": "external", "external": {"url": "https://ignored"}}]}
    assert extract_image_url(prop) == "https://s3.example/c.png"


def test_image_from_empty_files_is_blank():
    assert extract_image_url({"type": "files", "files": []}) == ""


def test_image_from_rich_text_and_text():
    assert extract_image_url({"type": "rich_text", "rich_text": [{"plain_text": "https://x/y.jpg"}]}) == "https://x/y.jpg"
    assert extract_image_url({"type": "text", "text": {"content": "https://x/z.jpg"}}) == "https://x/z.jpg"


def test_image_missing_or_unknown_type():
    assert extract_image_url(None) == ""
    assert extract_image_url({"type": "url", "url": None}) == ""
    assert extract_image_url({"type": "checkbox", "checkbox": True}) == ""


def test_page_to_event_defaults():
    event = page_to_event({"id": EVENT_ID, "properties": {}})

    assert event.name == "Untitled"
    assert event.description == ""
    assert event.date == ""
    assert event.image == ""
    assert event.ticket_link == ""


def test_page_to_event_reads_properties():
    event = page_to_event(event_page(ticket_link="https://buy.stripe.com/x"))

    assert event.name == "Spring Social"
    assert event.description == "Music by the river"
    assert event.date == "2025-03-15"
    assert event.ticket_link == "https://buy.stripe.com/x"


def test_page_to_ticket_missing_price_is_free():
    ticket = page_to_ticket(ticket_page(price=None))

    assert ticket.price == 0
    assert ticket.is_free


def test_notion_id_validation():
    assert is_valid_notion_id(EVENT_ID)
    assert is_valid_notion_id(EVENT_ID.replace("-", ""))
    assert not is_valid_notion_id("../users")
    assert not is_valid_notion_id("")


# === API calls ===

@pytest.mark.anyio
async def test_query_database_follows_cursors(notion, upstream):
    url = f"{NOTION}/databases/{EVENTS_DB}/query"
    upstream.add("POST", url, query_result([event_page(name="First")], next_cursor="cursor-2"))
    upstream.add("POST", url, query_result([event_page(name="Second")]))

    events = await notion.get_all_events(EVENTS_DB)

    assert [event.name for event in events] == ["First", "Second"]
    requests = upstream.calls("POST", url)
    assert "start_cursor" not in json_body(requests[0])
    assert json_body(requests[1])["start_cursor"] == "cursor-2"


@pytest.mark.anyio
async def test_requests_carry_auth_and_version_headers(notion, upstream):
    upstream.add("POST", f"{NOTION}/databases/{EVENTS_DB}/query", query_result([]))

    await notion.get_all_events(EVENTS_DB)

    request = upstream.requests[0]
    assert request.headers["Authorization"] == "Bearer secret_notion_token_1234"
    assert request.headers["Notion-Version"] == "2022-06-28"


@pytest.mark.anyio
async def test_error_object_raises(notion, upstream):
    upstream.add("POST", f"{NOTION}/databases/{EVENTS_DB}/query",
                 notion_error("API token is invalid.", code="unauthorized", status=401), status_code=401)

    with pytest.raises(NotionAPIError) as excinfo:
        await notion.get_all_events(EVENTS_DB)

    assert excinfo.value.status_code == 401
    assert excinfo.value.code == "unauthorized"


@pytest.mark.anyio
async def test_get_event_not_found_returns_none(notion):
    assert await notion.get_event(EVENTS_DB, EVENT_ID) is None


@pytest.mark.anyio
async def test_get_event_rejects_malformed_id_without_calling_notion(notion, upstream):
    assert await notion.get_event(EVENTS_DB, "not-an-id") is None
    assert upstream.requests == []


@pytest.mark.anyio
async def test_get_event_from_another_database_returns_none(notion, upstream):
    upstream.add("GET", f"{NOTION}/pages/{EVENT_ID}", event_page(database_id=PEOPLE_DB))

    assert await notion.get_event(EVENTS_DB, EVENT_ID) is None


@pytest.mark.anyio
async def test_get_event_other_errors_propagate(notion, upstream):
    upstream.add("GET", f"{NOTION}/pages/{EVENT_ID}",
                 notion_error("Rate limited", code="rate_limited", status=429), status_code=429)

    with pytest.raises(NotionAPIError):
        await notion.get_event(EVENTS_DB, EVENT_ID)


@pytest.mark.anyio
async def test_tickets_filtered_by_event_relation(notion, upstream):
    url = f"{NOTION}/databases/{PRODUCTS_DB}/query"
    upstream.add("POST", url, query_result([ticket_page()]))

    tickets = await notion.get_tickets_for_event(PRODUCTS_DB, EVENT_ID)

    assert [ticket.name for ticket in tickets] == ["General Admission"]
    assert json_body(upstream.calls("POST", url)[0])["filter"] == {
        "property": "Events", "relation": {"contains": EVENT_ID},
    }


@pytest.mark.anyio
async def test_ticket_errors_yield_no_tickets(notion, upstream):
    upstream.add("POST", f"{NOTION}/databases/{PRODUCTS_DB}/query",
                 notion_error("Could not find property Events"), status_code=400)

    assert await notion.get_tickets_for_event(PRODUCTS_DB, EVENT_ID) == []


@pytest.mark.anyio
async def test_add_guest_properties(notion, upstream):
    upstream.add("POST", f"{NOTION}/pages", {"object": "page", "id": PERSON_ID})
    guest = GuestSubmission(name="Ada", email="ada@example.com", event_id=EVENT_ID)

    page = await notion.add_guest(PEOPLE_DB, guest)

    assert page["id"] == PERSON_ID
    body = json_body(upstream.requests[0])
    assert body["parent"] == {"database_id": PEOPLE_DB}
    properties = body["properties"]
    assert properties["Email"] == {"email": "ada@example.com"}
    assert properties["Contact Preference"] == {"select": {"name": "Do Not Contact"}}
    assert properties["Membership Type"] == {"multi_select": [{"name": "Guest"}]}
    assert "Phone" not in properties
    assert "Events Attended" not in properties


@pytest.mark.anyio
async def test_add_comment_truncates_title(notion, upstream):
    upstream.add("POST", f"{NOTION}/pages", {"object": "page", "id": "comment"})

    await notion.add_comment(COMMENTS_DB, PERSON_ID, EVENT_ID, "x" * 250)

    properties = json_body(upstream.requests[0])["properties"]
    assert len(properties["Name"]["title"][0]["text"]["content"]) == 100
    assert properties["People"] == {"relation": [{"id": PERSON_ID}]}
    assert properties["Event Comments"] == {"relation": [{"id": EVENT_ID}]}


@pytest.mark.anyio
async def test_add_comment_requires_database(notion):
    with pytest.raises(ValueError):
        await notion.add_comment("", PERSON_ID, EVENT_ID, "hello")

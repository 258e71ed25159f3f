from typing import AsyncIterator

import httpx
from fastapi import Depends

from .config import Settings, get_settings
from .notion_service import NotionClient
from .stripe_service import StripeClient

# Timeout for every outbound Notion call, in seconds
HTTP_TIMEOUT = 30.0


async def get_http_client() -> AsyncIterator[httpx.AsyncClient]:
    """One outbound HTTP client per request, closed when the request ends."""
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
        yield client


def get_notion(http: httpx.AsyncClient = Depends(get_http_client),
               settings: Settings = Depends(get_settings)) -> NotionClient:
    return NotionClient(http, settings.notion_token, settings.notion_api_url, settings.notion_version)


def get_stripe(settings: Settings = Depends(get_settings)) -> StripeClient:
    return StripeClient(settings.stripe_secret_key, settings.stripe_currency)

import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

# Load environment variables for Notion and Stripe credentials
load_dotenv()

NOTION_API_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"


class Settings(BaseModel):
    notion_token: str = ""
    events_database_id: str = ""
    people_database_id: str = ""
    products_database_id: str = ""
    comments_database_id: str = ""
    revenue_database_id: str = ""

    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_currency: str = "usd"

    notion_api_url: str = NOTION_API_URL
    notion_version: str = NOTION_VERSION

    public_base_url: str = ""
    site_title: str = "Riverside Events"
    show_debug_details: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            notion_token=os.getenv("NOTION_TOKEN", ""),
            events_database_id=os.getenv("NOTION_DATABASE_ID", ""),
            people_database_id=os.getenv("NOTION_PEOPLE_DATABASE_ID", ""),
            products_database_id=os.getenv("NOTION_PRODUCTS_DATABASE_ID", ""),
            comments_database_id=os.getenv("NOTION_COMMENTS_DATABASE_ID", ""),
            revenue_database_id=os.getenv("NOTION_REVENUE_DATABASE_ID", ""),
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY", ""),
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET", ""),
            stripe_currency=os.getenv("STRIPE_CURRENCY", "usd").lower(),
            notion_api_url=os.getenv("NOTION_API_URL", NOTION_API_URL).rstrip("/"),
            notion_version=os.getenv("NOTION_VERSION", NOTION_VERSION),
            public_base_url=os.getenv("PUBLIC_BASE_URL", "").rstrip("/"),
            site_title=os.getenv("SITE_TITLE", "Riverside Events"),
            show_debug_details=os.getenv("SHOW_DEBUG_DETAILS", "true").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def masked(self) -> dict:
        """
        Configuration as shown on debug pages: database ids in full, secrets masked.
        """
        return {
            "NOTION_TOKEN": mask_secret(self.notion_token),
            "NOTION_DATABASE_ID": self.events_database_id,
            "NOTION_PEOPLE_DATABASE_ID": self.people_database_id,
            "NOTION_PRODUCTS_DATABASE_ID": self.products_database_id,
            "NOTION_COMMENTS_DATABASE_ID": self.comments_database_id,
            "NOTION_REVENUE_DATABASE_ID": self.revenue_database_id,
            "STRIPE_SECRET_KEY": mask_secret(self.stripe_secret_key),
            "STRIPE_WEBHOOK_SECRET": mask_secret(self.stripe_webhook_secret),
        }


def mask_secret(value: str) -> Optional[str]:
    """Keep only the last 4 characters of a secret."""
    if not value:
        return None
    return "***" + value[-4:]


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()

import logging

from fastapi import FastAPI, Request

from .config import get_settings
from .rendering import DebugPageError, render_debug_page
from .routers import events, guestbook, webhooks

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Initialize the FastAPI app
app = FastAPI(title="Notion Events")

# Include routers for the pages, the guestbook form and the Stripe webhook
app.include_router(events.router, tags=["events"])
app.include_router(guestbook.router, prefix="/api", tags=["guestbook"])
app.include_router(webhooks.router, prefix="/api", tags=["webhooks"])


@app.exception_handler(DebugPageError)
async def debug_page_handler(request: Request, error: DebugPageError):
    return render_debug_page(request, error)


# Health check endpoint
@app.get("/health")
def health():
    return {"status": "ok"}

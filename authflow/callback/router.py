"""
Redirect receiver for loopback redirect URIs.

Provides the host side of the out-of-band authorization step for desktop and
CLI applications whose redirect_uri points at a local HTTP server:
- GET /oauth/callback - Deliver the redirect to the pending flow
- POST /oauth/resumed - Report that the user came back without finishing
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, Response

from authflow.core.notifications import (
    APP_DID_BECOME_ACTIVE,
    APP_LAUNCHED_WITH_URL,
    NotificationCenter,
    get_notification_center,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/oauth", tags=["oauth"])

Notifications = Annotated[NotificationCenter, Depends(get_notification_center)]

_COMPLETED_PAGE = """<!DOCTYPE html>
<html>
<head><title>Authorization complete</title></head>
<body>
<p>Authorization received. You can close this window and return to the application.</p>
</body>
</html>
"""


@router.get("/callback", response_class=HTMLResponse)
async def callback(request: Request, notifications: Notifications):
    """
    Receive the authorization server redirect.

    The full redirect URL (with code/state or error) is posted to the
    notification center; the pending AuthorizationFlow picks it up.
    """
    logger.info(
        "Authorization redirect received",
        extra={
            "has_code": "code" in request.query_params,
            "has_error": "error" in request.query_params,
        },
    )
    await notifications.post(APP_LAUNCHED_WITH_URL, url=str(request.url))
    return HTMLResponse(content=_COMPLETED_PAGE)


@router.post("/resumed", status_code=204)
async def resumed(notifications: Notifications):
    """Signal that the application regained focus."""
    await notifications.post(APP_DID_BECOME_ACTIVE)
    return Response(status_code=204)


def create_callback_app() -> FastAPI:
    """Create a FastAPI application serving the redirect receiver."""
    app = FastAPI(
        title="OAuth2 Redirect Receiver",
        description="Routes authorization redirects to pending OAuth2 flows",
    )
    app.include_router(router)

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app

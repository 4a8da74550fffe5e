"""Redirect routes implementation."""

from fastapi import APIRouter, Request, status
from fastapi.responses import RedirectResponse

router = APIRouter()


@router.get("/health", include_in_schema=False)
async def health_check_web(request: Request):
    """Health check endpoint (simple version for load balancers).

    A durable tier outage reports "degraded" rather than failing: the
    service keeps answering from the fast tier.
    """
    service = request.app.state.service

    health = await service.health_check()

    return {"status": "healthy" if health["overall"] else "degraded"}


@router.get("/{short_code}", include_in_schema=False)
async def redirect_to_url(request: Request, short_code: str):
    """Redirect to the original URL.

    Unknown, expired and reserved names raise NotFound, answered as 404 by
    the error handlers.
    """
    service = request.app.state.service

    # Counts the visit in the background
    original_url = await service.resolve(short_code)

    # 302 so every visit reaches us and is counted
    return RedirectResponse(url=original_url, status_code=status.HTTP_302_FOUND)

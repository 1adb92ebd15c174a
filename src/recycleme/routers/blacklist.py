"""Endpoint for reporting a source URL that returned the wrong product."""

import logging

from fastapi import APIRouter, HTTPException, Request

from recycleme.errors import InvalidBlacklistURLError
from recycleme.models import BlacklistRequest, StatusResponse
from recycleme.services.blacklist import blacklist_product

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=StatusResponse)
async def add_blacklist(body: BlacklistRequest, request: Request) -> StatusResponse:
    """Blacklist *url* for future lookups.

    Only URLs that a registered source builds for *ean* are accepted, so
    arbitrary strings cannot be pushed into the blacklist.
    """
    state = request.app.state
    try:
        blacklist_product(state.blacklist, state.fetcher, body.ean, body.url)
    except InvalidBlacklistURLError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    if body.name:
        logger.info("Blacklisting %s: %s should be %s (%s)", body.url, body.ean, body.name, body.website)
    return StatusResponse()

"""
Authentication for the admin routes of the WhatsApp Concierge API.

A single shared API key (ADMIN_API_KEY) sent in the X-API-Key header.
"""

import logging
import secrets
from typing import Optional

from fastapi import HTTPException, Request, Security
from fastapi.security import APIKeyHeader

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"

api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


async def api_key_auth(
    request: Request,
    header_key: Optional[str] = Security(api_key_header),
) -> str:
    """Validate the admin API key from the X-API-Key header."""
    expected_key = request.app.state.services.settings.admin_api_key

    # Skip auth if no key configured (development mode)
    if not expected_key:
        logger.warning("Admin API key authentication disabled - no key configured")
        return ""

    if not header_key:
        raise HTTPException(
            status_code=401,
            detail="API key required",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if not secrets.compare_digest(header_key, expected_key):
        logger.warning("Invalid API key attempt")
        raise HTTPException(status_code=403, detail="Invalid API key")

    return header_key

"""Write guard for the journal.

Reads are open to any caller that names a user. Creating, editing,
deleting and importing trades needs the server's API key in X-API-Key,
except in development when no key has been configured at all.
"""

import logging
import secrets

from fastapi import HTTPException, Request, Security
from fastapi.security import APIKeyHeader

from fxjournal.config import settings

logger = logging.getLogger(__name__)

_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

DEV_BYPASS = "dev-bypass"


def _key_matches(sent: str | None, expected: str) -> bool:
    if not sent:
        return False
    return secrets.compare_digest(sent.encode("utf-8"), expected.encode("utf-8"))


async def require_api_key(request: Request, api_key: str | None = Security(_api_key_header)) -> str:
    """Route dependency for journal writes. Returns the accepted key."""
    expected = settings.api_key
    if not expected:
        if settings.app_env == "development":
            return DEV_BYPASS
        logger.warning(
            "Refusing %s %s: no API key configured (app_env=%s)",
            request.method, request.url.path, settings.app_env,
        )
        raise HTTPException(status_code=403, detail="API key not configured on server")

    if not _key_matches(api_key, expected):
        logger.info("Refusing %s %s: missing or wrong API key", request.method, request.url.path)
        raise HTTPException(status_code=401, detail="Invalid or missing API key")

    return api_key

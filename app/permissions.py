import hmac
import logging

import httpx
from fastapi import Depends, Header, Request
from fastapi.security import OAuth2PasswordBearer

from app.errors import Unauthenticated, Unauthorized, ServiceError
from app.schemas import CurrentUser
from app.settings import settings

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)

def get_current_user(
    token: str | None = Depends(oauth2_scheme)
) -> CurrentUser:
    """Ask the identity provider who owns the bearer token."""
    if not token:
        raise Unauthenticated()
    if not settings.IDENTITY_URL:
        raise ServiceError("Identity provider is not configured")
    try:
        response = httpx.get(
            f"{settings.IDENTITY_URL.rstrip('/')}{settings.IDENTITY_USER_PATH}",
            headers={"Authorization": f"Bearer {token}"},
            timeout=settings.IDENTITY_TIMEOUT_SECONDS,
        )
        response.raise_for_status()  # Raise an exception for bad status codes
    except httpx.HTTPStatusError as e:
        if e.response.status_code in (401, 403):
            raise Unauthenticated("Invalid authentication credentials") from e
        logger.error("Identity provider returned %s", e.response.status_code)
        raise ServiceError("Could not verify authentication") from e
    except httpx.RequestError as e:
        logger.error("Could not connect to identity provider: %s", e)
        raise ServiceError("Could not connect to authentication service") from e

    data = response.json()
    if not data or not data.get("id"):
        raise Unauthenticated("Invalid authentication credentials")
    return CurrentUser(id=str(data["id"]), email=data.get("email"))

def require_cron_secret(
    request: Request,
    authorization: str | None = Header(default=None),
) -> None:
    """Scheduler trigger auth: ``Authorization: Bearer <CRON_SECRET>``."""
    expected = settings.CRON_SECRET
    presented = authorization or ""
    if not expected or not hmac.compare_digest(presented.encode(), f"Bearer {expected}".encode()):
        client = request.client.host if request.client else "unknown"
        logger.warning("Rejected scheduler trigger on %s from %s: bad shared secret", request.url.path, client)
        raise Unauthorized("Unauthorized worker request")

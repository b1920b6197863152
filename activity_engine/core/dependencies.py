"""FastAPI dependencies for tenant context and the cron trigger.

Authentication is handled by the surrounding application, which forwards the
resolved organization and user as headers.
"""

import hmac
import logging
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .config import Settings, get_settings
from .database import get_session_factory

logger = logging.getLogger(__name__)

# Security scheme
bearer_scheme = HTTPBearer(auto_error=False)


def _parse_uuid(value: str | None, header: str) -> UUID:
    if not value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{header} header is required",
        )
    try:
        return UUID(value)
    except ValueError:
        logger.warning(f"Invalid {header} format: {value}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header} format",
        )


async def require_org_context(
    x_organization_id: str | None = Header(default=None, alias="X-Organization-ID"),
) -> UUID:
    """Resolve the tenant for the request."""
    return _parse_uuid(x_organization_id, "X-Organization-ID")


async def require_user(
    x_user_id: str | None = Header(default=None, alias="X-User-ID"),
) -> UUID:
    """Resolve the acting staff member for the request."""
    return _parse_uuid(x_user_id, "X-User-ID")


async def require_cron_secret(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> None:
    """Only the scheduler holding CRON_SECRET may trigger a sweep."""
    if not settings.cron_enabled:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron trigger is not configured",
        )
    if credentials is None or not hmac.compare_digest(
        credentials.credentials, settings.cron_secret
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


OrganizationIdDep = Annotated[UUID, Depends(require_org_context)]
UserIdDep = Annotated[UUID, Depends(require_user)]
SessionFactoryDep = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]
SettingsDep = Annotated[Settings, Depends(get_settings)]

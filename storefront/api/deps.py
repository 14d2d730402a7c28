from typing import Annotated, Optional
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database import get_db
from storefront.core.security import Identity, verify_access_token


logger = logging.getLogger(__name__)

# HTTP Bearer security scheme; a missing header means a guest
security = HTTPBearer(auto_error=False)


async def get_optional_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> Optional[Identity]:
    """
    Identity of the caller, or None for guests.

    An invalid or expired token is treated like no token at all so that
    checkout never fails on a stale session.
    """
    if credentials is None:
        return None

    identity = verify_access_token(credentials.credentials)
    if identity is None:
        logger.debug("Ignoring invalid bearer token on optional-auth route")
    return identity


async def get_current_user(
    identity: Annotated[Optional[Identity], Depends(get_optional_user)],
) -> Identity:
    """Dependency requiring a valid access token."""
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


async def require_admin(
    identity: Annotated[Identity, Depends(get_current_user)],
) -> Identity:
    if not identity.is_admin:
        logger.warning(f"User {identity.user_id} denied admin access")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return identity


# Type aliases for cleaner endpoint signatures
DB = Annotated[AsyncSession, Depends(get_db)]
OptionalUser = Annotated[Optional[Identity], Depends(get_optional_user)]
CurrentUser = Annotated[Identity, Depends(get_current_user)]
AdminUser = Annotated[Identity, Depends(require_admin)]

"""
FastAPI dependencies for actor identification and service construction.

The acting party is passed explicitly with every request through the
``X-Actor-Role``, ``X-Actor-Id``, ``X-Manufacturer-Id`` and ``X-Client-Id``
headers. The draft cleanup endpoint is additionally guarded by a bearer
token when one is configured.
"""

import secrets
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from orderflow.core.config import get_settings
from orderflow.core.logging import get_logger, set_actor
from orderflow.database.connection import get_db
from orderflow.services.orders.enums import ActorRole
from orderflow.services.orders.service import Actor, OrderWorklistService

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)


async def get_optional_actor(
    x_actor_role: Annotated[Optional[str], Header(alias="X-Actor-Role")] = None,
    x_actor_id: Annotated[Optional[str], Header(alias="X-Actor-Id")] = None,
    x_manufacturer_id: Annotated[Optional[str], Header(alias="X-Manufacturer-Id")] = None,
    x_client_id: Annotated[Optional[str], Header(alias="X-Client-Id")] = None,
) -> Actor:
    """
    Build the actor from request headers without requiring a role.

    Returns:
        Actor: Possibly anonymous actor
    """
    actor = Actor(
        role=(x_actor_role or "").strip().lower() or None,
        actor_id=x_actor_id or None,
        manufacturer_id=x_manufacturer_id or None,
        client_id=x_client_id or None,
    )
    set_actor(actor.actor_id, actor.role)
    return actor


async def get_actor(
    actor: Annotated[Actor, Depends(get_optional_actor)],
) -> Actor:
    """
    Require an explicit actor role.

    Unknown roles are accepted and see no orders.

    Raises:
        HTTPException: 401 if the role header is missing
    """
    if actor.role is None:
        logger.warning("Request rejected: actor role missing")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Actor-Role header is required",
        )
    return actor


async def get_worklist_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> OrderWorklistService:
    return OrderWorklistService(db)


async def require_cleanup_access(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    actor: Annotated[Actor, Depends(get_optional_actor)],
) -> None:
    """
    Authorize the draft cleanup job.

    Super-admins are always allowed. Otherwise, when a cleanup key is
    configured, the bearer token must match it.

    Raises:
        HTTPException: 401 if the token is missing or wrong
    """
    if actor.parsed_role is ActorRole.SUPER_ADMIN:
        return

    expected = get_settings().cleanup_api_key
    if not expected:
        return

    token = credentials.credentials if credentials else ""
    if not secrets.compare_digest(token.encode(), expected.encode()):
        logger.warning(
            "Cleanup request rejected: invalid credentials",
            has_credentials=credentials is not None,
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


CurrentActor = Annotated[Actor, Depends(get_actor)]
WorklistService = Annotated[OrderWorklistService, Depends(get_worklist_service)]
CleanupAccess = Depends(require_cleanup_access)

"""FastAPI dependencies for authentication.

Provides dependency injection for:
- Current actor extraction from JWT
- Optional identity for endpoints open to guests
- Permission checks
- Client information (user agent, IP) for comment metadata and guest votes
"""

from typing import Annotated

from fastapi import Depends, Request, status
from jose import JWTError

from blog_comments.auth.permissions import Actor, Permission
from blog_comments.auth.security import decode_access_token
from blog_comments.core.context import set_actor_id
from blog_comments.core.middleware import get_client_ip
from blog_comments.core.responses import ApiError


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header.

    Returns:
        Token string or None if not present
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


async def get_client_info(request: Request) -> tuple[str | None, str | None]:
    """Extract client information for comment metadata.

    Returns:
        Tuple of (user_agent, ip_address)
    """
    return request.headers.get("user-agent"), get_client_ip(request)


def _unauthorized(message: str) -> ApiError:
    return ApiError(
        status.HTTP_401_UNAUTHORIZED,
        message,
        "unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_actor(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> Actor:
    """Get the authenticated actor from the JWT access token.

    Raises:
        ApiError(401): If token is missing, invalid, or expired
    """
    if not token:
        raise _unauthorized("Token de acceso no proporcionado")

    try:
        payload = decode_access_token(token)
    except JWTError as e:
        raise _unauthorized("Token invalido o expirado") from e

    actor = Actor.from_claims(payload)
    set_actor_id(actor.id)
    return actor


async def get_optional_actor(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> Actor | None:
    """Get the actor if authenticated, None otherwise.

    An invalid token is treated as anonymous.
    """
    if not token:
        return None

    try:
        payload = decode_access_token(token)
    except JWTError:
        return None

    actor = Actor.from_claims(payload)
    set_actor_id(actor.id)
    return actor


def require_permission(permission: Permission):
    """Create dependency requiring a permission.

    Example:
        @router.get("/queue")
        async def queue(
            actor: Annotated[Actor, Depends(require_permission(Permission.MODERATE_COMMENTS))]
        ):
            ...
    """

    async def permission_checker(
        actor: Annotated[Actor, Depends(get_current_actor)],
    ) -> Actor:
        if not actor.has(permission):
            raise ApiError(
                status.HTTP_403_FORBIDDEN,
                "Permiso insuficiente",
                "permission_denied",
            )
        return actor

    return permission_checker


# ==============================================================================
# Type Aliases for Cleaner Code
# ==============================================================================

CurrentActor = Annotated[Actor, Depends(get_current_actor)]

OptionalActor = Annotated[Actor | None, Depends(get_optional_actor)]

ModeratorActor = Annotated[
    Actor, Depends(require_permission(Permission.MODERATE_COMMENTS))
]

ReportResolverActor = Annotated[
    Actor, Depends(require_permission(Permission.RESOLVE_REPORTS))
]

ClientInfo = Annotated[tuple[str | None, str | None], Depends(get_client_info)]

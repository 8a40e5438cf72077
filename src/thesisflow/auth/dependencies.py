"""Endpoint-level authentication for the thesis API.

``get_current_actor`` turns the Bearer token into an Actor; every thesis
endpoint depends on it. ``require_role`` is for endpoints reserved to a
role outright (the audit trail). Ownership and per-transition rules are
decided by the workflow engine, not here.
"""

from typing import Callable, Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .jwt import actor_from_claims, decode_token
from .roles import Actor, ActorRole

security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Actor:
    if credentials is None:
        raise _unauthorized("Not authenticated")

    try:
        claims = decode_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidTokenError as e:
        raise _unauthorized(str(e))

    try:
        return actor_from_claims(claims)
    except ValueError as e:
        raise _unauthorized(f"Invalid token claims: {e}")


def require_role(*allowed_roles: ActorRole) -> Callable[..., Actor]:
    """Dependency factory admitting only ``allowed_roles`` (403 otherwise).

    Example:
        admin: Actor = Depends(require_role(ActorRole.ADMIN))
    """
    def role_checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role {actor.role.value} may not access this resource",
            )
        return actor

    return role_checker

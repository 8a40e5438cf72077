"""Access token handling.

Tokens come from the university's authentication service, signed with the
shared JWT_SECRET. The workflow verifies them and maps two claims onto an
Actor:

- ``sub``: the caller id, matched against thesis.student_ref and
  thesis.supervisor_ref
- ``role``: STUDENT, SUPERVISOR or ADMIN

``create_access_token`` exists for operators' tooling and the test suite.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from ..config import get_settings
from .roles import Actor, ActorRole


def _signing_key() -> str:
    secret = get_settings().JWT_SECRET
    if not secret:
        raise ValueError("JWT_SECRET is not configured")
    return secret


def create_access_token(
    actor_id: str,
    role: ActorRole,
    expiry_minutes: Optional[int] = None,
) -> str:
    settings = get_settings()
    lifetime = timedelta(
        minutes=settings.JWT_EXPIRY_MINUTES if expiry_minutes is None else expiry_minutes
    )
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": actor_id,
        "role": ActorRole(role).value,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + lifetime).timestamp()),
    }
    return jwt.encode(claims, _signing_key(), algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """Verify signature and expiry and return the claims.

    Raises:
        jwt.ExpiredSignatureError: The token is past ``exp``
        jwt.InvalidTokenError: Anything else wrong with the token
    """
    try:
        return jwt.decode(
            token,
            _signing_key(),
            algorithms=[get_settings().JWT_ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise jwt.ExpiredSignatureError("Token has expired") from e
    except jwt.InvalidTokenError as e:
        raise jwt.InvalidTokenError(f"Invalid token: {e}") from e


def actor_from_claims(claims: Dict[str, Any]) -> Actor:
    """Raises ValueError when ``sub`` is missing or ``role`` is not a known role."""
    subject = claims.get("sub")
    if not subject:
        raise ValueError("missing subject claim")

    role = claims.get("role")
    try:
        return Actor(id=str(subject), role=ActorRole(role))
    except ValueError:
        raise ValueError(f"unknown role: {role!r}") from None

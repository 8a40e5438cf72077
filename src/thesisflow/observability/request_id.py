"""Request ID propagation for log correlation.

The id of the request being served is kept in a ContextVar, so engine and
binder log lines written deep inside a request can be tied back to the
HTTP call (and to the X-Request-ID the caller sent, if any).
"""

import re
import uuid
from contextvars import ContextVar, Token
from typing import Optional

NO_REQUEST_ID = "no-request-id"

# Client-supplied ids are echoed in headers and logs; keep them short and inert
_ACCEPTED_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")

_current_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def resolve_request_id(incoming: Optional[str]) -> str:
    """Reuse the caller's X-Request-ID when it is well-formed, else mint one.

    Example:
        >>> resolve_request_id("req-123")
        'req-123'
        >>> len(resolve_request_id("bad id\\n"))
        36
    """
    if incoming and _ACCEPTED_ID.match(incoming):
        return incoming
    return str(uuid.uuid4())


def bind_request_id(request_id: str) -> Token:
    """Make request_id current; pass the token to reset_request_id afterwards."""
    return _current_request_id.set(request_id)


def reset_request_id(token: Token) -> None:
    _current_request_id.reset(token)


def get_request_id() -> str:
    return _current_request_id.get() or NO_REQUEST_ID

"""Request ID propagation through a context variable."""

import re
import uuid
from contextvars import ContextVar
from typing import Optional

REQUEST_ID_HEADER = "X-Request-ID"

# Inbound ids are echoed into logs and headers, so only accept tame ones.
_INBOUND_ID_RE = re.compile(r"^[A-Za-z0-9._-]{8,128}$")

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def resolve_request_id(inbound: Optional[str] = None) -> str:
    """Reuse the caller's request id when it looks sane, otherwise mint one."""
    if inbound and _INBOUND_ID_RE.match(inbound):
        return inbound
    return str(uuid.uuid4())


def get_request_id() -> str:
    """Get current request ID from context."""
    return request_id_var.get("")


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)

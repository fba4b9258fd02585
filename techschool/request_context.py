from __future__ import annotations

import uuid
from contextvars import ContextVar


current_endpoint: ContextVar[str] = ContextVar('current_endpoint', default='cli')
current_request_id: ContextVar[str] = ContextVar('current_request_id', default='-')

REQUEST_ID_HEADER = 'X-Request-ID'


def request_id_from(header_value: str | None) -> str:
    """Reuses a caller supplied id when it is short and printable."""
    value = (header_value or '').strip()
    if value and len(value) <= 64 and value.isprintable():
        return value
    return uuid.uuid4().hex[:16]

from __future__ import annotations

from typing import Callable

from fastapi import Depends, HTTPException, Request

from techschool.services.auth_service import Identity, decode_access_token


def _resolve_token(request: Request) -> str | None:
    authorization = request.headers.get('authorization', '')
    if not authorization.lower().startswith('bearer '):
        return None
    token = authorization[7:].strip()
    return token or None


def require_auth_user(request: Request) -> Identity:
    token = _resolve_token(request)
    if not token:
        raise HTTPException(status_code=401, detail='Access token required')
    identity = decode_access_token(token)
    if identity is None:
        raise HTTPException(status_code=403, detail='Invalid or expired token')
    return identity


def require_roles(*allowed_roles: str) -> Callable[..., Identity]:
    allowed = frozenset(allowed_roles)

    def _dependency(identity: Identity = Depends(require_auth_user)) -> Identity:
        if not identity.roles.intersection(allowed):
            raise HTTPException(status_code=403, detail='Insufficient permissions')
        return identity

    return _dependency


require_admin = require_roles('ADMIN')

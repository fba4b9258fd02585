"""Credential checks and signed access tokens.

Tokens are compact HS256 JWTs carrying the user id, email and the flattened
role names, plus `iat`/`exp` claims.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import secrets
from dataclasses import dataclass, field
from datetime import timedelta

from sqlalchemy import or_
from sqlalchemy.orm import Session

from techschool.config import settings
from techschool.core.errors import AuthenticationError, ValidationError
from techschool.core.time_provider import TimeProvider, default_time_provider
from techschool.models import User


logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = 'Invalid credentials'
MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class Identity:
    user_id: int
    email: str | None = None
    roles: frozenset[str] = field(default_factory=frozenset)

    def has_role(self, *names: str) -> bool:
        return bool(self.roles.intersection(names))


def hash_password(password: str, *, iterations: int | None = None) -> str:
    if len(password or '') < MIN_PASSWORD_LENGTH:
        raise ValidationError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
    rounds = int(iterations or settings.password_hash_iterations)
    salt = secrets.token_hex(16)
    derived = hashlib.pbkdf2_hmac('sha256', password.encode('utf-8'), salt.encode('utf-8'), rounds)
    return f'pbkdf2_sha256${rounds}${salt}${derived.hex()}'


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        algo, iter_raw, salt, digest_hex = password_hash.split('$', 3)
        if algo != 'pbkdf2_sha256':
            return False
        iterations = int(iter_raw)
    except ValueError:
        return False
    derived = hashlib.pbkdf2_hmac('sha256', (password or '').encode('utf-8'), salt.encode('utf-8'), iterations).hex()
    return hmac.compare_digest(derived, digest_hex)


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode('ascii').rstrip('=')


def _b64url_decode(value: str) -> bytes:
    padding = '=' * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode('ascii'))


def _sign(signing_input: bytes) -> bytes:
    return hmac.new(settings.jwt_secret.encode('utf-8'), signing_input, hashlib.sha256).digest()


def _encode_jwt(payload: dict) -> str:
    header = {'alg': 'HS256', 'typ': 'JWT'}
    header_part = _b64url_encode(json.dumps(header, separators=(',', ':')).encode('utf-8'))
    payload_part = _b64url_encode(json.dumps(payload, separators=(',', ':')).encode('utf-8'))
    signing_input = f'{header_part}.{payload_part}'.encode('ascii')
    return f'{header_part}.{payload_part}.{_b64url_encode(_sign(signing_input))}'


def _decode_jwt(token: str) -> dict | None:
    try:
        header_part, payload_part, signature_part = token.split('.')
        provided_signature = _b64url_decode(signature_part)
    except ValueError:
        return None

    signing_input = f'{header_part}.{payload_part}'.encode('ascii', errors='replace')
    if not hmac.compare_digest(provided_signature, _sign(signing_input)):
        return None

    try:
        payload = json.loads(_b64url_decode(payload_part).decode('utf-8'))
    except (ValueError, UnicodeDecodeError):
        return None

    if not isinstance(payload, dict):
        return None
    return payload


def issue_access_token(
    user: User,
    *,
    expires_minutes: int | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> str:
    issued_at = time_provider.utc_now()
    lifetime = timedelta(minutes=int(expires_minutes if expires_minutes is not None else settings.jwt_expires_minutes))
    payload = {
        'sub': int(user.id),
        'email': user.email,
        'roles': user.role_names,
        'iat': int(issued_at.timestamp()),
        'exp': int((issued_at + lifetime).timestamp()),
    }
    return _encode_jwt(payload)


def decode_access_token(token: str | None, *, time_provider: TimeProvider = default_time_provider) -> Identity | None:
    if not token:
        return None
    payload = _decode_jwt(token)
    if not payload:
        return None

    try:
        user_id = int(payload.get('sub'))
        expires_at = int(payload.get('exp'))
    except (TypeError, ValueError):
        return None
    if expires_at <= int(time_provider.utc_now().timestamp()):
        return None

    roles = payload.get('roles') or []
    if not isinstance(roles, list):
        return None
    return Identity(
        user_id=user_id,
        email=payload.get('email'),
        roles=frozenset(str(role) for role in roles),
    )


def login(
    db: Session,
    identifier: str,
    password: str,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> dict:
    clean_identifier = (identifier or '').strip()
    if not clean_identifier or not password:
        raise ValidationError('Identifier and password are required')

    user = (
        db.query(User)
        .filter(or_(User.username == clean_identifier, User.email == clean_identifier))
        .first()
    )
    if not user or not user.is_active or not user.password_hash:
        logger.info('auth_login_rejected identifier=%s reason=unknown_or_inactive', clean_identifier)
        raise AuthenticationError(INVALID_CREDENTIALS)
    if not verify_password(password, user.password_hash):
        logger.info('auth_login_rejected identifier=%s reason=bad_password', clean_identifier)
        raise AuthenticationError(INVALID_CREDENTIALS)

    token = issue_access_token(user, time_provider=time_provider)
    logger.info('auth_login_success user_id=%s', user.id)
    return {
        'token': token,
        'user': {
            'id': user.id,
            'email': user.email,
            'username': user.username,
            'first_name': user.first_name,
            'paternal_surname': user.paternal_surname,
            'maternal_surname': user.maternal_surname,
            'roles': user.role_names,
        },
    }

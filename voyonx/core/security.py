from __future__ import annotations

from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from voyonx.core.config import get_settings
from voyonx.core.exceptions import NotAuthenticated


def decode_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            audience=settings.auth_jwt_audience or None,
        )
    except JWTError as exc:
        raise NotAuthenticated("Invalid token") from exc
    return payload


def subject_from_payload(payload: dict[str, Any]) -> UUID:
    subject = payload.get("sub")
    if subject is None:
        raise NotAuthenticated("Invalid token payload")
    try:
        return UUID(str(subject))
    except (ValueError, TypeError) as exc:
        raise NotAuthenticated("Invalid token payload") from exc

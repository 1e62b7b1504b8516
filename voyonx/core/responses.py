from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from pydantic import BaseModel, Field


class ErrorBody(BaseModel):
    code: str
    message: str
    details: dict[str, Any] | None = None


class ResponseEnvelope(BaseModel):
    data: Any | None = None
    meta: dict[str, Any] = Field(default_factory=dict)
    error: ErrorBody | None = None


def _plain(data: Any) -> Any:
    # Read models go out as JSON-ready dicts so UUIDs and datetimes serialize the same everywhere.
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, (list, tuple)):
        return [_plain(item) for item in data]
    return data


def build_meta(request: Request | None = None, **extra: Any) -> dict[str, Any]:
    meta: dict[str, Any] = {"server_time": datetime.now(timezone.utc).isoformat()}
    request_id = getattr(request.state, "request_id", None) if request is not None else None
    if request_id:
        meta["request_id"] = request_id
    meta.update({key: value for key, value in extra.items() if value is not None})
    return meta


def success_response(data: Any, request: Request | None = None, **meta: Any) -> dict[str, Any]:
    payload = _plain(data)
    if isinstance(payload, list):
        meta.setdefault("count", len(payload))
    return ResponseEnvelope(data=payload, meta=build_meta(request, **meta)).model_dump()


def error_response(
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    request: Request | None = None,
) -> dict[str, Any]:
    body = ErrorBody(code=code, message=message, details=details or None)
    return ResponseEnvelope(meta=build_meta(request), error=body).model_dump()

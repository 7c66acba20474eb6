"""Pydantic schema for the users listing payload.

The listing endpoint returns ``{"data": [...], "meta": {"total": n}}``.
The payload is classified before any field is read: either it parses into
a ``ListingResponse`` or ``MalformedResponseError`` is raised.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ValidationError

INVALID_RESPONSE_MESSAGE = "Received invalid data from server."


class MalformedResponseError(ValueError):
    """Raised when a listing response does not have the expected shape."""


class ListingResponse(BaseModel):
    data: list[Any]
    meta: dict[str, Any] | None = None

    @property
    def server_total(self) -> Any:
        return (self.meta or {}).get("total")


def classify_listing(payload: Any) -> ListingResponse:
    """Validate a decoded listing body; ``data`` must be a sequence, not absent or scalar."""
    if not isinstance(payload, dict):
        raise MalformedResponseError(INVALID_RESPONSE_MESSAGE)
    if isinstance(payload.get("data"), (str, bytes, dict)):
        raise MalformedResponseError(INVALID_RESPONSE_MESSAGE)
    try:
        return ListingResponse.model_validate(payload)
    except ValidationError as e:
        raise MalformedResponseError(INVALID_RESPONSE_MESSAGE) from e

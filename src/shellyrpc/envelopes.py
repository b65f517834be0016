from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from shellyrpc.errors import EnvelopeError

NOTIFY_STATUS = "NotifyStatus"
NOTIFY_FULL_STATUS = "NotifyFullStatus"
NOTIFY_EVENT = "NotifyEvent"


class RequestEnvelope(BaseModel):
    jsonrpc: Literal["2.0"] = "2.0"
    id: int = Field(ge=1)
    method: str = Field(min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)
    src: str

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump()


class ErrorPayload(BaseModel):
    code: int
    message: str


class ResultEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    dst: str | None = None
    src: str | None = None
    id: int
    result: Any = None


class ErrorEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    dst: str | None = None
    src: str | None = None
    id: int
    error: ErrorPayload


class NotificationEnvelope(BaseModel):
    """Unsolicited status or event push; never correlated to a request."""

    model_config = ConfigDict(extra="allow")

    src: str | None = None
    dst: str | None = None
    method: str
    params: dict[str, Any] = Field(default_factory=dict)

    @property
    def kind(self) -> str:
        if self.method == NOTIFY_EVENT:
            return "event"
        return "status"


ResponseEnvelope = Union[ResultEnvelope, ErrorEnvelope]
Envelope = Union[ResultEnvelope, ErrorEnvelope, NotificationEnvelope]


def parse_envelope(data: Mapping[str, Any] | BaseModel) -> Envelope:
    """Classify an inbound payload by the fields it carries.

    ``id`` with ``error`` is an error response, ``id`` with ``result`` a
    success response, and anything without ``id`` a notification.
    """
    if isinstance(data, (ResultEnvelope, ErrorEnvelope, NotificationEnvelope)):
        return data
    if not isinstance(data, Mapping):
        raise EnvelopeError(f"expected a mapping, got {type(data).__name__}")

    try:
        if "id" in data:
            if "error" in data:
                return ErrorEnvelope.model_validate(data)
            if "result" in data:
                return ResultEnvelope.model_validate(data)
            raise EnvelopeError(f"envelope id={data['id']!r} carries neither result nor error")
        return NotificationEnvelope.model_validate(data)
    except ValidationError as exc:
        raise EnvelopeError(str(exc)) from exc

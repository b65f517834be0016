from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class RpcCallRequest(BaseModel):
    method: str = Field(min_length=1, max_length=256)
    params: dict[str, Any] = Field(default_factory=dict)


class RpcCallResponse(BaseModel):
    method: str
    result: Any = None


class RpcErrorDetail(BaseModel):
    code: int
    message: str


class HealthResponse(BaseModel):
    status: str
    client_id: str
    pending: int
    in_flight: int
    limit_requests_in_flight: int

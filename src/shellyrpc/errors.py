from __future__ import annotations

from collections.abc import Mapping
from typing import Any

TRANSPORT_UNAVAILABLE_CODE = -999
# JSON-RPC "internal error", used when a response names no usable code.
MALFORMED_RESPONSE_CODE = -32603


class RpcError(Exception):
    """Error settled into the future of exactly one issued call."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"RPC error: {message} (code: {code})")
        self._code = code
        self._message = message

    @property
    def code(self) -> int:
        return self._code

    @property
    def message(self) -> str:
        return self._message


class ProtocolError(RpcError):
    """The remote side answered with an error envelope."""


class TransportUnavailableError(RpcError):
    """The transport could not send the request at all."""

    def __init__(self, message: str) -> None:
        super().__init__(TRANSPORT_UNAVAILABLE_CODE, message)


class EnvelopeError(ValueError):
    """Inbound payload does not match any envelope variant."""


def error_from_payload(code: int, message: str) -> ProtocolError:
    return ProtocolError(code=code, message=message)


def error_from_malformed(raw_error: Any) -> ProtocolError:
    """Best-effort error for a correlated response that failed validation."""
    if not isinstance(raw_error, Mapping):
        return ProtocolError(code=MALFORMED_RESPONSE_CODE, message=str(raw_error))
    code = raw_error.get("code")
    if isinstance(code, bool) or not isinstance(code, int):
        code = MALFORMED_RESPONSE_CODE
    return ProtocolError(code=code, message=str(raw_error.get("message", raw_error)))

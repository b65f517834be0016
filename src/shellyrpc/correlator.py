from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from shellyrpc.config import CorrelatorConfig
from shellyrpc.envelopes import (
    ErrorEnvelope,
    NotificationEnvelope,
    RequestEnvelope,
    parse_envelope,
)
from shellyrpc.errors import (
    MALFORMED_RESPONSE_CODE,
    EnvelopeError,
    ProtocolError,
    RpcError,
    TransportUnavailableError,
    error_from_malformed,
    error_from_payload,
)
from shellyrpc.identity import RequestIdAllocator
from shellyrpc.telemetry import Telemetry
from shellyrpc.transport import StubTransport, Transport

logger = logging.getLogger(__name__)

NotificationHandler = Callable[[NotificationEnvelope], None]


@dataclass(slots=True)
class PendingCall:
    envelope: RequestEnvelope
    future: asyncio.Future[Any]
    issued_at: float

    @property
    def request_id(self) -> int:
        return self.envelope.id

    @property
    def method(self) -> str:
        return self.envelope.method


def _discard_outcome(future: asyncio.Future[Any]) -> None:
    if not future.cancelled():
        future.exception()


class RpcCorrelator:
    """Multiplex JSON-RPC calls for one client identity over one transport.

    Calls are queued in issuance order and admitted to the transport while
    the in-flight table has room. Each inbound response is matched to its
    call by id and settles that call's future exactly once.
    """

    def __init__(
        self,
        client_id: str,
        transport: Transport | None = None,
        config: CorrelatorConfig | None = None,
        telemetry: Telemetry | None = None,
        notification_handler: NotificationHandler | None = None,
    ) -> None:
        if not client_id:
            raise ValueError("client_id must be a non-empty string")
        self._client_id = client_id
        self._config = config or CorrelatorConfig()
        self._transport = transport or StubTransport()
        self._telemetry = telemetry or Telemetry()
        self._notification_handler = notification_handler

        self._ids = RequestIdAllocator()
        self._pending: deque[PendingCall] = deque()
        self._in_flight: dict[int, PendingCall] = {}
        self._draining = False

        self._transport.attach(self.on_inbound_envelope)

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def limit_requests_in_flight(self) -> int:
        return self._config.limit_requests_in_flight

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    @property
    def in_flight_ids(self) -> tuple[int, ...]:
        return tuple(self._in_flight)

    async def call(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Issue ``method`` and wait for its result.

        Raises ``RpcError`` subclasses for error responses and send failures.
        ``timeout`` bounds only the wait: on expiry ``asyncio.TimeoutError``
        is raised while the request stays in flight until answered.
        An empty ``method`` raises ``ValueError`` before any id is used.
        """
        if not method:
            raise ValueError("method must be a non-empty string")
        await self._transport.connection_ready()

        envelope = RequestEnvelope(
            id=self._ids.allocate(),
            method=method,
            params=params or {},
            src=self._client_id,
        )
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending.append(
            PendingCall(envelope=envelope, future=future, issued_at=time.monotonic())
        )
        logger.debug("queued id=%s method=%s pending=%d", envelope.id, method, self.pending_count)
        self.drain()

        if timeout is None:
            return await future
        try:
            return await asyncio.wait_for(asyncio.shield(future), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "call id=%s method=%s not answered within %.3fs; left in flight",
                envelope.id,
                method,
                timeout,
            )
            future.add_done_callback(_discard_outcome)
            raise

    def drain(self) -> None:
        # A transport answering synchronously from send() re-enters here via
        # on_inbound_envelope; the outer loop picks up the freed capacity.
        if self._draining:
            return
        self._draining = True
        try:
            while self._pending and self._has_capacity():
                pending = self._pending.popleft()
                self._in_flight[pending.request_id] = pending
                logger.debug(
                    "sending id=%s method=%s in_flight=%d",
                    pending.request_id,
                    pending.method,
                    self.in_flight_count,
                )
                self._send(pending)
        finally:
            self._draining = False
            self._telemetry.set_queue_state(
                client_id=self._client_id,
                pending=self.pending_count,
                in_flight=self.in_flight_count,
            )

    def on_inbound_envelope(self, payload: Mapping[str, Any] | BaseModel) -> None:
        try:
            envelope = parse_envelope(payload)
        except EnvelopeError as exc:
            pending = self._claim_malformed(payload)
            if pending is None:
                logger.warning("dropping malformed inbound payload: %s", exc)
                return
            logger.warning("malformed response for id=%s: %s", pending.request_id, exc)
            if "error" in payload:
                error = error_from_malformed(payload["error"])
            else:
                error = ProtocolError(code=MALFORMED_RESPONSE_CODE, message=str(exc))
            self._settle(pending, error=error, outcome="error")
            self.drain()
            return

        if isinstance(envelope, NotificationEnvelope):
            self._telemetry.record_notification(self._client_id, method=envelope.method)
            if self._notification_handler is not None:
                try:
                    self._notification_handler(envelope)
                except Exception:
                    logger.exception("notification handler failed for %s", envelope.method)
            return

        if envelope.dst != self._client_id or envelope.id not in self._in_flight:
            logger.debug("ignoring unmatched response id=%s dst=%s", envelope.id, envelope.dst)
            self._telemetry.record_unmatched(self._client_id)
            return

        pending = self._in_flight.pop(envelope.id)
        if isinstance(envelope, ErrorEnvelope):
            self._settle(
                pending,
                error=error_from_payload(envelope.error.code, envelope.error.message),
                outcome="error",
            )
        else:
            self._settle(pending, result=envelope.result, outcome="result")
        self.drain()

    def _claim_malformed(self, payload: Mapping[str, Any] | BaseModel) -> PendingCall | None:
        if not isinstance(payload, Mapping) or payload.get("dst") != self._client_id:
            return None
        request_id = payload.get("id")
        if isinstance(request_id, bool) or not isinstance(request_id, int):
            return None
        return self._in_flight.pop(request_id, None)

    def _has_capacity(self) -> bool:
        if self._config.legacy_admission_overshoot:
            return self.in_flight_count <= self.limit_requests_in_flight
        return self.in_flight_count < self.limit_requests_in_flight

    def _send(self, pending: PendingCall) -> None:
        try:
            self._transport.send(pending.envelope)
        except Exception as exc:
            logger.warning("transport failed to send id=%s: %s", pending.request_id, exc)
            # The transport may have answered before raising.
            if self._in_flight.pop(pending.request_id, None) is not None:
                self._settle(
                    pending,
                    error=TransportUnavailableError(str(exc) or type(exc).__name__),
                    outcome="transport_error",
                )

    def _settle(
        self,
        pending: PendingCall,
        outcome: str,
        result: Any = None,
        error: RpcError | None = None,
    ) -> None:
        future = pending.future
        if future.done():
            logger.debug("call id=%s already settled, dropping %s", pending.request_id, outcome)
            return

        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

        self._telemetry.record_call_outcome(self._client_id, method=pending.method, outcome=outcome)
        self._telemetry.observe_call_latency(
            self._client_id,
            method=pending.method,
            value=time.monotonic() - pending.issued_at,
        )

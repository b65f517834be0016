from __future__ import annotations

import abc
import logging
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel

from shellyrpc.envelopes import RequestEnvelope
from shellyrpc.errors import TRANSPORT_UNAVAILABLE_CODE

logger = logging.getLogger(__name__)

DeliverCallback = Callable[[Mapping[str, Any] | BaseModel], None]

NOT_IMPLEMENTED_MESSAGE = "Sending message is not implemented"


class Transport(abc.ABC):
    """Carries request envelopes out and hands inbound envelopes back.

    The correlator attaches itself once; afterwards the transport calls
    ``deliver`` whenever a response or notification arrives.
    """

    def __init__(self) -> None:
        self._deliver: DeliverCallback | None = None

    def attach(self, deliver: DeliverCallback) -> None:
        self._deliver = deliver

    def deliver(self, payload: Mapping[str, Any] | BaseModel) -> None:
        if self._deliver is None:
            raise RuntimeError("transport has no attached receiver")
        self._deliver(payload)

    async def connection_ready(self) -> None:
        return None

    @abc.abstractmethod
    def send(self, envelope: RequestEnvelope) -> None:
        """Fire-and-forget; the outcome must come back through ``deliver``."""


class StubTransport(Transport):
    """Always connected, never sends; answers every request with an error."""

    def send(self, envelope: RequestEnvelope) -> None:
        logger.debug("stub transport refusing id=%s method=%s", envelope.id, envelope.method)
        self.deliver(
            {
                "dst": envelope.src,
                "src": envelope.src,
                "id": envelope.id,
                "error": {
                    "code": TRANSPORT_UNAVAILABLE_CODE,
                    "message": NOT_IMPLEMENTED_MESSAGE,
                },
            }
        )

from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

CALLS_TOTAL = Counter(
    "rpc_calls_total",
    "Settled RPC call outcomes.",
    ["client_id", "method", "outcome"],
)
CALL_LATENCY_SECONDS = Histogram(
    "rpc_call_latency_seconds",
    "Time from issuing a call to its settlement.",
    ["client_id", "method"],
)
UNMATCHED_ENVELOPES_TOTAL = Counter(
    "rpc_unmatched_envelopes_total",
    "Inbound responses dropped for lack of an in-flight counterpart.",
    ["client_id"],
)
NOTIFICATIONS_TOTAL = Counter(
    "rpc_notifications_total",
    "Inbound status and event notifications.",
    ["client_id", "method"],
)

IN_FLIGHT = Gauge("rpc_in_flight", "Requests sent and awaiting a response.", ["client_id"])
PENDING = Gauge("rpc_pending", "Requests queued behind the in-flight limit.", ["client_id"])


class Telemetry:
    def record_call_outcome(self, client_id: str, method: str, outcome: str) -> None:
        CALLS_TOTAL.labels(client_id=client_id, method=method, outcome=outcome).inc()

    def observe_call_latency(self, client_id: str, method: str, value: float) -> None:
        CALL_LATENCY_SECONDS.labels(client_id=client_id, method=method).observe(max(0.0, value))

    def record_unmatched(self, client_id: str) -> None:
        UNMATCHED_ENVELOPES_TOTAL.labels(client_id=client_id).inc()

    def record_notification(self, client_id: str, method: str) -> None:
        NOTIFICATIONS_TOTAL.labels(client_id=client_id, method=method).inc()

    def set_queue_state(self, client_id: str, pending: int, in_flight: int) -> None:
        PENDING.labels(client_id=client_id).set(max(0, pending))
        IN_FLIGHT.labels(client_id=client_id).set(max(0, in_flight))

    @staticmethod
    def scrape() -> tuple[bytes, str]:
        return generate_latest(), CONTENT_TYPE_LATEST

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass
class CorrelatorConfig:
    limit_requests_in_flight: int = 1
    # Stop admitting only once in-flight exceeds the limit, letting one
    # extra request onto the wire per drain.
    legacy_admission_overshoot: bool = False

    def __post_init__(self) -> None:
        self.limit_requests_in_flight = max(1, int(self.limit_requests_in_flight or 1))

    @classmethod
    def from_options(cls, options: Mapping[str, Any] | None) -> "CorrelatorConfig":
        if not options:
            return cls()
        limit = options.get("limitRequestsInFlight", options.get("limit_requests_in_flight"))
        return cls(
            limit_requests_in_flight=limit or 1,
            legacy_admission_overshoot=bool(options.get("legacy_admission_overshoot", False)),
        )


@dataclass
class GatewayConfig:
    client_id: str = "shellyrpc-gateway"
    call_timeout_seconds: float = 30.0
    correlator: CorrelatorConfig = field(default_factory=CorrelatorConfig)

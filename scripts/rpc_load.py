#!/usr/bin/env python3
"""Drive concurrent calls through the RPC gateway and watch its queue.

Workers keep issuing device calls while a sampler polls ``/health`` so the
report shows how deep the pending queue grew behind the in-flight limit.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import random
import statistics
import time
from collections import Counter
from dataclasses import dataclass, field

import httpx

CALL_MIXES: dict[str, list[tuple[str, dict]]] = {
    "status-poll": [
        ("Shelly.GetStatus", {}),
        ("Shelly.GetStatus", {}),
        ("Switch.GetStatus", {"id": 0}),
    ],
    "switch-toggle": [
        ("Switch.Set", {"id": 0, "on": True}),
        ("Switch.Set", {"id": 0, "on": False}),
        ("Switch.GetStatus", {"id": 0}),
    ],
}


@dataclass
class QueueSample:
    pending: int
    in_flight: int


@dataclass
class RunReport:
    outcomes: Counter = field(default_factory=Counter)
    rpc_error_codes: Counter = field(default_factory=Counter)
    latencies: list[float] = field(default_factory=list)
    samples: list[QueueSample] = field(default_factory=list)

    def as_dict(self) -> dict:
        sent = sum(self.outcomes.values())
        p50 = p95 = 0.0
        if len(self.latencies) >= 2:
            cuts = statistics.quantiles(self.latencies, n=20)
            p50, p95 = cuts[9], cuts[18]
        elif self.latencies:
            p50 = p95 = self.latencies[0]
        return {
            "sent": sent,
            "outcomes": dict(self.outcomes),
            "rpc_error_codes": {str(code): count for code, count in self.rpc_error_codes.items()},
            "latency_p50_ms": p50 * 1000,
            "latency_p95_ms": p95 * 1000,
            "peak_pending": max((s.pending for s in self.samples), default=0),
            "peak_in_flight": max((s.in_flight for s in self.samples), default=0),
            "queue_samples": len(self.samples),
        }


async def issue_calls(
    client: httpx.AsyncClient,
    mix: list[tuple[str, dict]],
    deadline: float,
    seed: int,
    report: RunReport,
) -> None:
    rng = random.Random(seed)
    while time.monotonic() < deadline:
        method, params = rng.choice(mix)
        started = time.monotonic()
        try:
            response = await client.post("/v1/rpc", json={"method": method, "params": params})
        except httpx.HTTPError:
            report.outcomes["http_failure"] += 1
            continue
        report.latencies.append(time.monotonic() - started)

        if response.status_code == 200:
            report.outcomes["result"] += 1
        elif response.status_code == 502:
            report.outcomes["rpc_error"] += 1
            report.rpc_error_codes[response.json()["detail"]["code"]] += 1
        elif response.status_code == 504:
            report.outcomes["timeout"] += 1
        else:
            report.outcomes[f"http_{response.status_code}"] += 1


async def sample_queue(
    client: httpx.AsyncClient,
    deadline: float,
    interval: float,
    report: RunReport,
) -> None:
    while time.monotonic() < deadline:
        try:
            body = (await client.get("/health")).json()
        except httpx.HTTPError:
            await asyncio.sleep(interval)
            continue
        report.samples.append(QueueSample(pending=body["pending"], in_flight=body["in_flight"]))
        await asyncio.sleep(interval)


async def run(base_url: str, mix_name: str, callers: int, duration: float, interval: float) -> RunReport:
    report = RunReport()
    deadline = time.monotonic() + duration
    async with httpx.AsyncClient(base_url=base_url, timeout=60.0) as client:
        await asyncio.gather(
            sample_queue(client, deadline, interval, report),
            *(issue_calls(client, CALL_MIXES[mix_name], deadline, seed, report) for seed in range(callers)),
        )
    return report


def main() -> None:
    parser = argparse.ArgumentParser(description="Load the RPC gateway and report queue peaks.")
    parser.add_argument("--base-url", default="http://127.0.0.1:8000")
    parser.add_argument("--mix", choices=sorted(CALL_MIXES), default="status-poll")
    parser.add_argument("--callers", type=int, default=10)
    parser.add_argument("--duration-seconds", type=float, default=30.0)
    parser.add_argument("--sample-interval", type=float, default=0.1)
    args = parser.parse_args()

    report = asyncio.run(
        run(
            base_url=args.base_url,
            mix_name=args.mix,
            callers=args.callers,
            duration=args.duration_seconds,
            interval=args.sample_interval,
        )
    )
    print(json.dumps({"mix": args.mix, "callers": args.callers, **report.as_dict()}, indent=2))


if __name__ == "__main__":
    main()

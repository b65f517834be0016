import unittest

from fastapi.testclient import TestClient

from shellyrpc.config import CorrelatorConfig, GatewayConfig
from shellyrpc.envelopes import RequestEnvelope
from shellyrpc.gateway import create_app
from shellyrpc.transport import Transport


class EchoTransport(Transport):
    """Answers every request synchronously from inside send()."""

    def send(self, envelope: RequestEnvelope) -> None:
        self.deliver(
            {
                "dst": envelope.src,
                "src": "shellyplus1-a8032ab12345",
                "id": envelope.id,
                "result": {"method": envelope.method, "params": envelope.params},
            }
        )


class SilentTransport(Transport):
    def send(self, envelope: RequestEnvelope) -> None:
        return None


class GatewayTests(unittest.TestCase):
    def test_stub_transport_maps_to_502(self) -> None:
        app = create_app(GatewayConfig(client_id="gw-test"))

        with TestClient(app) as client:
            response = client.post("/v1/rpc", json={"method": "Switch.Set", "params": {"id": 0, "on": True}})

        self.assertEqual(response.status_code, 502)
        self.assertEqual(
            response.json()["detail"],
            {"code": -999, "message": "Sending message is not implemented"},
        )

    def test_successful_call_returns_result(self) -> None:
        app = create_app(
            GatewayConfig(client_id="gw-echo", correlator=CorrelatorConfig(limit_requests_in_flight=2)),
            transport=EchoTransport(),
        )

        with TestClient(app) as client:
            response = client.post("/v1/rpc", json={"method": "Switch.GetStatus", "params": {"id": 0}})
            health = client.get("/health")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(),
            {"method": "Switch.GetStatus", "result": {"method": "Switch.GetStatus", "params": {"id": 0}}},
        )
        self.assertEqual(
            health.json(),
            {
                "status": "ok",
                "client_id": "gw-echo",
                "pending": 0,
                "in_flight": 0,
                "limit_requests_in_flight": 2,
            },
        )

    def test_unanswered_call_times_out_with_504(self) -> None:
        app = create_app(
            GatewayConfig(client_id="gw-silent", call_timeout_seconds=0.05),
            transport=SilentTransport(),
        )

        with TestClient(app) as client:
            response = client.post("/v1/rpc", json={"method": "Shelly.GetStatus"})
            health = client.get("/health")

        self.assertEqual(response.status_code, 504)
        self.assertEqual(health.json()["in_flight"], 1)

    def test_rejects_empty_method_with_422(self) -> None:
        app = create_app()

        with TestClient(app) as client:
            response = client.post("/v1/rpc", json={"method": ""})

        self.assertEqual(response.status_code, 422)

    def test_metrics_exposes_call_counters(self) -> None:
        app = create_app(GatewayConfig(client_id="gw-metrics"))

        with TestClient(app) as client:
            client.post("/v1/rpc", json={"method": "Shelly.GetDeviceInfo"})
            response = client.get("/metrics")

        self.assertEqual(response.status_code, 200)
        self.assertIn('rpc_calls_total{client_id="gw-metrics"', response.text)

import unittest

from shellyrpc.envelopes import (
    ErrorEnvelope,
    NotificationEnvelope,
    RequestEnvelope,
    ResultEnvelope,
    parse_envelope,
)
from shellyrpc.errors import EnvelopeError


class ParseEnvelopeTests(unittest.TestCase):
    def test_classifies_by_present_fields(self) -> None:
        result = parse_envelope({"dst": "c", "src": "d", "id": 3, "result": {"was_on": False}})
        error = parse_envelope(
            {"dst": "c", "src": "d", "id": 4, "error": {"code": -105, "message": "Argument 'id' not found"}}
        )
        notification = parse_envelope({"src": "d", "dst": "c", "method": "NotifyStatus", "params": {"ts": 1.0}})

        self.assertIsInstance(result, ResultEnvelope)
        self.assertEqual(result.result, {"was_on": False})
        self.assertIsInstance(error, ErrorEnvelope)
        self.assertEqual((error.error.code, error.error.message), (-105, "Argument 'id' not found"))
        self.assertIsInstance(notification, NotificationEnvelope)
        self.assertEqual(notification.kind, "status")

    def test_null_result_is_still_a_result(self) -> None:
        envelope = parse_envelope({"dst": "c", "src": "d", "id": 1, "result": None})

        self.assertIsInstance(envelope, ResultEnvelope)
        self.assertIsNone(envelope.result)

    def test_rejects_unclassifiable_payloads(self) -> None:
        for payload in (
            {"dst": "c", "id": 1},
            {"dst": "c", "id": 1, "error": "boom"},
            {"src": "d"},
            ["not", "a", "mapping"],
        ):
            with self.subTest(payload=payload):
                with self.assertRaises(EnvelopeError):
                    parse_envelope(payload)

    def test_request_wire_form(self) -> None:
        envelope = RequestEnvelope(id=7, method="Switch.Set", params={"id": 0, "on": True}, src="client-1")

        self.assertEqual(
            envelope.to_wire(),
            {
                "jsonrpc": "2.0",
                "id": 7,
                "method": "Switch.Set",
                "params": {"id": 0, "on": True},
                "src": "client-1",
            },
        )

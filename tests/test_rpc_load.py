import importlib.util
import pathlib
import sys
import unittest

SCRIPT = pathlib.Path(__file__).resolve().parents[1] / "scripts" / "rpc_load.py"
_spec = importlib.util.spec_from_file_location("rpc_load", SCRIPT)
rpc_load = importlib.util.module_from_spec(_spec)
sys.modules["rpc_load"] = rpc_load
_spec.loader.exec_module(rpc_load)


class RunReportTests(unittest.TestCase):
    def test_reports_queue_peaks_and_error_codes(self) -> None:
        report = rpc_load.RunReport()
        report.outcomes.update({"result": 3, "rpc_error": 2})
        report.rpc_error_codes.update({-999: 2})
        report.latencies.extend([0.01, 0.02, 0.03, 0.04, 0.05])
        report.samples.extend(
            [
                rpc_load.QueueSample(pending=0, in_flight=1),
                rpc_load.QueueSample(pending=7, in_flight=1),
                rpc_load.QueueSample(pending=2, in_flight=1),
            ]
        )

        summary = report.as_dict()

        self.assertEqual(summary["sent"], 5)
        self.assertEqual(summary["rpc_error_codes"], {"-999": 2})
        self.assertEqual(summary["peak_pending"], 7)
        self.assertEqual(summary["peak_in_flight"], 1)
        self.assertLessEqual(summary["latency_p50_ms"], summary["latency_p95_ms"])

    def test_empty_run_reports_zeroes(self) -> None:
        summary = rpc_load.RunReport().as_dict()

        self.assertEqual(summary["sent"], 0)
        self.assertEqual(summary["peak_pending"], 0)
        self.assertEqual(summary["latency_p95_ms"], 0.0)

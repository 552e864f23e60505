import json
import logging
import unittest

from request_tracker.observability import (
    JsonLogFormatter,
    bind_request_id,
    metrics_snapshot,
    observe_dispatch,
    reset_metrics_for_tests,
)


class JsonLogFormatterTest(unittest.TestCase):
    def _record(self, **extra) -> logging.LogRecord:
        record = logging.LogRecord("request_tracker", logging.INFO, __file__, 1, "workflow_action_dispatched", (), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_extra_fields_are_serialized(self) -> None:
        line = JsonLogFormatter().format(self._record(action="approve", from_state="SUBMITTED"))
        payload = json.loads(line)
        self.assertEqual(payload["message"], "workflow_action_dispatched")
        self.assertEqual(payload["level"], "info")
        self.assertEqual(payload["action"], "approve")
        self.assertEqual(payload["from_state"], "SUBMITTED")

    def test_background_request_id(self) -> None:
        with bind_request_id("job-1"):
            payload = json.loads(JsonLogFormatter().format(self._record()))
        self.assertEqual(payload["request_id"], "job-1")


class DispatchMetricsTest(unittest.TestCase):
    def setUp(self) -> None:
        reset_metrics_for_tests()

    def tearDown(self) -> None:
        reset_metrics_for_tests()

    def test_dispatch_outcomes_by_action(self) -> None:
        observe_dispatch("approve", "ok", 12.0)
        observe_dispatch("approve", "transition_conflict", 8.0)
        observe_dispatch("add_quote", "ok", 20.0)

        snapshot = metrics_snapshot()["workflow_dispatch"]
        self.assertEqual(snapshot["total"], 3)
        self.assertEqual(snapshot["by_action"]["approve"], {"ok": 1, "transition_conflict": 1})
        self.assertEqual(snapshot["avg_duration_ms"], 13.33)


if __name__ == "__main__":
    unittest.main()

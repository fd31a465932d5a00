import unittest

from notegarden.observability import otel


class ObservabilityHelpersTests(unittest.TestCase):
    def test_normalize_otlp_endpoint_appends_signal_path(self) -> None:
        self.assertEqual(otel._normalize_otlp_endpoint("http://collector:4318", "/v1/traces"), "http://collector:4318/v1/traces")
        self.assertEqual(otel._normalize_otlp_endpoint("http://collector:4318/v1", "/v1/metrics"), "http://collector:4318/v1/metrics")
        self.assertEqual(otel._normalize_otlp_endpoint("http://collector:4318/v1/traces", "/v1/traces"), "http://collector:4318/v1/traces")
        self.assertEqual(otel._normalize_otlp_endpoint("  ", "/v1/traces"), "")

    def test_prom_labels_fill_unknown_values(self) -> None:
        self.assertEqual(otel._prom_labels(owner_id="", result=" "), {"owner": "unknown", "result": "unknown"})

    def test_helpers_are_no_ops_while_disabled(self) -> None:
        with otel.start_span("backlinks.synchronize", {"note.id": "1"}) as span:
            self.assertIsNone(span)
        otel.record_sync("ok", 1.5, owner_id="alice")
        otel.record_edge_insert_failure(owner_id="alice", count=2)
        otel.record_unresolved_references(owner_id="alice", count=0)


if __name__ == "__main__":
    unittest.main()

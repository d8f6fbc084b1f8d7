"""Tests for @traced_engine and input fingerprints."""

from procurement_engines.tracer import compute_input_fingerprint, traced_engine
from procurement_kernel.domain.stages import Stage


class TestInputFingerprint:
    def test_deterministic(self):
        kwargs = {"current_stage": "planning", "target_stage": "template"}
        fields = ("current_stage", "target_stage")
        assert compute_input_fingerprint(fields, kwargs) == compute_input_fingerprint(
            fields, dict(kwargs)
        )

    def test_length(self):
        assert len(compute_input_fingerprint(("a",), {"a": 1})) == 16

    def test_enum_equals_value(self):
        assert compute_input_fingerprint(("s",), {"s": Stage.RFQ}) == compute_input_fingerprint(
            ("s",), {"s": "rfq"}
        )

    def test_dict_key_order_irrelevant(self):
        a = compute_input_fingerprint(("d",), {"d": {"x": 1, "y": 2}})
        b = compute_input_fingerprint(("d",), {"d": {"y": 2, "x": 1}})
        assert a == b

    def test_missing_field_is_null(self):
        assert compute_input_fingerprint(("a",), {}) == compute_input_fingerprint(
            ("a",), {"a": None}
        )

    def test_different_inputs_differ(self):
        assert compute_input_fingerprint(("a",), {"a": 1}) != compute_input_fingerprint(
            ("a",), {"a": 2}
        )


class TestTracedEngine:
    def test_result_passed_through_and_trace_logged(self, captured_logs):
        @traced_engine("demo", "2.1", fingerprint_fields=("value",))
        def double(value):
            return value * 2

        assert double(value=4) == 8

        traces = [r for r in captured_logs() if r["message"] == "PROCUREMENT_ENGINE_TRACE"]
        assert len(traces) == 1
        trace = traces[0]
        assert trace["trace_type"] == "PROCUREMENT_ENGINE_TRACE"
        assert trace["engine_name"] == "demo"
        assert trace["engine_version"] == "2.1"
        assert trace["input_fingerprint"] == compute_input_fingerprint(("value",), {"value": 4})
        assert trace["duration_ms"] >= 0
        assert trace["function"].endswith("double")

    def test_no_fingerprint_fields(self, captured_logs):
        @traced_engine("demo", "1.0")
        def noop():
            return None

        noop()

        trace = [r for r in captured_logs() if r["message"] == "PROCUREMENT_ENGINE_TRACE"][0]
        assert trace["input_fingerprint"] == ""

    def test_preserves_metadata(self):
        @traced_engine("demo", "1.0")
        def documented():
            """Docstring."""

        assert documented.__name__ == "documented"
        assert documented.__doc__ == "Docstring."

    def test_positional_and_keyword_calls_share_fingerprint(self, captured_logs):
        @traced_engine("demo", "1.0", fingerprint_fields=("stage", "days"))
        def check(stage, days=0):
            return stage

        check("rfq", 3)
        check(stage=Stage.RFQ, days=3)
        check("rfq")
        check("rfq", 0)

        fingerprints = [
            r["input_fingerprint"]
            for r in captured_logs()
            if r["message"] == "PROCUREMENT_ENGINE_TRACE"
        ]
        assert fingerprints[0] == fingerprints[1]
        assert fingerprints[2] == fingerprints[3]
        assert fingerprints[0] != fingerprints[2]

    def test_bound_method(self, captured_logs):
        class Engine:
            @traced_engine("demo", "1.0", fingerprint_fields=("value",))
            def run(self, value):
                return value

        assert Engine().run(5) == 5
        trace = [r for r in captured_logs() if r["message"] == "PROCUREMENT_ENGINE_TRACE"][0]
        assert trace["input_fingerprint"] == compute_input_fingerprint(("value",), {"value": 5})

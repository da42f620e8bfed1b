"""Tests for the run logger, history entries and log rendering."""

import re

import pytest

from triage_analysis.clustering import build_cluster_summaries
from triage_analysis.models import InputStats, TopicAssignment, ValidationResult
from triage_analysis.reports import render_log_markdown
from triage_analysis.run_log import RunLogger, history_entry


class RecordingSink:
    def __init__(self):
        self.entries = []

    def append(self, entry):
        self.entries.append(entry)


class FailingSink:
    def append(self, entry):
        raise OSError("disk full")


def _logger(sink=None) -> RunLogger:
    return RunLogger(model="gpt-4o", bot_title="Support Bot", mode="staged", sink=sink)


class TestRunLogger:
    """Test recording and finalization."""

    def test_new_log_has_run_id_and_start_time(self):
        log = _logger().log

        assert re.fullmatch(r"[A-Z0-9]{7}", log.run_id)
        assert log.start_time
        assert log.end_time is None

    def test_record_clusters_marks_what_was_sent(self, scenario_rows):
        run_logger = _logger()
        clusters = build_cluster_summaries(scenario_rows)

        run_logger.record_clusters(clusters, cap=1)

        log = run_logger.log
        assert log.total_clusters_generated == 2
        assert log.top_clusters_selected == 1
        assert log.clusters_dropped == 1
        assert [d.sent_to_ai for d in log.cluster_details] == [True, False]
        assert log.cluster_details[0].rank == 1

    def test_stage_records_success(self):
        run_logger = _logger()

        with run_logger.stage(name="Stage A", input_size=3, prompt="x" * 400):
            pass

        timing = run_logger.log.batch_summary[0]
        assert timing.success is True
        assert timing.token_estimate == 100
        assert timing.error_message is None

    def test_stage_records_failure_and_reraises(self):
        run_logger = _logger()

        with pytest.raises(RuntimeError):
            with run_logger.stage(name="Stage B", input_size=1, prompt=""):
                raise RuntimeError("boom")

        timing = run_logger.log.batch_summary[0]
        assert timing.success is False
        assert timing.error_message == "boom"

    def test_topic_coverage(self, scenario_rows):
        run_logger = _logger()
        clusters = build_cluster_summaries(scenario_rows)
        topic_map = {
            "login_issue": TopicAssignment(topic="login_issue", bucket="2", bucket_label="x")
        }

        run_logger.record_topic_coverage(returned=3, topic_map=topic_map, clusters=clusters)

        log = run_logger.log
        assert log.topic_assignments_returned == 3
        assert log.topic_assignments_mapped == 1
        assert log.topic_assignments_unmatched == 1
        assert log.data_loss_topics == ["refund"]

    def test_finalize_computes_data_loss(self, scenario_rows):
        run_logger = _logger()
        run_logger.record_input(stats=InputStats(total=12, filtered_out=2), after_filter=10)
        run_logger.record_buckets(scenario_rows)

        log = run_logger.finalize()

        assert log.end_time is not None
        assert log.rows_accounted_for == 10
        assert log.bucket0_count == 10
        assert log.data_loss_rows == 0

    def test_log_is_immutable_after_finalize(self):
        run_logger = _logger()
        run_logger.finalize()

        assert run_logger.finalized
        with pytest.raises(RuntimeError):
            run_logger.record_error("too late")
        with pytest.raises(RuntimeError):
            run_logger.finalize()

    def test_finalize_appends_history_entry_once(self):
        sink = RecordingSink()
        run_logger = _logger(sink)
        run_logger.record_recommendations(4)

        log = run_logger.finalize()

        assert sink.entries == [history_entry(log)]
        assert sink.entries[0]["recommendations"] == 4
        assert sink.entries[0]["bucket_distribution"] == {"b0": 0, "b1": 0, "b2": 0, "b3": 0}

    def test_failing_sink_does_not_fail_finalize(self, log_messages):
        log = _logger(FailingSink()).finalize()

        assert log.end_time is not None
        assert any("disk full" in message for message in log_messages)


class TestRenderLogMarkdown:
    """Test the Markdown audit report."""

    def test_all_sections_present(self, scenario_rows):
        run_logger = _logger()
        run_logger.record_clusters(build_cluster_summaries(scenario_rows), cap=20)
        run_logger.record_validation(
            [ValidationResult(type="Index", status="Fail", message="bad | indices")]
        )
        run_logger.record_error("Stage A (Strategic) API Error: 429")
        log = run_logger.finalize()

        markdown = render_log_markdown(log)

        for title in (
            "1. Run Info",
            "2. Input Filtering",
            "3. Clustering",
            "Clustering Detail",
            "4. Batch Timing",
            "5. LLM Output Coverage",
            "6. Bucket Distribution",
            "7. Data Loss Summary",
            "8. Validation Results",
            "9. Errors",
        ):
            assert f"## {title}" in markdown
        assert markdown.startswith("# Analysis Log - Support Bot")
        assert "| 1 | login_issue | 6 | 66.7% | 16.7% | YES |" in markdown
        assert "❌ Fail" in markdown
        assert "bad \\| indices" in markdown
        assert "- Stage A (Strategic) API Error: 429" in markdown

    def test_no_errors_renders_none(self):
        markdown = render_log_markdown(_logger().finalize())

        assert markdown.rstrip().endswith("None")

"""Tests for bucket assignment and recommendation merging."""

from tests.conftest import make_row
from triage_analysis.assignment import (
    apply_index_overrides,
    as_row_index,
    assign_topic_buckets,
    count_buckets,
    filter_indices,
    merge_recommendations,
)
from triage_analysis.models import BucketRecommendation, TopicAssignment


def _assignment(topic: str, bucket: str, **extra) -> TopicAssignment:
    return TopicAssignment(topic=topic, bucket=bucket, bucket_label=f"label {bucket}", **extra)


def _rec(topic: str, bucket: str = "1", *, score: int = 5, indices=None, source="strategic"):
    return BucketRecommendation(
        topic=topic,
        bucket=bucket,
        goal_alignment_score=score,
        indices=indices,
        source=source,
    )


class TestIndexHandling:
    """Test tolerance for hallucinated indices."""

    def test_as_row_index(self):
        assert as_row_index(3) == 3
        assert as_row_index(3.0) == 3
        assert as_row_index(3.5) is None
        assert as_row_index("3") is None
        assert as_row_index(True) is None
        assert as_row_index(None) is None

    def test_filter_indices_drops_out_of_range_and_duplicates(self):
        assert filter_indices([0, 9, 10, -1, 999, 2, 2, "x", 4.0], 10) == [0, 9, 2, 4]


class TestAssignTopicBuckets:
    """Test the default + cluster pass."""

    def test_mapped_topics_take_bucket_and_rest_default_to_zero(self, scenario_rows):
        topic_map = assign_topic_buckets(
            scenario_rows, [_assignment("Login_Issue ", "2")]
        )

        assert "login_issue" in topic_map
        assert [r.bucket for r in scenario_rows] == ["2"] * 6 + ["0"] * 4
        assert scenario_rows[0].bucket_label == "label 2"
        assert scenario_rows[6].bucket_label == "Resolved / Out of Scope"

    def test_previous_stamps_are_reset(self):
        row = make_row("other")
        row.bucket, row.bucket_label, row.issue_category = "3", "stale", "stale"

        assign_topic_buckets([row], [])

        assert row.bucket == "0"
        assert row.bucket_label == "Resolved / Out of Scope"
        assert row.issue_category is None

    def test_later_duplicate_assignment_wins(self):
        rows = [make_row("billing")]

        assign_topic_buckets(rows, [_assignment("billing", "1"), _assignment("BILLING", "3")])

        assert rows[0].bucket == "3"


class TestApplyIndexOverrides:
    """Test the detail override pass."""

    def test_detail_overrides_cluster_bucket(self, scenario_rows):
        assign_topic_buckets(scenario_rows, [_assignment("login_issue", "2")])
        detail = _rec("New MFA agent", "1", indices=[0], source="detail")

        apply_index_overrides(scenario_rows, [detail])

        assert scenario_rows[0].bucket == "1"
        assert scenario_rows[0].bucket_label == "Service Expansion (New Agent)"
        assert [r.bucket for r in scenario_rows[1:6]] == ["2"] * 5

    def test_out_of_range_index_dropped_and_count_rewritten(self, scenario_rows):
        rec = _rec("Refund tracking", "3", indices=[6, 999, 7])

        apply_index_overrides(scenario_rows, [rec])

        assert rec.indices == [6, 7]
        assert rec.count == 2
        assert scenario_rows[6].bucket == "3"

    def test_later_recommendation_wins_on_shared_index(self, scenario_rows):
        strategic = _rec("A", "2", indices=[1])
        detail = _rec("B", "3", indices=[1], source="detail")

        apply_index_overrides(scenario_rows, [strategic, detail])

        assert scenario_rows[1].bucket == "3"

    def test_recommendations_without_indices_are_untouched(self, scenario_rows):
        rec = _rec("No indices", "1")

        apply_index_overrides(scenario_rows, [rec])

        assert rec.indices is None
        assert rec.count == 0
        assert all(r.bucket == "0" for r in scenario_rows)


class TestMergeRecommendations:
    """Test deduplication by normalized topic."""

    def test_higher_score_wins_on_collision(self):
        strategic = [_rec("Password Reset", score=9)]
        detail = [_rec(" password reset ", score=4, source="detail")]

        merged = merge_recommendations(strategic, detail)

        assert len(merged) == 1
        assert merged[0].goal_alignment_score == 9
        assert merged[0].source == "strategic"

    def test_detail_wins_on_equal_score(self):
        merged = merge_recommendations(
            [_rec("Refunds", score=6)], [_rec("refunds", score=6, source="detail")]
        )

        assert [r.source for r in merged] == ["detail"]

    def test_sorted_by_score_descending(self):
        merged = merge_recommendations(
            [_rec("a", score=3), _rec("b", score=8)], [_rec("c", score=5)]
        )

        assert [r.topic for r in merged] == ["b", "c", "a"]

    def test_no_duplicate_topics(self):
        merged = merge_recommendations(
            [_rec("X"), _rec("x"), _rec("Y")], [_rec(" X "), _rec("y")]
        )

        topics = [r.normalized_topic for r in merged]
        assert len(topics) == len(set(topics)) == 2


def test_count_buckets(scenario_rows):
    scenario_rows[0].bucket = "1"
    scenario_rows[1].bucket = "9"

    assert count_buckets(scenario_rows) == {"0": 9, "1": 1, "2": 0, "3": 0}

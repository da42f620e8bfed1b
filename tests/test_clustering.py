"""Tests for topic clustering and failure-row sampling."""

import pytest

from tests.conftest import make_row
from triage_analysis.clustering import build_cluster_summaries, sample_failure_rows


class TestBuildClusterSummaries:
    """Test ClusterSummary grouping and statistics."""

    def test_scenario_login_issue_ranks_first(self, scenario_rows):
        """login_issue fails 4 of 6 times and outranks the all-resolved refund cluster."""
        clusters = build_cluster_summaries(scenario_rows)

        assert [c.topic for c in clusters] == ["login_issue", "refund"]
        login = clusters[0]
        assert login.total == 6
        assert login.unresolved == 4
        assert login.failure_rate == pytest.approx(4 / 6)
        assert login.negative_rate == pytest.approx(1 / 6)
        assert clusters[1].failure_rate == 0.0

    def test_row_indices_partition_all_rows(self, scenario_rows):
        """Every row index appears in exactly one cluster."""
        clusters = build_cluster_summaries(scenario_rows)

        indices = [idx for cluster in clusters for idx in cluster.row_indices]
        assert sorted(indices) == list(range(len(scenario_rows)))

    def test_topics_grouped_case_insensitively_and_trimmed(self):
        """' Billing' and 'billing ' land in one cluster keeping the first casing."""
        rows = [make_row(" Billing"), make_row("billing "), make_row("BILLING")]

        clusters = build_cluster_summaries(rows)

        assert len(clusters) == 1
        assert clusters[0].topic == "Billing"
        assert clusters[0].row_indices == [0, 1, 2]

    def test_empty_topic_forms_its_own_cluster(self):
        rows = [make_row(""), make_row("   "), make_row("billing")]

        clusters = build_cluster_summaries(rows)

        topics = {c.topic: c.total for c in clusters}
        assert topics == {"": 2, "billing": 1}

    def test_sorted_by_failure_rate_with_stable_ties(self):
        """Clusters with equal failure rates keep first-seen order."""
        rows = [
            make_row("alpha", "resolved"),
            make_row("beta", "user_drop_off"),
            make_row("gamma", "resolved"),
            make_row("delta", "unresolved"),
        ]

        clusters = build_cluster_summaries(rows)

        assert [c.topic for c in clusters] == ["beta", "delta", "alpha", "gamma"]
        rates = [c.failure_rate for c in clusters]
        assert rates == sorted(rates, reverse=True)

    def test_rates_stay_within_bounds(self, scenario_rows):
        for cluster in build_cluster_summaries(scenario_rows):
            assert 0.0 <= cluster.failure_rate <= 1.0
            assert 0.0 <= cluster.negative_rate <= 1.0

    def test_sample_queries_prefer_unresolved_rows(self):
        rows = [
            make_row("faq", "resolved", query="resolved one"),
            make_row("faq", "unresolved", query="broken one"),
            make_row("faq", "resolved", query="resolved two"),
        ]

        clusters = build_cluster_summaries(rows)

        assert clusters[0].sample_queries == ["broken one"]

    def test_sample_queries_capped_at_three(self):
        rows = [make_row("faq", "unresolved", query=f"q{i}") for i in range(5)]

        clusters = build_cluster_summaries(rows)

        assert clusters[0].sample_queries == ["q0", "q1", "q2"]

    def test_empty_input_gives_no_clusters(self):
        assert build_cluster_summaries([]) == []


class TestSampleFailureRows:
    """Test failure-row selection for the detail stage."""

    def test_only_failure_rows_selected(self, scenario_rows):
        sampled = sample_failure_rows(scenario_rows)

        assert [s.original_index for s in sampled] == [2, 0, 1, 3]

    def test_priority_negative_then_unresolved_then_drop_off(self):
        rows = [
            make_row("a", "user_drop_off"),
            make_row("b", "unresolved"),
            make_row("c", "resolved", "negative"),
            make_row("d", "user_drop_off"),
            make_row("e", "unresolved", "negative"),
        ]

        sampled = sample_failure_rows(rows, top_n=3)

        assert [s.original_index for s in sampled] == [2, 4, 1]

    def test_never_exceeds_top_n_or_duplicates(self):
        rows = [make_row("t", "unresolved", "negative") for _ in range(20)]

        sampled = sample_failure_rows(rows, top_n=7)

        indices = [s.original_index for s in sampled]
        assert len(indices) == 7
        assert len(set(indices)) == 7

    def test_sampled_row_carries_the_original_row(self, scenario_rows):
        sampled = sample_failure_rows(scenario_rows, top_n=1)

        assert sampled[0].row is scenario_rows[sampled[0].original_index]

    def test_resolved_positive_rows_are_ignored(self):
        rows = [make_row("t", "resolved", "positive"), make_row("t", "partially_resolved")]

        assert sample_failure_rows(rows) == []

"""Tests for post-run validation checks."""

import json

from tests.conftest import make_row
from triage_analysis.clustering import build_cluster_summaries
from triage_analysis.models import BucketRecommendation
from triage_analysis.validation import (
    run_all_validations,
    validate_bucket_consistency,
    validate_example_presence,
    validate_indices,
    validate_recommendation_quality,
)

GOOD_TEXT = "Implement a dedicated refund tracking flow in the bot"


def _rec(topic="Refunds", *, indices=None, examples=("example",), recommendation=GOOD_TEXT):
    return BucketRecommendation(
        topic=topic,
        bucket="1",
        problem_statement="Users cannot track refunds in the bot",
        recommendation=recommendation,
        examples=list(examples),
        indices=indices,
    )


class TestValidateIndices:
    def test_pass_for_valid_indices(self):
        result = validate_indices([_rec(indices=[0, 9]), _rec(indices=None)], 10)

        assert result.type == "Index"
        assert result.status == "Pass"

    def test_fail_lists_offending_topics(self):
        result = validate_indices([_rec("Bad", indices=[1, 10, "x", True])], 10)

        assert result.status == "Fail"
        assert json.loads(result.details) == [{"topic": "Bad", "indices": [10, "x", True]}]


class TestValidateBucketConsistency:
    def test_warns_when_failing_cluster_left_in_bucket_zero(self, scenario_rows):
        clusters = build_cluster_summaries(scenario_rows)

        result = validate_bucket_consistency(scenario_rows, clusters)

        assert result.status == "Warning"
        assert result.details == "login_issue"

    def test_pass_when_failing_cluster_is_bucketed(self, scenario_rows):
        for row in scenario_rows[:6]:
            row.bucket = "2"
        clusters = build_cluster_summaries(scenario_rows)

        assert validate_bucket_consistency(scenario_rows, clusters).status == "Pass"

    def test_negative_rate_alone_triggers_warning(self):
        rows = [make_row("tone", "resolved", "negative")] + [
            make_row("tone", "resolved") for _ in range(4)
        ]

        result = validate_bucket_consistency(rows, build_cluster_summaries(rows))

        assert result.status == "Warning"


class TestValidateExamplePresence:
    def test_fail_when_examples_missing(self):
        result = validate_example_presence([_rec("Has"), _rec("Empty", examples=())])

        assert result.status == "Fail"
        assert result.details == "Empty"

    def test_pass_when_all_have_examples(self):
        assert validate_example_presence([_rec()]).status == "Pass"


class TestValidateRecommendationQuality:
    def test_warns_on_short_or_non_actionable_text(self):
        recs = [
            _rec("Short", recommendation="Fix it"),
            _rec("Vague", recommendation="The refund experience could be nicer overall"),
            _rec("Good"),
        ]

        result = validate_recommendation_quality(recs)

        assert result.status == "Warning"
        assert result.details == "Short, Vague"

    def test_pass_for_actionable_text(self):
        assert validate_recommendation_quality([_rec()]).status == "Pass"


def test_run_all_validations_covers_every_check(scenario_rows):
    results = run_all_validations([_rec(indices=[0])], scenario_rows, [])

    assert [r.type for r in results] == ["Index", "Bucket", "Examples", "Quality"]
    assert all(r.status == "Pass" for r in results)

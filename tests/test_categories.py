"""Tests for issue-category resolution."""

from tests.conftest import make_row
from triage_analysis.categories import (
    IssueCategoryResolver,
    explicit_categories,
    similarity_score,
    tokenize,
)
from triage_analysis.models import BucketRecommendation, TopicAssignment


def _rec(topic: str, bucket: str = "2", *, score: int = 5, indices=None):
    return BucketRecommendation(
        topic=topic, bucket=bucket, goal_alignment_score=score, indices=indices
    )


def _rows(*topics_and_buckets):
    rows = []
    for topic, bucket in topics_and_buckets:
        row = make_row(topic)
        row.bucket = bucket
        rows.append(row)
    return rows


class TestSimilarity:
    """Test the keyword similarity score."""

    def test_tokenize_drops_short_tokens(self):
        assert tokenize("Login_is-a, big  issue") == {"login", "big", "issue"}

    def test_shared_tokens_containment_and_substrings(self):
        # shared {"password", "reset"} = 4, containment = 3, substrings = 2
        assert similarity_score("password reset", "Password Reset Loop") == 9

    def test_substring_without_shared_token(self):
        # "login" appears inside "loginflow" but is not a token of it
        assert similarity_score("login", "loginflow fixes") == 1 + 3

    def test_unrelated_topics_score_zero(self):
        assert similarity_score("refund", "shipping delays") == 0


class TestIssueCategoryResolver:
    """Test the four resolution tiers."""

    def test_tier1_explicit_category_wins(self):
        rows = _rows(("login_issue", "2"))
        recs = {"2": [_rec("Session handling", indices=[0])]}
        categories = explicit_categories(
            {
                "login_issue": TopicAssignment(
                    topic="login_issue",
                    bucket="2",
                    bucket_label="x",
                    issue_category="Login loop",
                )
            }
        )

        IssueCategoryResolver(rows=rows, recommendations=recs, categories=categories).resolve()

        assert rows[0].issue_category == "Login loop"

    def test_tier2_index_coverage_spreads_to_same_topic_rows(self):
        """A row not listed in indices still inherits the category via its topic."""
        rows = _rows(("login_issue", "2"), ("login_issue", "2"), ("billing", "2"))
        recs = {
            "2": [
                _rec("Billing errors", score=9),
                _rec("Auth fixes", score=3, indices=[0]),
            ]
        }

        IssueCategoryResolver(rows=rows, recommendations=recs).resolve()

        assert rows[0].issue_category == "Auth fixes"
        assert rows[1].issue_category == "Auth fixes"

    def test_tier2_first_in_merged_order_wins(self):
        rows = _rows(("login_issue", "2"))
        recs = {"2": [_rec("First", score=9, indices=[0]), _rec("Second", score=2, indices=[0])]}

        IssueCategoryResolver(rows=rows, recommendations=recs).resolve()

        assert rows[0].issue_category == "First"

    def test_tier3_keyword_similarity(self):
        rows = _rows(("billing", "2"), ("refund request", "2"))
        recs = {"2": [_rec("Billing errors", score=9), _rec("Refund request flow", score=1)]}

        IssueCategoryResolver(rows=rows, recommendations=recs).resolve()

        assert rows[0].issue_category == "Billing errors"
        assert rows[1].issue_category == "Refund request flow"

    def test_tier3_tie_goes_to_lexically_smallest_topic(self):
        rows = _rows(("payment", "2"))
        recs = {"2": [_rec("Zeta payment"), _rec("Alpha payment")]}

        IssueCategoryResolver(rows=rows, recommendations=recs).resolve()

        assert rows[0].issue_category == "Alpha payment"

    def test_tier4_falls_back_to_top_scored(self):
        rows = _rows(("weather", "2"))
        recs = {"2": [_rec("Highest", score=9), _rec("Lower", score=2)]}

        IssueCategoryResolver(rows=rows, recommendations=recs).resolve()

        assert rows[0].issue_category == "Highest"

    def test_bucket_without_recommendations_uses_label(self):
        rows = _rows(("weather", "3"))

        IssueCategoryResolver(rows=rows, recommendations={"3": []}).resolve()

        assert rows[0].issue_category == "Information Gaps (KB Update)"

    def test_bucket_zero_rows_get_no_category(self):
        rows = _rows(("login_issue", "0"))
        rows[0].issue_category = "stale"

        IssueCategoryResolver(
            rows=rows, recommendations={"2": [_rec("Anything", indices=[0])]}
        ).resolve()

        assert rows[0].issue_category is None

    def test_only_same_bucket_recommendations_are_candidates(self):
        rows = _rows(("billing", "1"))
        recs = {"1": [_rec("Generic", "1")], "2": [_rec("Billing errors", indices=[0])]}

        IssueCategoryResolver(rows=rows, recommendations=recs).resolve()

        assert rows[0].issue_category == "Generic"

    def test_every_bucketed_row_gets_a_category(self, scenario_rows):
        for idx, row in enumerate(scenario_rows):
            row.bucket = str(idx % 4)
        recs = {"1": [_rec("A", "1")], "2": [], "3": [_rec("C", "3")]}

        IssueCategoryResolver(rows=scenario_rows, recommendations=recs).resolve()

        for row in scenario_rows:
            if row.bucket == "0":
                assert row.issue_category is None
            else:
                assert row.issue_category

    def test_explicit_category_ignored_after_bucket_override(self):
        """A row moved out of the strategic bucket does not carry its category along."""
        rows = _rows(("login_issue", "1"))
        categories = explicit_categories(
            {
                "login_issue": TopicAssignment(
                    topic="login_issue",
                    bucket="2",
                    bucket_label="x",
                    issue_category="Login loop",
                )
            }
        )
        recs = {"1": [_rec("MFA agent", "1", indices=[0])], "2": [_rec("Login loop")]}

        IssueCategoryResolver(rows=rows, recommendations=recs, categories=categories).resolve()

        assert rows[0].issue_category == "MFA agent"

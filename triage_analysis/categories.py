"""Issue-category resolution: which recommendation a bucketed row belongs to."""

import re

from .constants import BUCKET_LABELS, BucketId
from .models import (
    BucketRecommendation,
    ConversationRow,
    TopicAssignment,
    normalize_key,
)

_TOKEN_SEPARATORS = re.compile(r"[\s_,\-]+")
_MIN_TOKEN_LENGTH = 3

_SHARED_TOKEN_POINTS = 2
_CONTAINMENT_POINTS = 3
_SUBSTRING_POINTS = 1


def tokenize(text: str) -> set[str]:
    """Lower-cased tokens longer than two characters."""
    return {
        token
        for token in _TOKEN_SEPARATORS.split(normalize_key(text))
        if len(token) >= _MIN_TOKEN_LENGTH
    }


def similarity_score(cluster_topic: str, recommendation_topic: str) -> int:
    """Keyword similarity between a cluster topic and a recommendation topic.

    Two points per shared token, three if one topic string contains the other,
    and one per cluster token found anywhere inside the recommendation topic.
    """
    cluster_key = normalize_key(cluster_topic)
    rec_key = normalize_key(recommendation_topic)
    cluster_tokens = tokenize(cluster_key)

    score = _SHARED_TOKEN_POINTS * len(cluster_tokens & tokenize(rec_key))
    if cluster_key and rec_key and (cluster_key in rec_key or rec_key in cluster_key):
        score += _CONTAINMENT_POINTS
    score += _SUBSTRING_POINTS * sum(1 for token in cluster_tokens if token in rec_key)
    return score


def explicit_categories(
    topic_map: dict[str, TopicAssignment],
) -> dict[tuple[str, str], str]:
    """(bucket, normalized topic) -> issue category, for assignments that named one."""
    return {
        (assignment.bucket, topic): assignment.issue_category
        for topic, assignment in topic_map.items()
        if assignment.issue_category
    }


class IssueCategoryResolver:
    """Attributes every bucketed row to one recommendation topic in its bucket.

    Resolution happens once per (bucket, cluster topic) and goes through four
    tiers, first match wins:

    1. the issue category the strategic stage named for the topic, while the
       row is still in the bucket that stage assigned;
    2. a recommendation whose explicit indices cover a row of the same topic;
    3. the recommendation with the best keyword similarity (ties go to the
       lexically smallest topic);
    4. the bucket's highest-scored recommendation.

    A bucket without any recommendation falls back to its label. Rows in
    bucket "0" never get a category.

    Attributes:
        rows: Categorized rows, stamped in place.
        recommendations: Merged recommendations per bucket id, best first.
        categories: Explicit categories keyed by (bucket, normalized topic).
    """

    def __init__(
        self,
        *,
        rows: list[ConversationRow],
        recommendations: dict[str, list[BucketRecommendation]],
        categories: dict[tuple[str, str], str] | None = None,
    ):
        self.rows = rows
        self.recommendations = recommendations
        self.categories = categories or {}
        self._covered_topics = {
            id(rec): self._topics_covered_by(rec)
            for recs in recommendations.values()
            for rec in recs
        }
        self._cache: dict[tuple[str, str], str] = {}

    def _topics_covered_by(self, rec: BucketRecommendation) -> set[str]:
        if not rec.indices:
            return set()
        return {
            self.rows[idx].normalized_topic
            for idx in rec.indices
            if isinstance(idx, int) and 0 <= idx < len(self.rows)
        }

    def resolve(self) -> None:
        """Stamp ``issue_category`` on every row."""
        for row in self.rows:
            if row.bucket == BucketId.RESOLVED or row.bucket not in BUCKET_LABELS:
                row.issue_category = None
                continue
            row.issue_category = self.category_for(
                bucket=row.bucket, topic=row.normalized_topic
            )

    def category_for(self, *, bucket: str, topic: str) -> str:
        key = (bucket, topic)
        if key not in self._cache:
            self._cache[key] = self._resolve(bucket=bucket, topic=topic)
        return self._cache[key]

    def _resolve(self, *, bucket: str, topic: str) -> str:
        explicit = self.categories.get((bucket, topic))
        if explicit:
            return explicit

        candidates = self.recommendations.get(bucket, [])
        if not candidates:
            return BUCKET_LABELS[bucket]

        for rec in candidates:
            if topic in self._covered_topics.get(id(rec), set()):
                return rec.topic

        best = self._best_keyword_match(topic=topic, candidates=candidates)
        if best is not None:
            return best.topic

        return candidates[0].topic

    @staticmethod
    def _best_keyword_match(
        *, topic: str, candidates: list[BucketRecommendation]
    ) -> BucketRecommendation | None:
        scored = [(similarity_score(topic, rec.topic), rec) for rec in candidates]
        top = max(score for score, _ in scored)
        if top <= 0:
            return None
        return min(
            (rec for score, rec in scored if score == top),
            key=lambda rec: rec.normalized_topic,
        )

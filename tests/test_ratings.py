"""Unit tests for review eligibility and the rating formula."""

import pytest

from src.domain.errors import ValidationError
from src.domain.ratings import guard_review, mean_rating


class TestMeanRating:
    def test_no_reviews_is_none(self):
        assert mean_rating([]) is None

    def test_plain_mean(self):
        assert mean_rating([5, 4, 3, 4]) == 4.0

    def test_not_rounded(self):
        assert mean_rating([5, 4]) == 4.5
        assert mean_rating([5, 5, 4]) == pytest.approx(14 / 3)


class TestGuardReview:
    def test_participants_may_review_each_other(self):
        guard_review("p1", "d1", reviewer_participated=True, reviewed_participated=True)

    def test_self_review_rejected(self):
        with pytest.raises(ValidationError, match="yourself"):
            guard_review("p1", "p1", True, True)

    def test_reviewer_must_have_participated(self):
        with pytest.raises(ValidationError, match="participate"):
            guard_review("p1", "d1", reviewer_participated=False, reviewed_participated=True)

    def test_reviewed_user_must_have_participated(self):
        with pytest.raises(ValidationError, match="did not participate"):
            guard_review("p1", "x9", reviewer_participated=True, reviewed_participated=False)

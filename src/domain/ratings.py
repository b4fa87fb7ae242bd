"""Review eligibility rules and the aggregate rating formula."""

from __future__ import annotations

from typing import Iterable, Optional

from .errors import ValidationError


def mean_rating(ratings: Iterable[int]) -> Optional[float]:
    """Unweighted mean of every rating ever received; ``None`` when there are none."""
    ratings = list(ratings)
    if not ratings:
        return None
    return sum(ratings) / len(ratings)


def guard_review(
    reviewer_id: str,
    reviewed_user_id: str,
    reviewer_participated: bool,
    reviewed_participated: bool,
) -> None:
    if reviewer_id == reviewed_user_id:
        raise ValidationError("Cannot review yourself")
    if not reviewer_participated:
        raise ValidationError("You must participate in the ride to review")
    if not reviewed_participated:
        raise ValidationError("Reviewed user did not participate in this ride")

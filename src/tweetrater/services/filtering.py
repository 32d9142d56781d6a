"""Visibility decision for rated items."""

from typing import Optional

from tweetrater.models.item import ProcessingState


DEFAULT_SCORE = 1


def is_visible(score: Optional[int], status: str, threshold: int) -> bool:
    """
    Decide whether an item should be shown.

    Pending and streaming items stay visible until they are rated; a
    partial score never hides an item. An item without a score is
    treated as scoring 1.

    Args:
        score: Displayed score, if any
        status: ProcessingState value
        threshold: Minimum score to stay visible
    """
    if status in (ProcessingState.PENDING.value, ProcessingState.STREAMING.value):
        return True
    return (score if score is not None else DEFAULT_SCORE) >= threshold

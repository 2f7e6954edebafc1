from typing import Tuple

from ..models.safety import ModerationDecision

DEFAULT_AUTO_HIDE_THRESHOLD = 5


def should_auto_hide(report_count: int, threshold: int = DEFAULT_AUTO_HIDE_THRESHOLD) -> bool:
    """A post is hidden once it has ``threshold`` distinct reporters."""
    return report_count >= threshold


def initial_visibility(decision: ModerationDecision) -> Tuple[bool, str]:
    """(hidden, moderation_status) for a newly created post.

    Rejected posts are never stored, so only approve/review reach here.
    """
    if decision == ModerationDecision.APPROVE:
        return False, "approved"
    return True, "pending_review"

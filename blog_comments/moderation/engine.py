"""Moderation engine.

Wraps a scoring policy and turns its verdict into a recommended status:

- ``spam`` when any spam flag reaches the spam confidence threshold
- ``approved`` when the score reaches the approval threshold
- ``pending`` otherwise

Thresholds come from configuration. ``analyze`` is pure.
"""

from typing import TYPE_CHECKING

from blog_comments.comments.models import CommentStatus, ModerationResult

from .policy import HeuristicModerationPolicy, ModerationCandidate, ModerationPolicy


if TYPE_CHECKING:
    from blog_comments.config.settings import Settings


class ModerationEngine:
    """Scores candidate comments and recommends an initial status."""

    def __init__(
        self,
        policy: ModerationPolicy,
        approve_threshold: int = 70,
        spam_confidence_threshold: float = 0.75,
    ) -> None:
        self.policy = policy
        self.approve_threshold = approve_threshold
        self.spam_confidence_threshold = spam_confidence_threshold

    @classmethod
    def from_settings(
        cls, settings: "Settings", policy: ModerationPolicy | None = None
    ) -> "ModerationEngine":
        """Build an engine with the configured thresholds."""
        return cls(
            policy=policy
            or HeuristicModerationPolicy(
                min_length=settings.moderation_min_length,
                max_length=settings.moderation_max_length,
                max_links=settings.moderation_max_links,
            ),
            approve_threshold=settings.moderation_approve_threshold,
            spam_confidence_threshold=settings.moderation_spam_confidence_threshold,
        )

    def analyze(self, candidate: ModerationCandidate) -> ModerationResult:
        verdict = self.policy.analyze(candidate)
        score = max(0, min(100, int(verdict.score)))
        return ModerationResult(
            score=score,
            flags=list(verdict.flags),
            auto_action=self.recommend(score, verdict.flags),
        )

    def recommend(self, score: int, flags: list) -> CommentStatus:
        if any(
            flag.type == "spam" and flag.confidence >= self.spam_confidence_threshold
            for flag in flags
        ):
            return CommentStatus.SPAM
        if score >= self.approve_threshold:
            return CommentStatus.APPROVED
        return CommentStatus.PENDING

"""Comment moderation: pluggable scoring policies and the engine that
turns a score into a recommended status."""

from blog_comments.moderation.engine import ModerationEngine
from blog_comments.moderation.policy import (
    HeuristicModerationPolicy,
    ModerationCandidate,
    ModerationPolicy,
    PolicyVerdict,
)


__all__ = [
    "HeuristicModerationPolicy",
    "ModerationCandidate",
    "ModerationEngine",
    "ModerationPolicy",
    "PolicyVerdict",
]

"""Idempotent, switchable like/dislike votes on comments."""

from blog_comments.voting.ledger import VotingLedger, apply_vote


__all__ = ["VotingLedger", "apply_vote"]

"""Voting ledger.

Each voter key (user id or request IP, treated as opaque) holds at most one
vote per comment:

- repeating the same vote changes nothing
- casting the opposite vote moves one unit from the old bucket to the new
- removing a vote empties the voter's slot

All changes go through ``CommentRepository.mutate`` so two concurrent votes
from the same key can never both count.
"""

from datetime import UTC, datetime
from uuid import UUID

import structlog

from blog_comments.comments.exceptions import NotVotableError, ValidationError
from blog_comments.comments.models import Comment, CommentStatus, Votes, VoteType
from blog_comments.comments.repository import CommentRepository


logger = structlog.get_logger(__name__)


def apply_vote(votes: Votes, voter_key: str, vote_type: VoteType | None) -> bool:
    """Move ``voter_key`` into the bucket for ``vote_type`` (None clears it).

    Returns:
        True if the counters changed.
    """
    previous = votes.voters.get(voter_key)
    if previous == vote_type:
        return False

    if previous == VoteType.LIKE:
        votes.likes = max(0, votes.likes - 1)
    elif previous == VoteType.DISLIKE:
        votes.dislikes = max(0, votes.dislikes - 1)

    if vote_type == VoteType.LIKE:
        votes.likes += 1
    elif vote_type == VoteType.DISLIKE:
        votes.dislikes += 1

    if vote_type is None:
        votes.voters.pop(voter_key, None)
    else:
        votes.voters[voter_key] = vote_type
    return True


class VotingLedger:
    """Per-comment, per-voter like/dislike state."""

    def __init__(self, repository: CommentRepository) -> None:
        self.repository = repository

    async def vote(self, comment_id: UUID, voter_key: str, vote_type: VoteType) -> Votes:
        """Cast or switch a vote on an approved comment."""
        return await self._set(comment_id, voter_key, vote_type)

    async def remove_vote(self, comment_id: UUID, voter_key: str) -> Votes:
        """Clear the voter's slot, if any."""
        return await self._set(comment_id, voter_key, None)

    async def _set(
        self, comment_id: UUID, voter_key: str, vote_type: VoteType | None
    ) -> Votes:
        if not voter_key:
            msg = "No se pudo identificar al votante"
            raise ValidationError(msg)

        def mutation(comment: Comment) -> bool:
            if comment.status != CommentStatus.APPROVED:
                raise NotVotableError
            changed = apply_vote(comment.votes, voter_key, vote_type)
            if changed:
                comment.updated_at = datetime.now(UTC)
            return changed

        comment = await self.repository.mutate(comment_id, mutation)
        logger.info(
            "comment_vote_recorded",
            comment_id=str(comment_id),
            vote=vote_type.value if vote_type else None,
            likes=comment.votes.likes,
            dislikes=comment.votes.dislikes,
        )
        return comment.votes

"""Tests for comment persistence.

The in-memory backend is exercised directly; the Cassandra backend runs
against a mocked session to check its lightweight-transaction handling.
"""

import asyncio
import json
from datetime import UTC, datetime
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest
from cassandra.cluster import Session

from blog_comments.comments.exceptions import (
    CommentNotFoundError,
    ConcurrentModificationError,
)
from blog_comments.comments.models import (
    Comment,
    CommentStatus,
    GuestAuthor,
    ModerationInfo,
    create_comment,
)
from blog_comments.comments.repository import (
    CassandraCommentRepository,
    InMemoryCommentRepository,
)


def new_comment(status: CommentStatus = CommentStatus.APPROVED) -> Comment:
    return create_comment(
        post_id=uuid4(),
        author=GuestAuthor(name="Invitado", email="invitado@blog.test"),
        content="Contenido de prueba",
        status=status,
        moderation=ModerationInfo(),
    )


def comment_row(comment: Comment, version: int = 0) -> Mock:
    """Build a row the way the driver returns it."""
    return Mock(
        comment_id=comment.comment_id,
        post_id=comment.post_id,
        parent_id=comment.parent_id,
        level=comment.level,
        author=json.dumps(comment.author.to_dict()),
        content=comment.content,
        status=comment.status.value,
        votes=json.dumps(comment.votes.to_dict()),
        replies_count=comment.replies_count,
        moderation=json.dumps(comment.moderation.to_dict()),
        pinned=False,
        pinned_by=None,
        pinned_at=None,
        metadata=json.dumps(comment.metadata.to_dict()),
        edit_history="[]",
        created_at=comment.created_at,
        edited_at=None,
        updated_at=comment.updated_at,
        version=version,
    )


def lwt(applied: bool) -> list[Mock]:
    return [Mock(applied=applied)]


class TestInMemoryRepository:
    """Tests for InMemoryCommentRepository."""

    @pytest.mark.asyncio
    async def test_returned_copies_are_isolated(self) -> None:
        repository = InMemoryCommentRepository()
        comment = new_comment()
        await repository.insert(comment)

        loaded = await repository.get(comment.comment_id)
        loaded.content = "cambiado fuera del repositorio"

        assert (await repository.get(comment.comment_id)).content == comment.content

    @pytest.mark.asyncio
    async def test_mutate_bumps_version_only_on_change(self) -> None:
        repository = InMemoryCommentRepository()
        comment = new_comment()
        await repository.insert(comment)

        unchanged = await repository.mutate(comment.comment_id, lambda c: False)
        changed = await repository.mutate(
            comment.comment_id, lambda c: setattr(c, "content", "nuevo")
        )

        assert unchanged.version == 0
        assert changed.version == 1
        assert changed.content == "nuevo"

    @pytest.mark.asyncio
    async def test_concurrent_mutations_do_not_lose_updates(self) -> None:
        repository = InMemoryCommentRepository()
        comment = new_comment()
        await repository.insert(comment)

        def like(c: Comment) -> None:
            c.votes.likes += 1

        await asyncio.gather(
            *(repository.mutate(comment.comment_id, like) for _ in range(20))
        )

        assert (await repository.get(comment.comment_id)).votes.likes == 20

    @pytest.mark.asyncio
    async def test_mutate_missing(self) -> None:
        with pytest.raises(CommentNotFoundError):
            await InMemoryCommentRepository().mutate(uuid4(), lambda c: None)

    @pytest.mark.asyncio
    async def test_delete_if_leaf(self) -> None:
        repository = InMemoryCommentRepository()
        leaf = new_comment()
        parent = new_comment()
        parent.replies_count = 1
        await repository.insert(leaf)
        await repository.insert(parent)

        assert await repository.delete_if_leaf(leaf.comment_id) is True
        assert await repository.delete_if_leaf(parent.comment_id) is False
        assert await repository.get(leaf.comment_id) is None
        assert await repository.get(parent.comment_id) is not None

    @pytest.mark.asyncio
    async def test_count_by_status_includes_every_status(self) -> None:
        repository = InMemoryCommentRepository()
        await repository.insert(new_comment())
        await repository.insert(new_comment(CommentStatus.SPAM))

        counts = await repository.count_by_status()

        assert counts == {
            "pending": 0,
            "approved": 1,
            "rejected": 0,
            "spam": 1,
            "hidden": 0,
        }


@pytest.fixture
def mock_session():
    """Mock Cassandra session."""
    session = Mock(spec=Session)
    session.prepare = Mock(return_value=Mock())
    # Make aexecute awaitable (cassandra-asyncio-driver)
    session.aexecute = AsyncMock()
    return session


class TestCassandraRepository:
    """Tests for CassandraCommentRepository against a mocked session."""

    @pytest.mark.asyncio
    async def test_mutate_retries_after_lost_race(self, mock_session) -> None:
        """A failed ``IF version`` condition re-reads and re-applies."""
        # Arrange
        comment = new_comment()
        mock_session.aexecute.side_effect = [
            [comment_row(comment, version=0)],
            lwt(applied=False),
            [comment_row(comment, version=1)],
            lwt(applied=True),
        ]
        repository = CassandraCommentRepository(mock_session, "blog", max_attempts=3)

        # Act
        result = await repository.mutate(
            comment.comment_id, lambda c: setattr(c, "updated_at", datetime.now(UTC))
        )

        # Assert
        assert result.version == 2
        update_args = mock_session.aexecute.call_args_list[3].args[1]
        assert update_args[-1] == 1  # expected version
        assert update_args[-3] == 2  # new version

    @pytest.mark.asyncio
    async def test_mutate_gives_up(self, mock_session) -> None:
        comment = new_comment()
        mock_session.aexecute.side_effect = [
            [comment_row(comment)],
            lwt(applied=False),
            [comment_row(comment)],
            lwt(applied=False),
        ]
        repository = CassandraCommentRepository(mock_session, "blog", max_attempts=2)

        with pytest.raises(ConcurrentModificationError):
            await repository.mutate(comment.comment_id, lambda c: None)

    @pytest.mark.asyncio
    async def test_mutate_without_change_skips_write(self, mock_session) -> None:
        comment = new_comment()
        mock_session.aexecute.side_effect = [[comment_row(comment)]]
        repository = CassandraCommentRepository(mock_session, "blog")

        await repository.mutate(comment.comment_id, lambda c: False)

        assert mock_session.aexecute.call_count == 1

    @pytest.mark.asyncio
    async def test_insert_conflict(self, mock_session) -> None:
        mock_session.aexecute.return_value = lwt(applied=False)
        repository = CassandraCommentRepository(mock_session, "blog")

        with pytest.raises(ValueError):
            await repository.insert(new_comment())

    @pytest.mark.asyncio
    async def test_delete_if_leaf_with_replies(self, mock_session) -> None:
        mock_session.aexecute.return_value = [Mock(applied=False, replies_count=2)]
        repository = CassandraCommentRepository(mock_session, "blog")

        assert await repository.delete_if_leaf(uuid4()) is False

    @pytest.mark.asyncio
    async def test_delete_if_leaf_missing_row(self, mock_session) -> None:
        mock_session.aexecute.return_value = [Mock(applied=False, replies_count=None)]
        repository = CassandraCommentRepository(mock_session, "blog")

        with pytest.raises(CommentNotFoundError):
            await repository.delete_if_leaf(uuid4())

    @pytest.mark.asyncio
    async def test_row_round_trip_restores_nested_values(self, mock_session) -> None:
        comment = new_comment()
        comment.votes.likes = 3
        mock_session.aexecute.return_value = [comment_row(comment, version=4)]
        repository = CassandraCommentRepository(mock_session, "blog")

        loaded = await repository.get(comment.comment_id)

        assert loaded.author == comment.author
        assert loaded.votes.likes == 3
        assert loaded.version == 4

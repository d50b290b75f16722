"""Tests for the comment service lifecycle."""

from uuid import uuid4

import pytest
from conftest import (
    APPROVED_CONTENT,
    PENDING_CONTENT,
    SPAM_CONTENT,
    RecordingDispatcher,
    RecordingTransport,
    registered,
)

from blog_comments.comments.exceptions import (
    CommentNotFoundError,
    CommentsClosedError,
    InvalidStateError,
    InvalidTransitionError,
    MaxDepthExceededError,
    PermissionDeniedError,
    PostNotFoundError,
    ValidationError,
)
from blog_comments.comments.models import CommentStatus, ModerationAction
from blog_comments.comments.service import CommentService, GuestInput
from blog_comments.notifications.models import NotificationType


GUEST = GuestInput(name="Ana", email="ana@correo.test")


class TestCreateComment:
    """Tests for create_comment."""

    @pytest.mark.asyncio
    async def test_registered_author_clean_content_is_approved(
        self, comment_service: CommentService, reader, post
    ) -> None:
        """Clean content from a registered reader is published at once."""
        # Act
        comment = await comment_service.create_comment(
            post.slug, APPROVED_CONTENT, actor=reader
        )

        # Assert
        assert comment.status == CommentStatus.APPROVED
        assert comment.level == 0
        assert comment.author.user_id == reader.id
        assert comment.moderation.auto_moderated is True

    @pytest.mark.asyncio
    async def test_guest_requires_name_and_email(
        self, comment_service: CommentService, post
    ) -> None:
        """Guests without an email are rejected before anything is stored."""
        with pytest.raises(ValidationError):
            await comment_service.create_comment(
                post.slug, APPROVED_CONTENT, guest=GuestInput(name="Ana")
            )

    @pytest.mark.asyncio
    async def test_unknown_post(self, comment_service: CommentService) -> None:
        with pytest.raises(PostNotFoundError):
            await comment_service.create_comment(
                "no-existe", APPROVED_CONTENT, guest=GUEST
            )

    @pytest.mark.asyncio
    async def test_closed_post(self, comment_service: CommentService, closed_post) -> None:
        with pytest.raises(CommentsClosedError):
            await comment_service.create_comment(
                closed_post.slug, APPROVED_CONTENT, guest=GUEST
            )

    @pytest.mark.asyncio
    async def test_blank_content(self, comment_service: CommentService, post) -> None:
        with pytest.raises(ValidationError):
            await comment_service.create_comment(post.slug, "   ", guest=GUEST)

    @pytest.mark.asyncio
    async def test_spam_is_stored_as_spam(
        self, comment_service: CommentService, dispatcher: RecordingDispatcher, post
    ) -> None:
        """Spam is kept for review but never queued for moderation."""
        comment = await comment_service.create_comment(
            post.slug, SPAM_CONTENT, guest=GUEST
        )

        assert comment.status == CommentStatus.SPAM
        assert dispatcher.names() == ["comment.created"]

    @pytest.mark.asyncio
    async def test_created_event_once_and_moderation_event_iff_pending(
        self, comment_service: CommentService, dispatcher: RecordingDispatcher, post
    ) -> None:
        """comment.created fires once per create; moderation_needed only if pending."""
        # Act
        approved = await comment_service.create_comment(
            post.slug, APPROVED_CONTENT, guest=GUEST
        )
        approved_events = dispatcher.names()
        dispatcher.events.clear()
        pending = await comment_service.create_comment(
            post.slug, PENDING_CONTENT, guest=GUEST
        )

        # Assert
        assert approved.status == CommentStatus.APPROVED
        assert approved_events == ["comment.created"]
        assert pending.status == CommentStatus.PENDING
        assert dispatcher.names() == ["comment.created", "comment.moderation_needed"]

    @pytest.mark.asyncio
    async def test_reply_increments_parent_and_post_counters(
        self, comment_service: CommentService, repository, posts, post
    ) -> None:
        parent = await comment_service.create_comment(
            post.slug, APPROVED_CONTENT, guest=GUEST
        )

        reply = await comment_service.create_comment(
            post.slug, APPROVED_CONTENT, guest=GUEST, parent_id=parent.comment_id
        )

        stored_parent = await repository.get(parent.comment_id)
        stored_post = await posts.get_by_slug(post.slug)
        assert reply.level == 1
        assert reply.parent_id == parent.comment_id
        assert stored_parent.replies_count == 1
        assert stored_post.comments_count == 2

    @pytest.mark.asyncio
    async def test_reply_beyond_max_depth(
        self, comment_service: CommentService, post
    ) -> None:
        """A level-5 comment cannot be replied to."""
        # Arrange - build a chain 0..5
        parent = await comment_service.create_comment(
            post.slug, APPROVED_CONTENT, guest=GUEST
        )
        for _ in range(5):
            parent = await comment_service.create_comment(
                post.slug, APPROVED_CONTENT, guest=GUEST, parent_id=parent.comment_id
            )
        assert parent.level == 5

        # Act / Assert
        with pytest.raises(MaxDepthExceededError) as exc_info:
            await comment_service.create_comment(
                post.slug, APPROVED_CONTENT, guest=GUEST, parent_id=parent.comment_id
            )
        assert isinstance(exc_info.value, InvalidStateError)

    @pytest.mark.asyncio
    async def test_parent_from_other_post(
        self, comment_service: CommentService, repository, insert_comment, post
    ) -> None:
        foreign = await insert_comment(post_id=uuid4())

        with pytest.raises(CommentNotFoundError):
            await comment_service.create_comment(
                post.slug, APPROVED_CONTENT, guest=GUEST, parent_id=foreign.comment_id
            )
        assert (await repository.get(foreign.comment_id)).replies_count == 0

    @pytest.mark.asyncio
    async def test_parent_deleted_while_reply_is_stored(
        self,
        comment_service: CommentService,
        repository,
        insert_comment,
        monkeypatch,
        reader,
        post,
    ) -> None:
        """A delete racing a reply hides the parent instead of orphaning the reply."""
        # Arrange - the author deletes the parent just before the reply row lands
        parent = await insert_comment(author=registered(reader))
        original_insert = repository.insert
        deletions = []

        async def insert_after_delete(comment):
            deletions.append(
                await comment_service.delete_comment(parent.comment_id, reader)
            )
            await original_insert(comment)

        monkeypatch.setattr(repository, "insert", insert_after_delete)

        # Act
        reply = await comment_service.create_comment(
            post.slug, APPROVED_CONTENT, guest=GUEST, parent_id=parent.comment_id
        )

        # Assert
        stored_parent = await repository.get(parent.comment_id)
        assert deletions[0].hidden is True
        assert stored_parent is not None
        assert stored_parent.status == CommentStatus.HIDDEN
        assert stored_parent.replies_count == 1
        assert (await repository.get(reply.comment_id)).parent_id == parent.comment_id

    @pytest.mark.asyncio
    async def test_failed_insert_releases_parent_count(
        self,
        comment_service: CommentService,
        repository,
        insert_comment,
        monkeypatch,
        post,
    ) -> None:
        parent = await insert_comment()

        async def broken_insert(comment):
            raise ConnectionError("storage unavailable")

        monkeypatch.setattr(repository, "insert", broken_insert)

        with pytest.raises(ConnectionError):
            await comment_service.create_comment(
                post.slug, APPROVED_CONTENT, guest=GUEST, parent_id=parent.comment_id
            )
        assert (await repository.get(parent.comment_id)).replies_count == 0


class TestReadComments:
    """Tests for get_comment and list_post_comments."""

    @pytest.mark.asyncio
    async def test_pending_comment_hidden_from_public(
        self, comment_service: CommentService, insert_comment, reader, moderator
    ) -> None:
        pending = await insert_comment(
            status=CommentStatus.PENDING, author=registered(reader)
        )

        with pytest.raises(CommentNotFoundError):
            await comment_service.get_comment(pending.comment_id)

        assert (await comment_service.get_comment(pending.comment_id, reader)).comment
        assert (await comment_service.get_comment(pending.comment_id, moderator)).comment

    @pytest.mark.asyncio
    async def test_list_rejects_unknown_sort(
        self, comment_service: CommentService, post
    ) -> None:
        with pytest.raises(ValidationError):
            await comment_service.list_post_comments(post.slug, sort_by="author")

    @pytest.mark.asyncio
    async def test_list_returns_only_approved_roots(
        self, comment_service: CommentService, insert_comment, post
    ) -> None:
        await insert_comment()
        await insert_comment(status=CommentStatus.PENDING)
        await insert_comment(status=CommentStatus.SPAM)

        page = await comment_service.list_post_comments(post.slug)

        assert page.pagination.total == 1
        assert all(n.comment.status == CommentStatus.APPROVED for n in page.items)


class TestEditComment:
    """Tests for edit_comment."""

    @pytest.mark.asyncio
    async def test_author_edit_keeps_history(
        self, comment_service: CommentService, insert_comment, reader
    ) -> None:
        comment = await insert_comment(author=registered(reader))

        edited = await comment_service.edit_comment(
            comment.comment_id, "Texto corregido, gracias por la paciencia.", reader
        )

        assert edited.content == "Texto corregido, gracias por la paciencia."
        assert edited.is_edited
        assert edited.edit_history[0].content == APPROVED_CONTENT

    @pytest.mark.asyncio
    async def test_author_edit_can_send_back_to_queue(
        self,
        comment_service: CommentService,
        dispatcher: RecordingDispatcher,
        insert_comment,
        reader,
    ) -> None:
        """Re-scoring an approved comment may move it to pending."""
        comment = await insert_comment(author=registered(reader))

        edited = await comment_service.edit_comment(
            comment.comment_id, PENDING_CONTENT, reader
        )

        assert edited.status == CommentStatus.PENDING
        assert dispatcher.names() == ["comment.moderation_needed"]

    @pytest.mark.asyncio
    async def test_stranger_cannot_edit(
        self, comment_service: CommentService, insert_comment, reader, other_reader
    ) -> None:
        comment = await insert_comment(author=registered(reader))

        with pytest.raises(PermissionDeniedError):
            await comment_service.edit_comment(
                comment.comment_id, APPROVED_CONTENT + "!", other_reader
            )

    @pytest.mark.asyncio
    async def test_hidden_comment_cannot_be_edited(
        self, comment_service: CommentService, insert_comment, moderator
    ) -> None:
        comment = await insert_comment(status=CommentStatus.HIDDEN)

        with pytest.raises(InvalidStateError):
            await comment_service.edit_comment(
                comment.comment_id, "Nuevo contenido", moderator
            )

    @pytest.mark.parametrize("status", [CommentStatus.REJECTED, CommentStatus.SPAM])
    @pytest.mark.asyncio
    async def test_author_cannot_edit_rejected_comment(
        self,
        comment_service: CommentService,
        insert_comment,
        repository,
        reader,
        status,
    ) -> None:
        comment = await insert_comment(status=status, author=registered(reader))

        with pytest.raises(InvalidStateError):
            await comment_service.edit_comment(
                comment.comment_id, "Ahora sin enlaces, lo prometo", reader
            )
        stored = await repository.get(comment.comment_id)
        assert stored.content == comment.content
        assert stored.edit_history == []

    @pytest.mark.asyncio
    async def test_moderator_edit_is_not_rescored(
        self,
        comment_service: CommentService,
        dispatcher: RecordingDispatcher,
        insert_comment,
        moderator,
    ) -> None:
        """Content that would be queued for an author stays approved for a moderator."""
        # Arrange
        comment = await insert_comment()

        # Act
        edited = await comment_service.edit_comment(
            comment.comment_id, PENDING_CONTENT, moderator
        )

        # Assert
        assert edited.content == PENDING_CONTENT
        assert edited.status == CommentStatus.APPROVED
        assert edited.moderation.to_dict() == comment.moderation.to_dict()
        assert edited.edit_history[0].edited_by == moderator.id
        assert dispatcher.events == []


class TestDeleteComment:
    """Tests for delete_comment."""

    @pytest.mark.asyncio
    async def test_leaf_is_removed(
        self, comment_service: CommentService, insert_comment, reader
    ) -> None:
        comment = await insert_comment(author=registered(reader))

        result = await comment_service.delete_comment(comment.comment_id, reader)

        assert result.hard_deleted is True
        with pytest.raises(CommentNotFoundError):
            await comment_service.get_comment(comment.comment_id, reader)

    @pytest.mark.asyncio
    async def test_comment_with_replies_is_hidden(
        self, comment_service: CommentService, insert_comment, repository, reader
    ) -> None:
        """The row stays, redacted, so the replies keep their parent."""
        parent = await insert_comment(author=registered(reader))
        await insert_comment(parent=parent)

        result = await comment_service.delete_comment(parent.comment_id, reader)

        stored = await repository.get(parent.comment_id)
        assert result.hidden is True
        assert stored.status == CommentStatus.HIDDEN
        assert stored.content == comment_service.redaction_marker

    @pytest.mark.asyncio
    async def test_deleting_reply_decrements_parent(
        self, comment_service: CommentService, insert_comment, repository, reader
    ) -> None:
        parent = await insert_comment()
        reply = await insert_comment(parent=parent, author=registered(reader))

        await comment_service.delete_comment(reply.comment_id, reader)

        assert (await repository.get(parent.comment_id)).replies_count == 0

    @pytest.mark.asyncio
    async def test_stranger_cannot_delete(
        self, comment_service: CommentService, insert_comment, reader, other_reader
    ) -> None:
        comment = await insert_comment(author=registered(reader))

        with pytest.raises(PermissionDeniedError):
            await comment_service.delete_comment(comment.comment_id, other_reader)


class TestModerate:
    """Tests for manual moderation transitions."""

    @pytest.mark.asyncio
    async def test_approve_pending_notifies_author_once(
        self,
        comment_service: CommentService,
        dispatcher: RecordingDispatcher,
        transport: RecordingTransport,
        insert_comment,
        moderator,
    ) -> None:
        """pending -> approved sends exactly one approval notice to the author."""
        # Arrange
        comment = await insert_comment(status=CommentStatus.PENDING)

        # Act
        approved = await comment_service.moderate(
            comment.comment_id, ModerationAction.APPROVE, moderator
        )
        await dispatcher.drain()

        # Assert
        approvals = [
            n for n in transport.delivered if n.type == NotificationType.COMMENT_APPROVED
        ]
        assert approved.status == CommentStatus.APPROVED
        assert approved.moderation.approved_by == moderator.id
        assert len(approvals) == 1
        assert approvals[0].recipient.key == "invitada@blog.test"

    @pytest.mark.asyncio
    async def test_same_status_is_a_no_op(
        self,
        comment_service: CommentService,
        dispatcher: RecordingDispatcher,
        insert_comment,
        moderator,
    ) -> None:
        comment = await insert_comment()

        result = await comment_service.moderate(
            comment.comment_id, ModerationAction.APPROVE, moderator
        )

        assert result.version == comment.version
        assert dispatcher.events == []

    @pytest.mark.asyncio
    async def test_forbidden_transition(
        self, comment_service: CommentService, insert_comment, moderator
    ) -> None:
        """Rejected comments can only go back to approved."""
        comment = await insert_comment(status=CommentStatus.REJECTED)

        with pytest.raises(InvalidTransitionError):
            await comment_service.moderate(
                comment.comment_id, ModerationAction.SPAM, moderator
            )

    @pytest.mark.asyncio
    async def test_reader_cannot_moderate(
        self, comment_service: CommentService, insert_comment, reader
    ) -> None:
        comment = await insert_comment(status=CommentStatus.PENDING)

        with pytest.raises(PermissionDeniedError):
            await comment_service.moderate(
                comment.comment_id, ModerationAction.APPROVE, reader
            )

    @pytest.mark.asyncio
    async def test_reject_records_reason(
        self, comment_service: CommentService, insert_comment, moderator
    ) -> None:
        comment = await insert_comment(status=CommentStatus.PENDING)

        rejected = await comment_service.moderate(
            comment.comment_id,
            ModerationAction.REJECT,
            moderator,
            reason="Fuera de tema",
        )

        assert rejected.status == CommentStatus.REJECTED
        assert rejected.moderation.rejection_reason == "Fuera de tema"
        assert rejected.moderation.rejected_by == moderator.id

    @pytest.mark.asyncio
    async def test_retry_after_lost_race_emits_nothing(
        self,
        comment_service: CommentService,
        dispatcher: RecordingDispatcher,
        repository,
        insert_comment,
        monkeypatch,
        moderator,
    ) -> None:
        """Another moderator approves first; the retried write finds nothing to do."""
        # Arrange - the first attempt runs on a stale copy and loses the write
        comment = await insert_comment(status=CommentStatus.PENDING)
        original_mutate = repository.mutate

        async def mutate_losing_first_race(comment_id, mutation):
            mutation(await repository.get(comment_id))

            def approved_elsewhere(current) -> None:
                current.status = CommentStatus.APPROVED

            await original_mutate(comment_id, approved_elsewhere)
            return await original_mutate(comment_id, mutation)

        monkeypatch.setattr(repository, "mutate", mutate_losing_first_race)

        # Act
        result = await comment_service.moderate(
            comment.comment_id, ModerationAction.APPROVE, moderator
        )

        # Assert
        assert result.status == CommentStatus.APPROVED
        assert result.moderation.approved_by is None
        assert dispatcher.events == []


class TestBulkModerate:
    """Tests for bulk_moderate."""

    @pytest.mark.asyncio
    async def test_partial_failure(
        self, comment_service: CommentService, insert_comment, repository, moderator
    ) -> None:
        """A missing id fails alone; the rest are persisted."""
        # Arrange
        a = await insert_comment(status=CommentStatus.PENDING)
        c = await insert_comment(status=CommentStatus.PENDING)
        missing = uuid4()

        # Act
        result = await comment_service.bulk_moderate(
            [a.comment_id, missing, c.comment_id], ModerationAction.REJECT, moderator
        )

        # Assert
        assert result.succeeded == [a.comment_id, c.comment_id]
        assert result.failed == [
            {
                "id": str(missing),
                "error": "Comentario no encontrado",
                "code": "comment_not_found",
            }
        ]
        assert (await repository.get(a.comment_id)).status == CommentStatus.REJECTED
        assert (await repository.get(c.comment_id)).status == CommentStatus.REJECTED
        assert result.to_dict()["rejected"] == [str(a.comment_id), str(c.comment_id)]

    @pytest.mark.asyncio
    async def test_too_many_ids(self, comment_service: CommentService, moderator) -> None:
        comment_service.bulk_max_items = 2

        with pytest.raises(ValidationError):
            await comment_service.bulk_moderate(
                [uuid4(), uuid4(), uuid4()], ModerationAction.APPROVE, moderator
            )


class TestPinning:
    """Tests for pin and unpin."""

    @pytest.mark.asyncio
    async def test_pin_and_unpin(
        self, comment_service: CommentService, insert_comment, moderator
    ) -> None:
        comment = await insert_comment()

        pinned = await comment_service.pin(comment.comment_id, moderator)
        unpinned = await comment_service.unpin(comment.comment_id, moderator)

        assert pinned.pinned is True
        assert pinned.pinned_by == moderator.id
        assert unpinned.pinned is False
        assert unpinned.pinned_by is None

    @pytest.mark.asyncio
    async def test_hidden_cannot_be_pinned(
        self, comment_service: CommentService, insert_comment, moderator
    ) -> None:
        comment = await insert_comment(status=CommentStatus.HIDDEN)

        with pytest.raises(InvalidStateError):
            await comment_service.pin(comment.comment_id, moderator)


class TestModerationQueue:
    """Tests for moderation_queue, reanalyze and statistics."""

    @pytest.mark.asyncio
    async def test_reported_comments_come_first(
        self, comment_service: CommentService, insert_comment, moderator
    ) -> None:
        older = await insert_comment(status=CommentStatus.PENDING)
        reported = await insert_comment(status=CommentStatus.PENDING)

        items, pagination = await comment_service.moderation_queue(
            moderator, prioritized={reported.comment_id}
        )

        assert [c.comment_id for c in items] == [reported.comment_id, older.comment_id]
        assert pagination.total == 2

    @pytest.mark.asyncio
    async def test_reanalyze_applies_current_policy(
        self, comment_service: CommentService, insert_comment, moderator
    ) -> None:
        await insert_comment(status=CommentStatus.PENDING)
        await insert_comment(status=CommentStatus.PENDING, content=SPAM_CONTENT)
        await insert_comment(status=CommentStatus.PENDING, content=PENDING_CONTENT)

        result = await comment_service.reanalyze(moderator)

        assert result.to_dict() == {"processed": 3, "approved": 1, "pending": 1, "spam": 1}

    @pytest.mark.asyncio
    async def test_reanalyze_skips_comment_moderated_meanwhile(
        self,
        comment_service: CommentService,
        repository,
        insert_comment,
        monkeypatch,
        moderator,
    ) -> None:
        """A comment approved after the listing is not counted as re-analyzed."""
        # Arrange
        comment = await insert_comment(status=CommentStatus.PENDING)
        original_list = repository.list_by_status

        async def list_then_approve(status):
            comments = await original_list(status)
            if status == CommentStatus.PENDING:
                await comment_service.moderate(
                    comment.comment_id, ModerationAction.APPROVE, moderator
                )
            return comments

        monkeypatch.setattr(repository, "list_by_status", list_then_approve)

        # Act
        result = await comment_service.reanalyze(moderator)

        # Assert
        assert result.to_dict() == {"processed": 0, "approved": 0, "pending": 0, "spam": 0}

    @pytest.mark.asyncio
    async def test_reanalyze_rejects_non_positive_limit(
        self, comment_service: CommentService, moderator
    ) -> None:
        with pytest.raises(ValidationError):
            await comment_service.reanalyze(moderator, limit=0)

    @pytest.mark.asyncio
    async def test_moderation_stats(
        self, comment_service: CommentService, insert_comment, moderator, post
    ) -> None:
        await comment_service.create_comment(post.slug, APPROVED_CONTENT, guest=GUEST)
        await insert_comment(status=CommentStatus.PENDING)

        stats = await comment_service.moderation_stats(moderator, pending_reports=3)

        assert stats["total"] == 2
        assert stats["by_status"]["approved"] == 1
        assert stats["by_status"]["pending"] == 1
        assert stats["auto_moderated"] == 1
        assert stats["pending_reports"] == 3

    @pytest.mark.asyncio
    async def test_user_comments_filtered_by_status(
        self, comment_service: CommentService, insert_comment, reader
    ) -> None:
        await insert_comment(author=registered(reader))
        await insert_comment(author=registered(reader), status=CommentStatus.PENDING)
        await insert_comment()

        items, pagination = await comment_service.user_comments(
            reader, status=CommentStatus.PENDING
        )

        assert pagination.total == 1
        assert items[0].status == CommentStatus.PENDING

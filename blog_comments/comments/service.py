"""Comment service layer.

Business logic for:
- Creating comments and replies (depth limit, guest authors, auto-moderation)
- Editing with history, soft and hard deletion
- Manual moderation (single and bulk), pinning
- Moderation queue, re-analysis and statistics

The service owns every status change and the ``replies_count`` of each
comment. Writes to the comment itself go through ``CommentRepository.mutate``.
A reply is counted on its parent before it is stored. Post counters and
the parent decrement after a deletion are adjusted afterwards, and a
failure there is logged, never raised. Lifecycle events are dispatched
after the write.
"""

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog

from blog_comments.auth.permissions import Actor
from blog_comments.moderation.engine import ModerationEngine
from blog_comments.moderation.policy import ModerationCandidate
from blog_comments.notifications.dispatcher import NotificationDispatcher
from blog_comments.notifications.events import (
    CommentApproved,
    CommentCreated,
    CommentEvent,
    CommentRejected,
    ModerationNeeded,
)
from blog_comments.posts.directory import PostDirectory
from blog_comments.posts.models import Post
from blog_comments.voting.ledger import VotingLedger

from .exceptions import (
    CommentError,
    CommentNotFoundError,
    CommentsClosedError,
    InvalidStateError,
    InvalidTransitionError,
    MaxDepthExceededError,
    PermissionDeniedError,
    PostNotFoundError,
    ValidationError,
)
from .models import (
    Author,
    Comment,
    CommentMetadata,
    CommentStatus,
    EditRecord,
    GuestAuthor,
    ModerationAction,
    ModerationInfo,
    RegisteredAuthor,
    Votes,
    VoteType,
    can_transition,
    create_comment,
)
from .repository import CommentRepository
from .thread import (
    SORT_KEYS,
    SORT_ORDERS,
    Pagination,
    ThreadNode,
    ThreadPage,
    assemble_thread,
    build_subtree,
    is_publicly_visible,
    paginate,
    sort_comments,
)


if TYPE_CHECKING:
    from blog_comments.config.settings import Settings


logger = structlog.get_logger(__name__)


# ==============================================================================
# Inputs and results
# ==============================================================================


@dataclass
class GuestInput:
    """Identity supplied by an unauthenticated commenter."""

    name: str | None = None
    email: str | None = None
    website: str | None = None


@dataclass
class DeleteResult:
    comment_id: UUID
    hard_deleted: bool

    @property
    def hidden(self) -> bool:
        return not self.hard_deleted


@dataclass
class BulkModerationResult:
    action: ModerationAction
    succeeded: list[UUID] = field(default_factory=list)
    failed: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            self.action.past_tense: [str(cid) for cid in self.succeeded],
            "failed": self.failed,
        }


@dataclass
class ReanalysisResult:
    processed: int = 0
    approved: int = 0
    pending: int = 0
    spam: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "approved": self.approved,
            "pending": self.pending,
            "spam": self.spam,
        }


class CommentService:
    """Orchestrates the comment lifecycle."""

    def __init__(
        self,
        repository: CommentRepository,
        posts: PostDirectory,
        engine: ModerationEngine,
        dispatcher: NotificationDispatcher,
        max_depth: int = 5,
        redaction_marker: str = "[Comentario eliminado]",
        bulk_max_items: int = 100,
        bulk_concurrency: int = 5,
        reanalyze_default_limit: int = 100,
        reanalyze_max_batch: int = 500,
    ) -> None:
        self.repository = repository
        self.posts = posts
        self.engine = engine
        self.dispatcher = dispatcher
        self.ledger = VotingLedger(repository)
        self.max_depth = max_depth
        self.redaction_marker = redaction_marker
        self.bulk_max_items = bulk_max_items
        self.bulk_concurrency = bulk_concurrency
        self.reanalyze_default_limit = reanalyze_default_limit
        self.reanalyze_max_batch = reanalyze_max_batch

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        repository: CommentRepository,
        posts: PostDirectory,
        engine: ModerationEngine,
        dispatcher: NotificationDispatcher,
    ) -> "CommentService":
        return cls(
            repository=repository,
            posts=posts,
            engine=engine,
            dispatcher=dispatcher,
            max_depth=settings.comments_max_depth,
            redaction_marker=settings.comments_redaction_marker,
            bulk_max_items=settings.bulk_moderation_max_items,
            bulk_concurrency=settings.bulk_moderation_concurrency,
            reanalyze_default_limit=settings.reanalyze_default_limit,
            reanalyze_max_batch=settings.reanalyze_max_batch,
        )

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @staticmethod
    def _require_moderator(actor: Actor | None) -> Actor:
        if actor is None or not actor.is_moderator:
            raise PermissionDeniedError
        return actor

    async def _get_post(self, slug: str) -> Post:
        post = await self.posts.get_by_slug(slug)
        if post is None:
            raise PostNotFoundError
        return post

    async def _get(self, comment_id: UUID) -> Comment:
        comment = await self.repository.get(comment_id)
        if comment is None:
            raise CommentNotFoundError
        return comment

    async def _post_for(self, comment: Comment) -> Post | None:
        try:
            post = await self.posts.get_by_id(comment.post_id)
        except Exception:
            logger.exception("event_post_lookup_failed", post_id=str(comment.post_id))
            return None
        if post is None:
            logger.warning("event_post_missing", post_id=str(comment.post_id))
        return post

    def _emit(self, event: CommentEvent) -> None:
        self.dispatcher.dispatch(event)

    async def _adjust_replies(self, parent_id: UUID, delta: int) -> None:
        def mutation(parent: Comment) -> None:
            parent.replies_count = max(0, parent.replies_count + delta)

        try:
            await self.repository.mutate(parent_id, mutation)
        except Exception:
            logger.exception(
                "replies_count_update_failed", comment_id=str(parent_id), delta=delta
            )

    async def _reserve_reply(self, parent_id: UUID, post_id: UUID) -> Comment:
        """Count a reply on its parent before the reply is stored.

        The parent is checked and bumped in one write, so a concurrent
        ``delete_if_leaf`` either removes it first (the reply fails) or sees
        ``replies_count > 0`` and hides it instead.
        """
        msg = "Comentario padre no encontrado"

        def mutation(parent: Comment) -> None:
            if parent.post_id != post_id:
                raise CommentNotFoundError(msg)
            if parent.level >= self.max_depth:
                raise MaxDepthExceededError
            parent.replies_count += 1

        try:
            return await self.repository.mutate(parent_id, mutation)
        except CommentNotFoundError as e:
            raise CommentNotFoundError(msg) from e

    async def _adjust_post_count(self, post_id: UUID, delta: int) -> None:
        try:
            await self.posts.increment_comment_count(post_id, delta)
        except Exception:
            logger.exception(
                "post_comment_count_update_failed", post_id=str(post_id), delta=delta
            )

    def _resolve_author(self, actor: Actor | None, guest: GuestInput | None) -> Author:
        if actor is not None:
            return RegisteredAuthor(
                user_id=actor.id,
                name=actor.name or (guest.name if guest and guest.name else "Usuario"),
                email=actor.email,
                avatar=actor.avatar,
            )
        name = (guest.name or "").strip() if guest else ""
        email = (guest.email or "").strip() if guest else ""
        if not name or not email:
            msg = "Nombre y email son requeridos para comentar como invitado"
            raise ValidationError(msg)
        return GuestAuthor(name=name, email=email, website=guest.website)

    @staticmethod
    def _clean_content(content: str) -> str:
        content = (content or "").strip()
        if not content:
            msg = "El contenido del comentario es requerido"
            raise ValidationError(msg)
        return content

    @staticmethod
    def _check_sort(sort_by: str, sort_order: str) -> None:
        if sort_by not in SORT_KEYS:
            msg = f"Campo de ordenamiento invalido: {sort_by}"
            raise ValidationError(msg)
        if sort_order not in SORT_ORDERS:
            msg = f"Orden invalido: {sort_order}"
            raise ValidationError(msg)

    # ==========================================================================
    # Create / read
    # ==========================================================================

    async def create_comment(
        self,
        post_slug: str,
        content: str,
        actor: Actor | None = None,
        parent_id: UUID | None = None,
        guest: GuestInput | None = None,
        metadata: CommentMetadata | None = None,
    ) -> Comment:
        """Create a root comment or a reply.

        Raises:
            PostNotFoundError: Unknown post.
            CommentsClosedError: The post does not accept comments.
            CommentNotFoundError: The parent does not exist on this post.
            MaxDepthExceededError: The parent is already at the deepest level.
            ValidationError: Empty content or incomplete guest identity.
        """
        post = await self._get_post(post_slug)
        if not post.allow_comments:
            raise CommentsClosedError

        content = self._clean_content(content)
        author = self._resolve_author(actor, guest)

        now = datetime.now(UTC)
        analysis = self.engine.analyze(
            ModerationCandidate(
                content=content,
                author_registered=actor is not None,
                author_email=author.email,
            )
        )
        moderation = ModerationInfo()
        moderation.apply_analysis(analysis, now)

        parent = None
        if parent_id is not None:
            parent = await self._reserve_reply(parent_id, post.post_id)

        comment = create_comment(
            post_id=post.post_id,
            author=author,
            content=content,
            status=analysis.auto_action,
            moderation=moderation,
            parent_id=parent.comment_id if parent else None,
            level=parent.level + 1 if parent else 0,
            metadata=metadata,
        )
        try:
            await self.repository.insert(comment)
        except Exception:
            if parent is not None:
                await self._adjust_replies(parent.comment_id, -1)
            raise

        logger.info(
            "comment_created",
            comment_id=str(comment.comment_id),
            post_id=str(post.post_id),
            parent_id=str(parent.comment_id) if parent else None,
            level=comment.level,
            status=comment.status.value,
            moderation_score=analysis.score,
            author_kind=author.kind,
        )

        await self._adjust_post_count(post.post_id, 1)

        self._emit(CommentCreated(comment=comment, post=post, parent=parent))
        if comment.status == CommentStatus.PENDING:
            self._emit(ModerationNeeded(comment=comment, post=post))

        return comment

    async def get_comment(
        self, comment_id: UUID, actor: Actor | None = None
    ) -> ThreadNode:
        """A comment with its reply subtree.

        Comments that are not approved are only visible to their author and
        to moderators.
        """
        comment = await self._get(comment_id)
        moderator = actor is not None and actor.is_moderator

        if comment.status != CommentStatus.APPROVED and not (
            moderator or (actor is not None and comment.is_authored_by(actor.id))
        ):
            raise CommentNotFoundError

        thread = await self.repository.list_by_post(comment.post_id)
        visible = (lambda _c: True) if moderator else is_publicly_visible
        return build_subtree(comment, thread, self.max_depth, visible)

    async def list_post_comments(
        self,
        post_slug: str,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> ThreadPage:
        """One page of a post's approved comment threads."""
        self._check_sort(sort_by, sort_order)
        post = await self._get_post(post_slug)
        comments = await self.repository.list_by_post(post.post_id)
        return assemble_thread(
            comments,
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
            max_depth=self.max_depth,
        )

    # ==========================================================================
    # Edit / delete
    # ==========================================================================

    async def edit_comment(self, comment_id: UUID, content: str, actor: Actor) -> Comment:
        """Replace a comment's content, keeping the previous version.

        An author editing an approved comment gets it re-scored, which can
        send it back to the moderation queue. Moderator edits are trusted.
        """
        content = self._clean_content(content)
        existing = await self._get(comment_id)

        is_author = existing.is_authored_by(actor.id)
        moderator = actor.is_moderator
        if not (is_author or moderator):
            msg = "Solo el autor o un moderador puede editar este comentario"
            raise PermissionDeniedError(msg)

        rescore = is_author and not moderator
        analysis = (
            self.engine.analyze(
                ModerationCandidate(
                    content=content,
                    author_registered=True,
                    author_email=existing.author.email,
                )
            )
            if rescore
            else None
        )
        previous: dict[str, CommentStatus] = {}

        def mutation(comment: Comment) -> bool:
            previous.clear()
            if comment.status == CommentStatus.HIDDEN:
                msg = "No se puede editar un comentario eliminado"
                raise InvalidStateError(msg)
            if (
                comment.status in (CommentStatus.REJECTED, CommentStatus.SPAM)
                and not moderator
            ):
                msg = "No se puede editar un comentario rechazado"
                raise InvalidStateError(msg)
            if comment.content == content:
                return False

            now = datetime.now(UTC)
            previous["status"] = comment.status
            comment.edit_history.append(
                EditRecord(content=comment.content, edited_at=now, edited_by=actor.id)
            )
            comment.content = content
            comment.edited_at = now
            comment.updated_at = now
            if analysis is not None and comment.status == CommentStatus.APPROVED:
                comment.moderation.apply_analysis(analysis, now)
                comment.status = analysis.auto_action
            return True

        comment = await self.repository.mutate(comment_id, mutation)
        if not previous:
            return comment

        logger.info(
            "comment_edited",
            comment_id=str(comment_id),
            edited_by=actor.id,
            previous_status=previous["status"].value,
            status=comment.status.value,
        )

        if (
            previous["status"] != CommentStatus.PENDING
            and comment.status == CommentStatus.PENDING
        ):
            post = await self._post_for(comment)
            if post is not None:
                self._emit(ModerationNeeded(comment=comment, post=post))

        return comment

    async def delete_comment(self, comment_id: UUID, actor: Actor) -> DeleteResult:
        """Remove a comment.

        With replies the comment is hidden and its content redacted so the
        thread keeps its shape. Without replies the row is removed.
        """
        comment = await self._get(comment_id)
        if not (comment.is_authored_by(actor.id) or actor.is_moderator):
            msg = "Solo el autor o un moderador puede eliminar este comentario"
            raise PermissionDeniedError(msg)

        if comment.replies_count == 0 and await self.repository.delete_if_leaf(
            comment_id
        ):
            if comment.parent_id is not None:
                await self._adjust_replies(comment.parent_id, -1)
            await self._adjust_post_count(comment.post_id, -1)
            logger.info(
                "comment_deleted", comment_id=str(comment_id), deleted_by=actor.id
            )
            return DeleteResult(comment_id=comment_id, hard_deleted=True)

        def mutation(current: Comment) -> bool:
            if current.status == CommentStatus.HIDDEN:
                return False
            current.content = self.redaction_marker
            current.status = CommentStatus.HIDDEN
            current.pinned = False
            current.updated_at = datetime.now(UTC)
            return True

        await self.repository.mutate(comment_id, mutation)
        logger.info("comment_hidden", comment_id=str(comment_id), deleted_by=actor.id)
        return DeleteResult(comment_id=comment_id, hard_deleted=False)

    # ==========================================================================
    # Voting
    # ==========================================================================

    async def vote(
        self, comment_id: UUID, voter_key: str, vote_type: VoteType | str
    ) -> Votes:
        try:
            vote_type = VoteType(vote_type)
        except ValueError as e:
            msg = f"Tipo de voto invalido: {vote_type}"
            raise ValidationError(msg) from e
        return await self.ledger.vote(comment_id, voter_key, vote_type)

    async def remove_vote(self, comment_id: UUID, voter_key: str) -> Votes:
        return await self.ledger.remove_vote(comment_id, voter_key)

    # ==========================================================================
    # Moderation
    # ==========================================================================

    async def moderate(
        self,
        comment_id: UUID,
        action: ModerationAction | str,
        actor: Actor,
        notes: str | None = None,
        reason: str | None = None,
    ) -> Comment:
        """Apply a manual status transition.

        Moving a comment to the status it already has changes nothing and
        emits nothing.

        Raises:
            PermissionDeniedError: The actor is not a moderator.
            InvalidTransitionError: The lifecycle forbids the transition.
        """
        self._require_moderator(actor)
        try:
            action = ModerationAction(action)
        except ValueError as e:
            msg = f"Accion de moderacion invalida: {action}"
            raise ValidationError(msg) from e

        target = action.target_status
        changed: dict[str, CommentStatus] = {}

        def mutation(comment: Comment) -> bool:
            # Retried writes start over; only the attempt that lands counts
            changed.clear()
            if comment.status == target:
                return False
            if not can_transition(comment.status, target):
                raise InvalidTransitionError(comment.status.value, target.value)

            now = datetime.now(UTC)
            changed["from"] = comment.status
            comment.status = target
            comment.updated_at = now
            if target == CommentStatus.APPROVED:
                comment.moderation.approved_by = actor.id
                comment.moderation.approved_at = now
            elif target == CommentStatus.REJECTED:
                comment.moderation.rejected_by = actor.id
                comment.moderation.rejected_at = now
                comment.moderation.rejection_reason = reason
            if notes:
                comment.moderation.notes = notes
            return True

        comment = await self.repository.mutate(comment_id, mutation)
        if not changed:
            return comment

        logger.info(
            "comment_moderated",
            comment_id=str(comment_id),
            action=action.value,
            previous_status=changed["from"].value,
            moderator_id=actor.id,
        )

        if action in (ModerationAction.APPROVE, ModerationAction.REJECT):
            post = await self._post_for(comment)
            if post is not None:
                if action == ModerationAction.APPROVE:
                    self._emit(
                        CommentApproved(comment=comment, post=post, approved_by=actor.id)
                    )
                else:
                    self._emit(CommentRejected(comment=comment, post=post, reason=reason))

        return comment

    async def bulk_moderate(
        self,
        comment_ids: list[UUID],
        action: ModerationAction | str,
        actor: Actor,
        notes: str | None = None,
        reason: str | None = None,
    ) -> BulkModerationResult:
        """Moderate many comments; each one succeeds or fails on its own."""
        self._require_moderator(actor)
        try:
            action = ModerationAction(action)
        except ValueError as e:
            msg = f"Accion de moderacion invalida: {action}"
            raise ValidationError(msg) from e

        ids = list(dict.fromkeys(comment_ids))
        if not ids:
            msg = "Se requiere al menos un comentario"
            raise ValidationError(msg)
        if len(ids) > self.bulk_max_items:
            msg = f"Maximo {self.bulk_max_items} comentarios por operacion"
            raise ValidationError(msg)

        semaphore = asyncio.Semaphore(self.bulk_concurrency)

        async def moderate_one(comment_id: UUID) -> dict[str, str] | None:
            async with semaphore:
                try:
                    await self.moderate(comment_id, action, actor, notes, reason)
                except CommentError as e:
                    return {"id": str(comment_id), "error": e.message, "code": e.code}
                except Exception as e:
                    logger.exception(
                        "bulk_moderation_item_failed", comment_id=str(comment_id)
                    )
                    return {
                        "id": str(comment_id),
                        "error": str(e),
                        "code": "internal_error",
                    }
                return None

        outcomes = await asyncio.gather(*(moderate_one(cid) for cid in ids))

        result = BulkModerationResult(action=action)
        for comment_id, failure in zip(ids, outcomes, strict=True):
            if failure is None:
                result.succeeded.append(comment_id)
            else:
                result.failed.append(failure)

        logger.info(
            "comments_bulk_moderated",
            action=action.value,
            requested=len(ids),
            succeeded=len(result.succeeded),
            failed=len(result.failed),
            moderator_id=actor.id,
        )
        return result

    async def pin(self, comment_id: UUID, actor: Actor) -> Comment:
        self._require_moderator(actor)

        def mutation(comment: Comment) -> bool:
            if comment.status == CommentStatus.HIDDEN:
                msg = "No se puede fijar un comentario eliminado"
                raise InvalidStateError(msg)
            if comment.pinned:
                return False
            now = datetime.now(UTC)
            comment.pinned = True
            comment.pinned_by = actor.id
            comment.pinned_at = now
            comment.updated_at = now
            return True

        comment = await self.repository.mutate(comment_id, mutation)
        logger.info("comment_pinned", comment_id=str(comment_id), moderator_id=actor.id)
        return comment

    async def unpin(self, comment_id: UUID, actor: Actor) -> Comment:
        self._require_moderator(actor)

        def mutation(comment: Comment) -> bool:
            if not comment.pinned:
                return False
            comment.pinned = False
            comment.pinned_by = None
            comment.pinned_at = None
            comment.updated_at = datetime.now(UTC)
            return True

        comment = await self.repository.mutate(comment_id, mutation)
        logger.info("comment_unpinned", comment_id=str(comment_id), moderator_id=actor.id)
        return comment

    async def moderation_queue(
        self,
        actor: Actor,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "created_at",
        sort_order: str = "asc",
        prioritized: set[UUID] | None = None,
    ) -> tuple[list[Comment], Pagination]:
        """Pending comments; those in ``prioritized`` (reported) come first."""
        self._require_moderator(actor)
        self._check_sort(sort_by, sort_order)

        pending = sort_comments(
            await self.repository.list_by_status(CommentStatus.PENDING),
            sort_by,
            sort_order,
        )
        if prioritized:
            pending.sort(key=lambda c: c.comment_id not in prioritized)
        return paginate(pending, page, limit)

    async def reanalyze(self, actor: Actor, limit: int | None = None) -> ReanalysisResult:
        """Re-run the moderation engine over the oldest pending comments.

        A comment that left ``pending`` in the meantime is skipped.
        """
        self._require_moderator(actor)
        limit = self.reanalyze_default_limit if limit is None else limit
        if limit < 1:
            msg = "El limite debe ser mayor que cero"
            raise ValidationError(msg)
        limit = min(limit, self.reanalyze_max_batch)

        pending = await self.repository.list_by_status(CommentStatus.PENDING)
        result = ReanalysisResult()

        for candidate in pending[:limit]:
            analysis = self.engine.analyze(
                ModerationCandidate(
                    content=candidate.content,
                    author_registered=candidate.author.kind == RegisteredAuthor.kind,
                    author_email=candidate.author.email,
                )
            )

            applied: list[bool] = []

            def mutation(
                comment: Comment, analysis=analysis, applied=applied
            ) -> bool:
                applied.clear()
                if comment.status != CommentStatus.PENDING:
                    return False
                now = datetime.now(UTC)
                comment.moderation.apply_analysis(analysis, now)
                comment.status = analysis.auto_action
                comment.updated_at = now
                applied.append(True)
                return True

            try:
                comment = await self.repository.mutate(candidate.comment_id, mutation)
            except CommentNotFoundError:
                continue
            if not applied:
                continue

            result.processed += 1
            if comment.status == CommentStatus.APPROVED:
                result.approved += 1
            elif comment.status == CommentStatus.SPAM:
                result.spam += 1
            else:
                result.pending += 1

        logger.info("comments_reanalyzed", moderator_id=actor.id, **result.to_dict())
        return result

    # ==========================================================================
    # Listings and statistics
    # ==========================================================================

    async def post_stats(self, post_slug: str) -> dict[str, Any]:
        post = await self._get_post(post_slug)
        comments = await self.repository.list_by_post(post.post_id)
        counts = Counter(c.status.value for c in comments)
        return {
            "post_id": str(post.post_id),
            "total": len(comments),
            "by_status": {s.value: counts.get(s.value, 0) for s in CommentStatus},
            "roots": sum(1 for c in comments if c.is_root),
        }

    async def user_comments(
        self,
        actor: Actor,
        page: int = 1,
        limit: int = 20,
        status: CommentStatus | None = None,
    ) -> tuple[list[Comment], Pagination]:
        comments = await self.repository.list_by_author(actor.id)
        if status is not None:
            comments = [c for c in comments if c.status == status]
        comments.sort(key=lambda c: c.created_at, reverse=True)
        return paginate(comments, page, limit)

    async def moderation_stats(
        self, actor: Actor, pending_reports: int = 0
    ) -> dict[str, Any]:
        self._require_moderator(actor)
        by_status = await self.repository.count_by_status()
        auto_moderated = 0
        for status in (CommentStatus.APPROVED, CommentStatus.SPAM):
            auto_moderated += sum(
                1
                for c in await self.repository.list_by_status(status)
                if c.moderation.auto_moderated
            )
        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "auto_moderated": auto_moderated,
            "pending_reports": pending_reports,
        }

"""Shared fixtures.

Environment is set before the application is imported so the cached
settings pick up the in-memory backend and no Redis or log files.
"""

import os


os.environ["STORAGE_BACKEND"] = "memory"
os.environ["REDIS_ENABLED"] = "false"
os.environ["LOG_FILE_ENABLED"] = "false"
os.environ["LOG_REQUESTS"] = "false"
os.environ["ENVIRONMENT"] = "testing"
os.environ["NOTIFICATIONS_ENABLED"] = "true"

from collections.abc import Awaitable, Callable  # noqa: E402
from uuid import UUID, uuid4  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from blog_comments.auth.permissions import Actor, UserRole, permissions_for_role  # noqa: E402
from blog_comments.auth.security import create_access_token  # noqa: E402
from blog_comments.comments.models import (  # noqa: E402
    Author,
    Comment,
    CommentStatus,
    GuestAuthor,
    ModerationInfo,
    RegisteredAuthor,
    create_comment,
)
from blog_comments.comments.repository import InMemoryCommentRepository  # noqa: E402
from blog_comments.comments.service import CommentService  # noqa: E402
from blog_comments.moderation.engine import ModerationEngine  # noqa: E402
from blog_comments.moderation.policy import HeuristicModerationPolicy  # noqa: E402
from blog_comments.notifications.dispatcher import NotificationDispatcher  # noqa: E402
from blog_comments.notifications.events import CommentEvent  # noqa: E402
from blog_comments.notifications.models import Notification  # noqa: E402
from blog_comments.posts.directory import InMemoryPostDirectory  # noqa: E402
from blog_comments.posts.models import Post, PostAuthor  # noqa: E402
from blog_comments.reports.repository import InMemoryReportRepository  # noqa: E402
from blog_comments.reports.service import ReportRegistry  # noqa: E402


APPROVED_CONTENT = "Muy buen articulo, gracias por compartir la explicacion."
# Email and phone cost 20 points each: score 60, below the approval threshold
PENDING_CONTENT = "Escribeme a juan@correo.com o llama al 555-123-4567"
SPAM_CONTENT = "Buy now cheap viagra online, click here"


# ==============================================================================
# Test doubles
# ==============================================================================


class RecordingTransport:
    """Transport that keeps every delivered notification.

    Recipients listed in ``failing`` raise instead of receiving.
    """

    def __init__(self, failing: set[str] | None = None) -> None:
        self.delivered: list[Notification] = []
        self.failing = failing or set()

    async def deliver(self, notification: Notification) -> None:
        if notification.recipient.key in self.failing:
            msg = f"delivery to {notification.recipient.key} refused"
            raise ConnectionError(msg)
        self.delivered.append(notification)


class RecordingDispatcher(NotificationDispatcher):
    """Dispatcher that also records every emitted event."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.events: list[CommentEvent] = []

    def dispatch(self, event: CommentEvent):
        self.events.append(event)
        return super().dispatch(event)

    def names(self) -> list[str]:
        return [event.name for event in self.events]


# ==============================================================================
# Actors
# ==============================================================================


def make_actor(
    actor_id: str = "user-1",
    role: UserRole = UserRole.USER,
    email: str | None = None,
    name: str = "Lector",
) -> Actor:
    return Actor(
        id=actor_id,
        email=email or f"{actor_id}@blog.test",
        name=name,
        role=role.value,
        permissions=permissions_for_role(role),
    )


@pytest.fixture
def reader() -> Actor:
    return make_actor("user-1", name="Lector")


@pytest.fixture
def other_reader() -> Actor:
    return make_actor("user-2", name="Otra Lectora")


@pytest.fixture
def moderator() -> Actor:
    return make_actor("mod-1", UserRole.MODERATOR, name="Moderadora")


# ==============================================================================
# Domain wiring
# ==============================================================================


@pytest.fixture
def post() -> Post:
    return Post(
        post_id=uuid4(),
        slug="hola-mundo",
        title="Hola Mundo",
        allow_comments=True,
        author=PostAuthor(user_id="author-1", email="autora@blog.test", name="Autora"),
    )


@pytest.fixture
def closed_post() -> Post:
    return Post(
        post_id=uuid4(),
        slug="cerrado",
        title="Post cerrado",
        allow_comments=False,
        author=PostAuthor(user_id="author-1", email="autora@blog.test", name="Autora"),
    )


@pytest.fixture
def posts(post: Post, closed_post: Post) -> InMemoryPostDirectory:
    return InMemoryPostDirectory([post, closed_post])


@pytest.fixture
def repository() -> InMemoryCommentRepository:
    return InMemoryCommentRepository()


@pytest.fixture
def report_repository() -> InMemoryReportRepository:
    return InMemoryReportRepository()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def dispatcher(transport: RecordingTransport) -> RecordingDispatcher:
    return RecordingDispatcher(
        transport,
        enabled=True,
        moderators=["moderacion@blog.test"],
        site_url="https://blog.test",
    )


@pytest.fixture
def engine() -> ModerationEngine:
    return ModerationEngine(HeuristicModerationPolicy())


@pytest.fixture
def comment_service(
    repository: InMemoryCommentRepository,
    posts: InMemoryPostDirectory,
    engine: ModerationEngine,
    dispatcher: RecordingDispatcher,
) -> CommentService:
    return CommentService(repository, posts, engine, dispatcher, bulk_concurrency=2)


@pytest.fixture
def report_registry(
    report_repository: InMemoryReportRepository,
    repository: InMemoryCommentRepository,
    comment_service: CommentService,
) -> ReportRegistry:
    return ReportRegistry(report_repository, repository, comment_service)


@pytest.fixture
def insert_comment(
    repository: InMemoryCommentRepository, post: Post
) -> Callable[..., Awaitable[Comment]]:
    """Store a comment directly, bypassing moderation."""

    async def _insert(
        status: CommentStatus = CommentStatus.APPROVED,
        parent: Comment | None = None,
        author: Author | None = None,
        content: str = APPROVED_CONTENT,
        post_id: UUID | None = None,
    ) -> Comment:
        comment = create_comment(
            post_id=post_id or post.post_id,
            author=author or GuestAuthor(name="Invitada", email="invitada@blog.test"),
            content=content,
            status=status,
            moderation=ModerationInfo(),
            parent_id=parent.comment_id if parent else None,
            level=parent.level + 1 if parent else 0,
        )
        await repository.insert(comment)
        if parent is not None:

            def bump(p: Comment) -> None:
                p.replies_count += 1

            await repository.mutate(parent.comment_id, bump)
        return comment

    return _insert


def registered(actor: Actor) -> RegisteredAuthor:
    return RegisteredAuthor(user_id=actor.id, name=actor.name, email=actor.email)


# ==============================================================================
# HTTP
# ==============================================================================


def auth_headers(actor: Actor) -> dict[str, str]:
    token = create_access_token(
        {"sub": actor.id, "email": actor.email, "name": actor.name, "role": actor.role}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(post: Post) -> TestClient:
    """Application client on the in-memory backend, with one open post."""
    from blog_comments.main import app

    with TestClient(app) as test_client:
        test_client.portal.call(app.state.post_directory.save, post)
        yield test_client

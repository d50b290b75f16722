"""Titles and messages for comment notifications."""

from blog_comments.comments.models import Comment
from blog_comments.posts.models import Post

from .models import NOTIFICATION_PREVIEW_MAX_LENGTH, NotificationType


EXCERPT_LENGTH = 120


def excerpt(content: str, length: int = EXCERPT_LENGTH) -> str:
    content = " ".join(content.split())
    if len(content) <= length:
        return content
    return content[: length - 3].rstrip() + "..."


def comment_url(site_url: str, post: Post, comment: Comment) -> str:
    return f"{site_url.rstrip('/')}/blog/{post.slug}#comment-{comment.comment_id}"


def moderation_url(site_url: str) -> str:
    return f"{site_url.rstrip('/')}/admin/comments/moderation"


def render(
    notification_type: NotificationType,
    comment: Comment,
    post: Post,
    reason: str | None = None,
) -> tuple[str, str]:
    """Build the (title, message) pair for a notification."""
    quote = excerpt(comment.content)
    author = comment.author.name

    if notification_type == NotificationType.NEW_COMMENT:
        title = f"Nuevo comentario en tu post: {post.title}"
        message = f'{author} comento en "{post.title}": {quote}'
    elif notification_type == NotificationType.REPLY:
        title = f"{author} respondio a tu comentario"
        message = f'{author} respondio a tu comentario en "{post.title}": {quote}'
    elif notification_type == NotificationType.MODERATION_NEEDED:
        title = f"Comentario requiere moderacion - Score: {comment.moderation.score}"
        flags = ", ".join(flag.type for flag in comment.moderation.flags) or "ninguno"
        message = f'Post: {post.title}. Autor: {author}. Indicadores: {flags}. "{quote}"'
    elif notification_type == NotificationType.COMMENT_APPROVED:
        title = "Tu comentario fue aprobado"
        message = f'Tu comentario en "{post.title}" ha sido aprobado y ya es visible.'
    else:
        title = "Tu comentario requiere revision"
        message = f'Tu comentario en "{post.title}" no pudo ser publicado.'
        if reason:
            message += f" Motivo: {reason}"

    return title, message[:NOTIFICATION_PREVIEW_MAX_LENGTH]

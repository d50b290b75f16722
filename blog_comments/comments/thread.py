"""Thread assembly.

Turns the flat list of a post's comments into ordered, nested trees:

- roots: pinned first, then by the requested sort key and order
- replies: oldest first at every level
- depth never exceeds the configured maximum
- a hidden (soft-deleted) comment stays in the tree only while it still
  has visible replies, so those replies keep a parent
"""

import math
from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from .models import Comment, CommentStatus


SORT_KEYS: dict[str, Callable[[Comment], Any]] = {
    "created_at": lambda c: c.created_at,
    "score": lambda c: (c.votes.score, c.created_at),
    "likes": lambda c: (c.votes.likes, c.created_at),
    "replies": lambda c: (c.replies_count, c.created_at),
}

SORT_ORDERS = ("asc", "desc")


@dataclass
class ThreadNode:
    comment: Comment
    replies: list["ThreadNode"] = field(default_factory=list)


@dataclass
class Pagination:
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def to_dict(self) -> dict[str, int]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "pages": self.pages,
        }


@dataclass
class ThreadPage:
    items: list[ThreadNode]
    pagination: Pagination


def is_publicly_visible(comment: Comment) -> bool:
    return comment.status == CommentStatus.APPROVED


def paginate(items: list[Any], page: int, limit: int) -> tuple[list[Any], Pagination]:
    """Slice a list into a 1-based page."""
    page = max(page, 1)
    start = (page - 1) * limit
    return items[start : start + limit], Pagination(page, limit, len(items))


def sort_comments(
    comments: Iterable[Comment],
    sort_by: str = "created_at",
    sort_order: str = "desc",
    pinned_first: bool = False,
) -> list[Comment]:
    """Sort comments by a known key; pinned comments optionally lead."""
    key = SORT_KEYS.get(sort_by, SORT_KEYS["created_at"])
    ordered = sorted(comments, key=key, reverse=sort_order != "asc")
    if pinned_first:
        # sorted() is stable, so the secondary order survives
        ordered = sorted(ordered, key=lambda c: not c.pinned)
    return ordered


def _children_index(comments: Iterable[Comment]) -> dict[UUID | None, list[Comment]]:
    children: dict[UUID | None, list[Comment]] = defaultdict(list)
    for comment in comments:
        children[comment.parent_id].append(comment)
    for siblings in children.values():
        siblings.sort(key=lambda c: c.created_at)
    return children


def _build(
    comment: Comment,
    children: dict[UUID | None, list[Comment]],
    visible: Callable[[Comment], bool],
    max_depth: int,
) -> ThreadNode | None:
    replies: list[ThreadNode] = []
    if comment.level < max_depth:
        for child in children.get(comment.comment_id, []):
            node = _build(child, children, visible, max_depth)
            if node is not None:
                replies.append(node)

    if visible(comment):
        return ThreadNode(comment, replies)
    if comment.status == CommentStatus.HIDDEN and replies:
        return ThreadNode(comment, replies)
    return None


def build_subtree(
    root: Comment,
    comments: Iterable[Comment],
    max_depth: int,
    visible: Callable[[Comment], bool] = is_publicly_visible,
) -> ThreadNode:
    """Nest the replies under ``root``; the root itself is always included."""
    children = _children_index(comments)
    replies = []
    if root.level < max_depth:
        for child in children.get(root.comment_id, []):
            node = _build(child, children, visible, max_depth)
            if node is not None:
                replies.append(node)
    return ThreadNode(root, replies)


def assemble_thread(
    comments: Iterable[Comment],
    page: int = 1,
    limit: int = 20,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    max_depth: int = 5,
    visible: Callable[[Comment], bool] = is_publicly_visible,
) -> ThreadPage:
    """Build one page of root threads for a post.

    Args:
        comments: Every comment of the post, any status.
        page: 1-based page over root comments.
        limit: Roots per page.
        sort_by: One of ``SORT_KEYS``.
        sort_order: ``asc`` or ``desc``.
        max_depth: Deepest level rendered.
        visible: Which comments the reader may see.
    """
    all_comments = list(comments)
    children = _children_index(all_comments)

    roots: list[ThreadNode] = []
    for root in sort_comments(
        children.get(None, []), sort_by, sort_order, pinned_first=True
    ):
        node = _build(root, children, visible, max_depth)
        if node is not None:
            roots.append(node)

    items, pagination = paginate(roots, page, limit)
    return ThreadPage(items=items, pagination=pagination)

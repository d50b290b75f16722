"""Read model of blog posts as seen by the comment subsystem.

Posts are owned by the CMS. Only the fields comments need are mirrored here:
slug, title, whether comments are open, the post author and a comment counter.
"""

from blog_comments.posts.models import POSTS_TABLES_CQL, Post, PostAuthor


__all__ = ["POSTS_TABLES_CQL", "Post", "PostAuthor"]

"""Identity as consumed by the comment subsystem.

Tokens are issued upstream. This package verifies them and resolves the
caller into an ``Actor`` with a permission set.
"""

from blog_comments.auth.permissions import Actor, Permission, UserRole


__all__ = ["Actor", "Permission", "UserRole"]

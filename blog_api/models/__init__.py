from .user import Role, RoleEnum, User
from .blog import Blog
from .comment import Comment
from .blog_like import BlogLike
from .blog_view import BlogView
from .blog_analytics import BlogAnalytics

__all__ = [
    "Role",
    "RoleEnum",
    "User",
    "Blog",
    "Comment",
    "BlogLike",
    "BlogView",
    "BlogAnalytics",
]

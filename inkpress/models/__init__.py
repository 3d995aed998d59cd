"""
Models for django-inkpress.

All models are importable from inkpress.models:

    from inkpress.models import Post, Tag, Comment, Image
"""
from .accounts import Account, AnonymousAccount, Session
from .posts import Category, Tag, Post, PostView, make_slug
from .comments import Comment, build_comment_tree
from .media import Image

__all__ = [
    # Accounts
    "Account",
    "AnonymousAccount",
    "Session",
    # Posts
    "Category",
    "Tag",
    "Post",
    "PostView",
    "make_slug",
    # Comments
    "Comment",
    "build_comment_tree",
    # Media
    "Image",
]

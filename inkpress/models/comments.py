"""
Comment model and thread building for django-inkpress.
"""
from datetime import timedelta

from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from ..conf import blog_settings


class CommentQuerySet(models.QuerySet):
    def active(self):
        return self.filter(deleted_at__isnull=True)

    def visible_to(self, account):
        """Approved comments plus the account's own pending ones."""
        if account is not None and account.is_authenticated:
            if account.is_owner:
                return self
            return self.filter(models.Q(approved=True) | models.Q(author_id=account.pk))
        return self.filter(approved=True)


class Comment(models.Model):
    """
    Comment on a post.

    Replies point at their parent; deleting archives the comment
    (deleted_at) so the thread below it stays intact.
    """

    post = models.ForeignKey(
        "inkpress.Post",
        on_delete=models.CASCADE,
        related_name="comments",
    )
    author = models.ForeignKey(
        "inkpress.Account",
        on_delete=models.CASCADE,
        related_name="comments",
    )
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name="replies",
    )
    content = models.TextField(max_length=blog_settings.COMMENT_MAX_LENGTH)
    approved = models.BooleanField(default=True)
    edited_at = models.DateTimeField(null=True, blank=True)
    deleted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CommentQuerySet.as_manager()

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["post", "approved", "created_at"]),
        ]

    def __str__(self):
        return f"Comment by {self.author} on {self.post}"

    def clean(self):
        if self.parent_id and self.parent.post_id != self.post_id:
            raise ValidationError({"parent": "Parent comment belongs to another post."})

    @property
    def preview(self):
        """Return truncated content for admin display."""
        if len(self.content) > 100:
            return self.content[:100] + "..."
        return self.content

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    @property
    def is_edited(self):
        return self.edited_at is not None

    @property
    def is_reply(self):
        return self.parent_id is not None

    @property
    def thread_depth(self):
        """Calculate nesting depth of this comment."""
        depth = 0
        current = self.parent
        while current:
            depth += 1
            current = current.parent
        return depth

    def can_edit(self, account):
        """Authors may edit their own live comments for a short while."""
        if account is None or not account.is_authenticated:
            return False
        if self.is_deleted or self.author_id != account.pk:
            return False
        window = timedelta(minutes=blog_settings.COMMENT_EDIT_WINDOW_MINUTES)
        return timezone.now() - self.created_at <= window

    def can_delete(self, account):
        """Only the owner moderates comments."""
        return account is not None and account.is_authenticated and account.is_owner

    def approve(self):
        self.approved = True
        self.save(update_fields=["approved", "updated_at"])

    def unapprove(self):
        self.approved = False
        self.save(update_fields=["approved", "updated_at"])

    def soft_delete(self):
        """Archive the comment; replies keep pointing at it."""
        self.deleted_at = timezone.now()
        self.save(update_fields=["deleted_at", "updated_at"])

    def edit(self, new_content):
        self.content = new_content.strip()
        self.edited_at = timezone.now()
        self.save(update_fields=["content", "edited_at", "updated_at"])

    def to_dict(self):
        return {
            "id": self.pk,
            "postId": self.post_id,
            "parentId": self.parent_id,
            "authorId": self.author_id,
            "authorName": self.author.display_name,
            "authorImage": self.author.image,
            "content": "" if self.is_deleted else self.content,
            "approved": self.approved,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
            "editedAt": self.edited_at.isoformat() if self.edited_at else None,
            "deletedAt": self.deleted_at.isoformat() if self.deleted_at else None,
        }


def build_comment_tree(comments):
    """
    Arrange flat comments into threads.

    Returns the root comments in input order, each with a ``replies_list``
    attached. Replies whose parent is not among ``comments`` are dropped.
    """
    comments = list(comments)
    by_id = {}
    for comment in comments:
        comment.replies_list = []
        by_id[comment.pk] = comment

    roots = []
    for comment in comments:
        if comment.parent_id is None:
            roots.append(comment)
            continue
        parent = by_id.get(comment.parent_id)
        if parent is not None:
            parent.replies_list.append(comment)
    return roots

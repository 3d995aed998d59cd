"""
Post view tracking.

Every page view bumps Post.view_count. Each distinct viewer (account pk,
or 0 for anonymous visitors) also gets one PostView row whose own
counter is bumped on repeat visits, so unique viewers are never counted
twice.
"""
import logging

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from .models import Post, PostView

logger = logging.getLogger(__name__)


def viewer_id_for(account):
    if account is not None and account.is_authenticated:
        return account.pk
    return PostView.ANONYMOUS_VIEWER


def _bump_viewer(post_id, viewer_id):
    return PostView.objects.filter(post_id=post_id, viewer_id=viewer_id).update(
        view_count=F("view_count") + 1,
        viewed_at=timezone.now(),
    )


def track_post_view(post, account=None):
    """
    Record one view of post by account.

    Errors are logged and swallowed: a failed counter must never break
    the page that triggered it.
    """
    viewer_id = viewer_id_for(account)
    try:
        Post.objects.filter(pk=post.pk).update(view_count=F("view_count") + 1)

        if _bump_viewer(post.pk, viewer_id):
            return
        try:
            with transaction.atomic():
                PostView.objects.create(post_id=post.pk, viewer_id=viewer_id, view_count=1)
        except IntegrityError:
            # Another request inserted the row first.
            _bump_viewer(post.pk, viewer_id)
    except DatabaseError:
        logger.exception("Failed to track view of post %s by viewer %s", post.pk, viewer_id)


def get_post_view_stats(post_id):
    total = Post.objects.filter(pk=post_id).values_list("view_count", flat=True).first() or 0
    unique = PostView.objects.filter(post_id=post_id).count()
    return {"total_views": total, "unique_views": unique}

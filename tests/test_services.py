"""
Tests for post queries and view tracking.
"""
import logging
from datetime import timedelta
from unittest import mock

import pytest
from django.db import DatabaseError
from django.utils import timezone

from inkpress import services, tracking
from inkpress.models import AnonymousAccount, Category, Comment, Post, PostView, Tag
from inkpress.tracking import get_post_view_stats, track_post_view


def make_post(author, title, days_ago=0, **kwargs):
    kwargs.setdefault("published", True)
    return Post.objects.create(
        title=title,
        content=f"Body of {title}",
        author=author,
        created_at=timezone.now() - timedelta(days=days_ago),
        **kwargs,
    )


@pytest.mark.django_db
class TestPostQueries:
    def test_posts_page_orders_featured_first(self, owner):
        old_featured = make_post(owner, "Old featured", days_ago=10, featured=True)
        newest = make_post(owner, "Newest", days_ago=0)
        older = make_post(owner, "Older", days_ago=3)
        make_post(owner, "Draft", published=False)

        page = services.get_posts_page()

        assert page.posts == [old_featured, newest, older]
        assert page.total_count == 3
        assert page.total_pages == 1
        assert not page.has_next_page

    def test_pagination(self, owner):
        for i in range(7):
            make_post(owner, f"Post {i}", days_ago=i)

        first = services.get_posts_page(1)
        second = services.get_posts_page("2")

        assert len(first) == 5
        assert first.has_next_page and not first.has_previous_page
        assert len(second) == 2
        assert second.has_previous_page and not second.has_next_page
        assert second.total_pages == 2

    def test_out_of_range_page_is_empty(self, owner):
        make_post(owner, "Only")
        page = services.get_posts_page(9)
        assert page.posts == []
        assert page.total_count == 1

    def test_invalid_page_falls_back_to_first(self, owner):
        make_post(owner, "Only")
        assert services.get_posts_page("abc").current_page == 1

    def test_comment_count_ignores_archived(self, post, reader):
        Comment.objects.create(post=post, author=reader, content="one")
        archived = Comment.objects.create(post=post, author=reader, content="two")
        archived.soft_delete()

        listed = services.get_posts_page().posts[0]
        assert listed.comment_count == 1

    def test_featured_and_recent(self, owner):
        featured = make_post(owner, "Featured", featured=True)
        make_post(owner, "Plain", days_ago=1)
        make_post(owner, "Hidden", featured=True, published=False)

        assert services.get_featured_posts() == [featured]
        assert len(services.get_recent_posts()) == 2

    def test_posts_by_tag_and_category(self, owner):
        python = Tag.objects.create(name="python")
        news = Category.objects.create(name="News")
        tagged = make_post(owner, "Tagged", category=news)
        tagged.tags.add(python)
        make_post(owner, "Untagged")

        assert services.get_posts_by_tag("python").posts == [tagged]
        assert services.get_posts_by_category("news").posts == [tagged]
        assert services.get_posts_by_tag("missing").total_count == 0

    def test_search(self, owner):
        hit = make_post(owner, "Django tips")
        make_post(owner, "Other")
        Post.objects.create(title="Django draft", content="x", author=owner)

        assert services.search_posts("django").posts == [hit]
        assert services.search_posts("   ").total_count == 0

    def test_admin_filters(self, owner):
        published = make_post(owner, "Live", featured=True)
        draft = make_post(owner, "Draft", published=False)

        assert services.get_admin_posts().total_count == 2
        assert services.get_admin_posts(status="draft").posts == [draft]
        assert services.get_admin_posts(status="published").posts == [published]
        assert services.get_admin_posts(featured="unfeatured").posts == [draft]
        assert services.get_admin_posts(query="live").posts == [published]

    def test_get_post_by_slug(self, owner, draft):
        first = make_post(owner, "First", days_ago=2)
        second = make_post(owner, "Second", days_ago=1)

        post, previous_post, next_post = services.get_post_by_slug(second.slug)
        assert post == second
        assert previous_post == first
        assert next_post is None

        assert services.get_post_by_slug(draft.slug) == (None, None, None)
        assert services.get_post_by_slug(draft.slug, include_drafts=True)[0] == draft

    def test_tags_with_post_counts(self, owner, draft):
        popular = Tag.objects.create(name="popular")
        rare = Tag.objects.create(name="rare")
        Tag.objects.create(name="unused")
        for i in range(2):
            make_post(owner, f"P{i}").tags.add(popular)
        make_post(owner, "R").tags.add(rare)
        draft.tags.add(rare)

        tags = services.get_tags_with_post_counts()

        assert tags == [popular, rare]
        assert [t.post_count_value for t in tags] == [2, 1]

    def test_dashboard_statistics(self, owner, reader, post, draft):
        Tag.objects.create(name="t")
        Comment.objects.create(post=post, author=reader, content="ok")
        Comment.objects.create(post=post, author=reader, content="wait", approved=False)
        Post.objects.filter(pk=post.pk).update(view_count=12)

        stats = services.get_dashboard_statistics()

        assert stats["total_posts"] == 2
        assert stats["published_posts"] == 1
        assert stats["draft_posts"] == 1
        assert stats["featured_posts"] == 0
        assert stats["total_views"] == 12
        assert stats["total_tags"] == 1
        assert stats["total_comments"] == 2
        assert stats["pending_comments"] == 1
        assert stats["total_users"] == 2


@pytest.mark.django_db
class TestViewTracking:
    """Tests for track_post_view."""

    def test_every_view_counts(self, post, reader):
        track_post_view(post, reader)
        track_post_view(post, reader)
        track_post_view(post, AnonymousAccount())

        stats = get_post_view_stats(post.pk)
        assert stats == {"total_views": 3, "unique_views": 2}

    def test_repeat_viewer_bumps_row(self, post, reader):
        track_post_view(post, reader)
        track_post_view(post, reader)

        row = PostView.objects.get(post=post, viewer_id=reader.pk)
        assert row.view_count == 2

    def test_anonymous_viewers_share_a_row(self, post):
        track_post_view(post)
        track_post_view(post, AnonymousAccount())

        row = PostView.objects.get(post=post)
        assert row.viewer_id == PostView.ANONYMOUS_VIEWER
        assert row.view_count == 2

    def test_concurrent_first_view_bumps_existing_row(self, post, reader):
        real_bump = tracking._bump_viewer
        calls = []

        def bump(post_id, viewer_id):
            calls.append(viewer_id)
            if len(calls) == 1:
                # Another request inserts the row between our update and insert.
                PostView.objects.create(post_id=post_id, viewer_id=viewer_id, view_count=1)
                return 0
            return real_bump(post_id, viewer_id)

        with mock.patch("inkpress.tracking._bump_viewer", side_effect=bump):
            track_post_view(post, reader)

        post.refresh_from_db()
        assert calls == [reader.pk, reader.pk]
        assert post.view_count == 1
        assert PostView.objects.get(post=post, viewer_id=reader.pk).view_count == 2

    def test_database_errors_are_logged_not_raised(self, post, reader, caplog):
        with mock.patch("inkpress.tracking._bump_viewer", side_effect=DatabaseError("disk full")):
            with caplog.at_level(logging.ERROR, logger="inkpress.tracking"):
                track_post_view(post, reader)

        assert not PostView.objects.exists()
        records = [r for r in caplog.records if r.name == "inkpress.tracking"]
        assert len(records) == 1
        record = records[0]
        assert record.message == f"Failed to track view of post {post.pk} by viewer {reader.pk}"
        assert record.exc_info[0] is DatabaseError

    def test_page_survives_tracking_failure(self, client, post):
        with mock.patch("inkpress.tracking._bump_viewer", side_effect=DatabaseError("locked")):
            response = client.get(post.get_absolute_url())
        assert response.status_code == 200

    def test_missing_post_stats(self, db):
        assert get_post_view_stats(999) == {"total_views": 0, "unique_views": 0}

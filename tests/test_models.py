"""
Tests for django-inkpress models.
"""
from datetime import timedelta

import pytest
from django.utils import timezone

from inkpress.models import (
    Account,
    AnonymousAccount,
    Category,
    Comment,
    Post,
    Session,
    Tag,
    build_comment_tree,
    make_slug,
)


@pytest.fixture
def tag(db):
    """Create a test tag."""
    return Tag.objects.create(name="django", slug="django")


@pytest.fixture
def comment(db, post, reader):
    return Comment.objects.create(post=post, author=reader, content="Great post!")


class TestAccount:
    """Tests for Account and Session models."""

    def test_display_name_falls_back(self, db):
        account = Account.objects.create(email="x@example.com", login="octo")
        assert account.display_name == "octo"
        account.login = ""
        assert account.display_name == "x@example.com"

    def test_roles(self, owner, reader):
        assert owner.is_owner
        assert not reader.is_owner
        assert reader.is_authenticated

    def test_anonymous_account(self):
        anon = AnonymousAccount()
        assert not anon.is_authenticated
        assert not anon.is_owner
        assert anon.pk is None

    def test_create_session(self, reader):
        session = Session.objects.create_for(reader, 60)
        assert len(session.session_token) >= 32
        assert not session.is_expired
        assert session.account == reader

    def test_purge_expired(self, reader):
        Session.objects.create_for(reader, 60)
        old = Session.objects.create_for(reader, 60)
        Session.objects.filter(pk=old.pk).update(expires=timezone.now() - timedelta(seconds=1))

        assert Session.objects.purge_expired() == 1
        assert Session.objects.count() == 1


class TestTag:
    """Tests for Tag model."""

    def test_create_tag(self, db):
        """Test creating a tag."""
        tag = Tag.objects.create(name="Web Dev")
        assert tag.slug == "web-dev"

    def test_get_or_create_is_case_insensitive(self, tag):
        found, created = Tag.objects.get_or_create_by_name("  Django ")
        assert not created
        assert found == tag

    def test_get_or_create_new(self, db):
        tag, created = Tag.objects.get_or_create_by_name("Python")
        assert created
        assert tag.slug == "python"

    def test_blank_name_rejected(self, db):
        with pytest.raises(ValueError):
            Tag.objects.get_or_create_by_name("   ")

    def test_unsluggable_name_rejected(self, db):
        with pytest.raises(ValueError):
            Tag.objects.get_or_create_by_name("!!!")

    def test_tag_post_count(self, tag, post, draft):
        """Only published posts are counted."""
        post.tags.add(tag)
        draft.tags.add(tag)
        assert tag.post_count == 1


class TestCategory:
    def test_slug_generated(self, db):
        category = Category.objects.create(name="Release Notes")
        assert category.slug == "release-notes"

    def test_post_count(self, db, post):
        category = Category.objects.create(name="News")
        post.category = category
        post.save()
        assert category.post_count == 1


class TestPost:
    """Tests for Post model."""

    def test_create_post(self, post):
        assert post.slug == "hello-world"
        assert post.published_at is not None

    def test_slug_collision_gets_suffix(self, owner, post):
        second = Post.objects.create(title="Hello World", content="again", author=owner)
        third = Post.objects.create(title="Hello World", content="and again", author=owner)
        assert second.slug == "hello-world-1"
        assert third.slug == "hello-world-2"

    def test_reserved_slug_is_never_used(self, owner):
        titled = Post.objects.create(title="New", content="x", author=owner)
        explicit = Post.objects.create(title="Other", slug="new", content="x", author=owner)
        assert titled.slug == "new-1"
        assert explicit.slug == "new-2"

    def test_unicode_title_slug(self, owner):
        post = Post.objects.create(title="你好 世界", content="x", author=owner)
        assert post.slug == "你好-世界"

    def test_fallback_slug(self, db):
        assert make_slug("???", fallback_seed="body").startswith("post-")

    def test_draft_has_no_published_at(self, draft):
        assert not draft.published
        assert draft.published_at is None

    def test_publish_post(self, draft):
        """Test publishing a draft post."""
        draft.publish()
        draft.refresh_from_db()

        assert draft.published
        assert draft.published_at is not None

    def test_feature_toggle(self, post):
        post.feature()
        post.refresh_from_db()
        assert post.featured
        post.unfeature()
        post.refresh_from_db()
        assert not post.featured

    def test_preview_truncation(self, owner):
        post = Post.objects.create(title="Long", content="x" * 500, author=owner)
        assert len(post.preview) == 283  # 280 + "..."

    def test_preview_prefers_excerpt(self, owner):
        post = Post.objects.create(title="E", content="body", excerpt="short", author=owner)
        assert post.preview == "short"

    def test_set_tags_creates_and_dedupes(self, post, tag):
        post.set_tags(["DJANGO", "python", "", "Python"])
        assert sorted(post.tag_names) == ["django", "python"]
        assert Tag.objects.count() == 2

    def test_previous_and_next(self, owner):
        now = timezone.now()
        older = Post.objects.create(
            title="Older", content="a", author=owner, published=True,
            created_at=now - timedelta(days=2),
        )
        middle = Post.objects.create(
            title="Middle", content="b", author=owner, published=True,
            created_at=now - timedelta(days=1),
        )
        Post.objects.create(
            title="Hidden draft", content="c", author=owner,
            created_at=now - timedelta(hours=12),
        )
        newer = Post.objects.create(
            title="Newer", content="d", author=owner, published=True, created_at=now,
        )

        assert middle.get_previous() == older
        assert middle.get_next() == newer
        assert older.get_previous() is None
        assert newer.get_next() is None


class TestComment:
    """Tests for Comment model."""

    def test_threaded_comments(self, post, reader, comment):
        """Test nested comment replies."""
        reply = Comment.objects.create(post=post, author=reader, content="Reply", parent=comment)
        assert reply.is_reply
        assert reply.thread_depth == 1
        assert comment.replies.count() == 1

    def test_edit_comment(self, comment):
        comment.edit("  Updated content  ")
        comment.refresh_from_db()

        assert comment.content == "Updated content"
        assert comment.is_edited

    def test_soft_delete(self, comment):
        comment.soft_delete()
        comment.refresh_from_db()
        assert comment.is_deleted
        assert Comment.objects.active().count() == 0

    def test_can_edit_only_author_within_window(self, comment, reader, owner):
        assert comment.can_edit(reader)
        assert not comment.can_edit(owner)
        assert not comment.can_edit(AnonymousAccount())

        Comment.objects.filter(pk=comment.pk).update(created_at=timezone.now() - timedelta(hours=1))
        comment.refresh_from_db()
        assert not comment.can_edit(reader)

    def test_can_delete_only_owner(self, comment, reader, owner):
        assert comment.can_delete(owner)
        assert not comment.can_delete(reader)

    def test_visible_to(self, post, reader, owner, comment):
        other = Account.objects.create(github_id=3, login="other", email="o@example.com")
        Comment.objects.create(post=post, author=reader, content="pending", approved=False)

        assert Comment.objects.visible_to(AnonymousAccount()).count() == 1
        assert Comment.objects.visible_to(other).count() == 1
        assert Comment.objects.visible_to(reader).count() == 2
        assert Comment.objects.visible_to(owner).count() == 2


class TestBuildCommentTree:
    def test_builds_nested_threads(self, post, reader, comment):
        reply = Comment.objects.create(post=post, author=reader, content="r1", parent=comment)
        nested = Comment.objects.create(post=post, author=reader, content="r2", parent=reply)
        second_root = Comment.objects.create(post=post, author=reader, content="root 2")

        roots = build_comment_tree(Comment.objects.order_by("created_at", "pk"))

        assert roots == [comment, second_root]
        assert roots[0].replies_list == [reply]
        assert roots[0].replies_list[0].replies_list == [nested]
        assert roots[1].replies_list == []

    def test_orphan_replies_are_dropped(self, post, reader, comment):
        reply = Comment.objects.create(post=post, author=reader, content="r1", parent=comment)

        roots = build_comment_tree([reply])

        assert roots == []

    def test_empty(self):
        assert build_comment_tree([]) == []

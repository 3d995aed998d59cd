"""
Post queries and comment rules shared by the pages, the admin pages and the API.
"""
from django.core.paginator import EmptyPage, PageNotAnInteger, Paginator
from django.db.models import Count, Q, Sum

from .conf import blog_settings
from .exceptions import CommentRejected
from .models import Account, Comment, Post, Tag


def parse_int(value):
    """Return value as an int, or None when it is not a plain integer."""
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class PostsPage:
    """One page of posts plus pagination facts."""

    def __init__(self, posts, total_count, current_page, total_pages):
        self.posts = list(posts)
        self.total_count = total_count
        self.current_page = current_page
        self.total_pages = total_pages

    @property
    def has_next_page(self):
        return self.current_page < self.total_pages

    @property
    def has_previous_page(self):
        return self.current_page > 1

    @property
    def next_page_number(self):
        return self.current_page + 1

    @property
    def previous_page_number(self):
        return self.current_page - 1

    def __iter__(self):
        return iter(self.posts)

    def __len__(self):
        return len(self.posts)

    @classmethod
    def empty(cls, page=1):
        return cls([], 0, page, 0)


def listed_posts():
    """Posts annotated for list display: tags prefetched, live comment count."""
    return (
        Post.objects.select_related("author", "category")
        .prefetch_related("tags")
        .annotate(
            comment_count=Count(
                "comments",
                filter=Q(comments__deleted_at__isnull=True),
                distinct=True,
            )
        )
    )


def paginate(queryset, page=1, per_page=None):
    per_page = per_page or blog_settings.POSTS_PER_PAGE
    paginator = Paginator(queryset, per_page)
    try:
        page = int(page)
    except (TypeError, ValueError):
        page = 1
    page = max(page, 1)
    total = paginator.count
    if total == 0:
        return PostsPage.empty(page)
    try:
        page_obj = paginator.page(page)
    except (EmptyPage, PageNotAnInteger):
        return PostsPage([], total, page, paginator.num_pages)
    return PostsPage(page_obj.object_list, total, page, paginator.num_pages)


def get_featured_posts(limit=None):
    limit = limit or blog_settings.FEATURED_POSTS_LIMIT
    return list(listed_posts().filter(published=True, featured=True).order_by("-created_at")[:limit])


def get_recent_posts(limit=None):
    limit = limit or blog_settings.RECENT_POSTS_LIMIT
    return list(listed_posts().filter(published=True).order_by("-created_at")[:limit])


def get_posts_page(page=1, per_page=None):
    """Published posts, featured first then newest."""
    qs = listed_posts().filter(published=True).order_by("-featured", "-created_at")
    return paginate(qs, page, per_page)


def get_posts_by_tag(tag_slug, page=1, per_page=None):
    qs = (
        listed_posts()
        .filter(published=True, tags__slug=tag_slug)
        .distinct()
        .order_by("-created_at")
    )
    return paginate(qs, page, per_page)


def get_posts_by_category(category_slug, page=1, per_page=None):
    qs = listed_posts().filter(published=True, category__slug=category_slug).order_by("-created_at")
    return paginate(qs, page, per_page)


def _search_filter(query):
    query = (query or "").strip()
    if not query:
        return None
    return Q(title__icontains=query) | Q(content__icontains=query)


def search_posts(query, page=1, per_page=None):
    condition = _search_filter(query)
    if condition is None:
        return PostsPage.empty(page)
    qs = listed_posts().filter(condition, published=True).order_by("-created_at")
    return paginate(qs, page, per_page)


def get_admin_posts(page=1, per_page=None, status="all", featured="all", tag_slug=None, query=None):
    """
    Every post, drafts included, for the owner's management page.

    status: "all" | "published" | "draft"
    featured: "all" | "featured" | "unfeatured"
    """
    qs = listed_posts()
    if status == "published":
        qs = qs.filter(published=True)
    elif status == "draft":
        qs = qs.filter(published=False)

    if featured == "featured":
        qs = qs.filter(featured=True)
    elif featured == "unfeatured":
        qs = qs.filter(featured=False)

    if tag_slug:
        qs = qs.filter(tags__slug=tag_slug).distinct()

    condition = _search_filter(query)
    if condition is not None:
        qs = qs.filter(condition)

    per_page = per_page or blog_settings.ADMIN_POSTS_PER_PAGE
    return paginate(qs.order_by("-created_at"), page, per_page)


def get_post_by_slug(slug, include_drafts=False):
    """
    Return (post, previous_post, next_post).

    post is None when no visible post has the slug.
    """
    qs = Post.objects.select_related("author", "category").prefetch_related("tags")
    if not include_drafts:
        qs = qs.filter(published=True)
    post = qs.filter(slug=slug).first()
    if post is None:
        return None, None, None
    return post, post.get_previous(), post.get_next()


def get_tags_with_post_counts():
    """Tags used by at least one published post, most used first."""
    return list(
        Tag.objects.annotate(
            post_count_value=Count("posts", filter=Q(posts__published=True), distinct=True)
        )
        .filter(post_count_value__gt=0)
        .order_by("-post_count_value", "name")
    )


def get_dashboard_statistics():
    posts = Post.objects.aggregate(
        total_posts=Count("id"),
        published_posts=Count("id", filter=Q(published=True)),
        draft_posts=Count("id", filter=Q(published=False)),
        featured_posts=Count("id", filter=Q(featured=True)),
        total_views=Sum("view_count"),
    )
    posts["total_views"] = posts["total_views"] or 0
    posts.update(
        total_tags=Tag.objects.count(),
        total_comments=Comment.objects.count(),
        pending_comments=Comment.objects.filter(approved=False, deleted_at__isnull=True).count(),
        total_users=Account.objects.count(),
    )
    return posts


def _clean_comment_content(content):
    content = (content or "").strip()
    if not content:
        raise CommentRejected("Missing required fields", code="empty")
    if len(content) > blog_settings.COMMENT_MAX_LENGTH:
        raise CommentRejected("Comment is too long", code="too_long")
    return content


def add_comment(post_id, account, content, parent_id=None):
    """
    Create a comment by account on a published post.

    parent_id may be None or blank for a top-level comment; otherwise it
    must name a comment on the same post. Raises CommentRejected whose
    code names the problem.
    """
    post_id = parse_int(post_id)
    if post_id is None:
        raise CommentRejected("Missing required fields", code="empty")
    content = _clean_comment_content(content)

    post = Post.objects.filter(pk=post_id, published=True).first()
    if post is None:
        raise CommentRejected("Post not found", code="post_not_found")

    parent = None
    if parent_id:
        parent_pk = parse_int(parent_id)
        if parent_pk is not None:
            parent = Comment.objects.filter(pk=parent_pk, post=post).first()
        if parent is None:
            raise CommentRejected("Parent comment not found", code="parent_not_found")

    return Comment.objects.create(
        post=post,
        author=account,
        parent=parent,
        content=content,
        approved=account.is_owner or not blog_settings.MODERATE_COMMENTS,
    )


def edit_comment(comment, account, content):
    """Replace the text of account's own comment inside the edit window."""
    content = _clean_comment_content(content)
    if comment.is_deleted:
        raise CommentRejected("Cannot edit deleted comment", code="deleted")
    if comment.author_id != account.pk:
        raise CommentRejected("You can only edit your own comments", code="not_author", status=403)
    if not comment.can_edit(account):
        raise CommentRejected(
            "The edit window for this comment has closed", code="edit_window_closed", status=403
        )
    comment.edit(content)
    return comment


def remove_comment(comment, account, hard=False):
    """Archive the comment, or delete it with its replies when hard is set."""
    if not comment.can_delete(account):
        raise CommentRejected("Only the blog owner can delete comments", code="not_owner", status=403)
    if hard:
        comment.delete()
    else:
        comment.soft_delete()

"""
Server-rendered pages for django-inkpress.
"""
import logging
import secrets

from django.db.models import Count, Q
from django.http import Http404, HttpResponseBadRequest
from django.shortcuts import get_object_or_404, redirect
from django.urls import reverse
from django.utils.decorators import method_decorator
from django.utils.http import url_has_allowed_host_and_scheme, urlencode
from django.views import View
from django.views.generic import CreateView, DetailView, TemplateView, UpdateView

from . import services
from .auth import (
    authenticate_with_github,
    clear_session_cookie,
    delete_session,
    get_session_token,
    github_authorize_url,
    owner_required,
    set_session_cookie,
)
from .conf import blog_settings
from .exceptions import CommentRejected, OAuthError
from .forms import CategoryForm, PostForm, TagForm
from .models import Category, Comment, Post, Tag, build_comment_tree
from .tracking import get_post_view_stats, track_post_view

logger = logging.getLogger(__name__)

OAUTH_ERROR_MESSAGES = {
    "no_code": "GitHub did not return an authorization code.",
    "invalid_state": "The sign-in request expired. Please try again.",
    "access_denied": "You cancelled the GitHub sign-in.",
    "not_configured": "GitHub sign-in is not configured.",
    "no_email": "Your GitHub account has no verified email address.",
}

COMMENT_ERROR_MESSAGES = {
    "empty": "Comments cannot be empty.",
    "too_long": "That comment is too long.",
    "post_not_found": "Comments are closed for this post.",
    "parent_not_found": "The comment you replied to no longer exists.",
    "deleted": "Deleted comments cannot be edited.",
    "not_author": "You can only edit your own comments.",
    "edit_window_closed": "The edit window for that comment has closed.",
    "not_owner": "Only the blog owner can delete comments.",
}


def _page_number(request):
    return request.GET.get("page", 1)


def _posted_object(model, request, field):
    """Return the instance whose pk is POSTed in field, or None for a non-integer id."""
    pk = services.parse_int(request.POST.get(field))
    if pk is None:
        return None
    return get_object_or_404(model, pk=pk)


# ---------------------------------------------------------------------------
# Public pages
# ---------------------------------------------------------------------------


class HomeView(TemplateView):
    """Featured and recent posts."""

    template_name = "inkpress/home.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["featured_posts"] = services.get_featured_posts()
        context["recent_posts"] = services.get_recent_posts()
        context["tags"] = services.get_tags_with_post_counts()[:20]
        return context


class PostListView(TemplateView):
    """Paginated published posts, featured first."""

    template_name = "inkpress/post_list.html"

    def get_page(self):
        return services.get_posts_page(_page_number(self.request))

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["page"] = self.get_page()
        context["posts"] = context["page"].posts
        return context


class TagPostListView(PostListView):
    """Posts with a specific tag."""

    template_name = "inkpress/tag_detail.html"

    def get_page(self):
        self.tag = get_object_or_404(Tag, slug=self.kwargs["slug"])
        return services.get_posts_by_tag(self.tag.slug, _page_number(self.request))

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["tag"] = self.tag
        return context


class CategoryPostListView(PostListView):
    """Posts in a specific category."""

    template_name = "inkpress/category_detail.html"

    def get_page(self):
        self.category = get_object_or_404(Category, slug=self.kwargs["slug"])
        return services.get_posts_by_category(self.category.slug, _page_number(self.request))

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["category"] = self.category
        return context


class SearchView(PostListView):
    template_name = "inkpress/search.html"

    def get_page(self):
        self.query = self.request.GET.get("q", "").strip()
        return services.search_posts(self.query, _page_number(self.request))

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["query"] = self.query
        return context


class TagListView(TemplateView):
    template_name = "inkpress/tag_list.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["tags"] = services.get_tags_with_post_counts()
        return context


class PostDetailView(DetailView):
    """Display a single post with its comment threads."""

    template_name = "inkpress/post_detail.html"
    context_object_name = "post"

    def get_slug(self):
        return self.kwargs["slug"]

    def get_object(self, queryset=None):
        account = self.request.account
        post, self.previous_post, self.next_post = services.get_post_by_slug(
            self.get_slug(),
            include_drafts=account.is_owner,
        )
        if post is None:
            raise Http404("Post not found")

        track_post_view(post, account)
        return post

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        comments = (
            self.object.comments.visible_to(self.request.account)
            .select_related("author")
            .order_by("created_at")
        )
        comments = list(comments)
        context["comments"] = build_comment_tree(comments)
        context["comment_count"] = sum(1 for c in comments if not c.is_deleted)
        context["previous_post"] = self.previous_post
        context["next_post"] = self.next_post
        context["view_stats"] = get_post_view_stats(self.object.pk)
        context["comment_error"] = COMMENT_ERROR_MESSAGES.get(self.request.GET.get("comment_error", ""))
        return context


class AboutView(PostDetailView):
    """The post whose slug is ABOUT_SLUG."""

    def get_slug(self):
        return blog_settings.ABOUT_SLUG


# ---------------------------------------------------------------------------
# Comment forms
# ---------------------------------------------------------------------------


def _back_to_post(post, comment=None, error=None):
    url = post.get_absolute_url()
    if error:
        url += "?" + urlencode({"comment_error": error})
    anchor = f"comment-{comment.pk}" if comment else "comments"
    return redirect(f"{url}#{anchor}")


def _signin_for(post):
    return redirect(f"{reverse('inkpress:signin')}?{urlencode({'next': post.get_absolute_url()})}")


class PostCommentView(View):
    """Form target for new comments and replies on a post page."""

    def post(self, request, slug):
        post = get_object_or_404(Post, slug=slug, published=True)
        if not request.account.is_authenticated:
            return _signin_for(post)
        try:
            comment = services.add_comment(
                post.pk,
                request.account,
                request.POST.get("content"),
                parent_id=request.POST.get("parentId"),
            )
        except CommentRejected as exc:
            return _back_to_post(post, error=exc.code)
        return _back_to_post(post, comment)


class CommentEditView(View):
    def post(self, request, pk):
        comment = get_object_or_404(Comment.objects.select_related("post"), pk=pk)
        if not request.account.is_authenticated:
            return _signin_for(comment.post)
        try:
            services.edit_comment(comment, request.account, request.POST.get("content"))
        except CommentRejected as exc:
            return _back_to_post(comment.post, comment, error=exc.code)
        return _back_to_post(comment.post, comment)


class CommentDeleteView(View):
    """Archive a comment; only the owner may."""

    def post(self, request, pk):
        comment = get_object_or_404(Comment.objects.select_related("post"), pk=pk)
        if not request.account.is_authenticated:
            return _signin_for(comment.post)
        try:
            services.remove_comment(comment, request.account)
        except CommentRejected as exc:
            return _back_to_post(comment.post, comment, error=exc.code)
        return _back_to_post(comment.post, comment)


# ---------------------------------------------------------------------------
# Authoring
# ---------------------------------------------------------------------------


@method_decorator(owner_required, name="dispatch")
class PostCreateView(CreateView):
    model = Post
    form_class = PostForm
    template_name = "inkpress/post_form.html"

    def form_valid(self, form):
        form.instance.author = self.request.account
        return super().form_valid(form)


@method_decorator(owner_required, name="dispatch")
class PostUpdateView(UpdateView):
    model = Post
    form_class = PostForm
    template_name = "inkpress/post_form.html"
    slug_url_kwarg = "slug"


# ---------------------------------------------------------------------------
# Sign-in
# ---------------------------------------------------------------------------


def _signin_error(code):
    return redirect(f"{reverse('inkpress:signin')}?{urlencode({'error': code})}")


class SignInView(TemplateView):
    template_name = "inkpress/signin.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        error = self.request.GET.get("error")
        if error:
            context["error"] = OAUTH_ERROR_MESSAGES.get(error, "Sign-in failed. Please try again.")
        context["next"] = self.request.GET.get("next", "")
        return context


class GitHubSignInView(View):
    """Send the browser to GitHub's consent screen."""

    def get(self, request):
        if not blog_settings.GITHUB_CLIENT_ID:
            return _signin_error("not_configured")

        state = secrets.token_urlsafe(16)
        redirect_uri = request.build_absolute_uri(reverse("inkpress:auth_callback"))
        response = redirect(github_authorize_url(redirect_uri, state))
        response.set_cookie(
            blog_settings.OAUTH_STATE_COOKIE_NAME,
            state,
            max_age=600,
            httponly=True,
            samesite="Lax",
            secure=request.is_secure(),
        )
        next_url = request.GET.get("next")
        if next_url and url_has_allowed_host_and_scheme(next_url, allowed_hosts={request.get_host()}):
            response.set_cookie(
                "oauth_next",
                next_url,
                max_age=600,
                httponly=True,
                samesite="Lax",
                secure=request.is_secure(),
            )
        return response


class OAuthCallbackView(View):
    """GitHub redirects here with ?code=...&state=..."""

    def get(self, request):
        error = request.GET.get("error")
        if error:
            logger.warning("GitHub OAuth error: %s %s", error, request.GET.get("error_description", ""))
            return _signin_error(error)

        code = request.GET.get("code")
        if not code:
            return _signin_error("no_code")

        expected_state = request.COOKIES.get(blog_settings.OAUTH_STATE_COOKIE_NAME)
        if not expected_state or not secrets.compare_digest(expected_state, request.GET.get("state", "")):
            return _signin_error("invalid_state")

        redirect_uri = request.build_absolute_uri(reverse("inkpress:auth_callback"))
        try:
            session = authenticate_with_github(code, redirect_uri)
        except OAuthError as exc:
            logger.warning("Authentication failed: %s", exc)
            return _signin_error(exc.code)

        next_url = request.COOKIES.get("oauth_next") or reverse("inkpress:post_list")
        if not url_has_allowed_host_and_scheme(next_url, allowed_hosts={request.get_host()}):
            next_url = reverse("inkpress:post_list")
        response = redirect(next_url)
        set_session_cookie(response, session, request)
        response.delete_cookie(blog_settings.OAUTH_STATE_COOKIE_NAME)
        response.delete_cookie("oauth_next")
        return response


class SignOutView(View):
    def post(self, request):
        token = get_session_token(request)
        if token:
            delete_session(token)
        return clear_session_cookie(redirect("inkpress:home"))


class AuthErrorView(TemplateView):
    template_name = "inkpress/auth_error.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["error"] = OAUTH_ERROR_MESSAGES.get(
            self.request.GET.get("error", ""), "Sign-in failed."
        )
        return context


# ---------------------------------------------------------------------------
# Owner dashboard
# ---------------------------------------------------------------------------


@method_decorator(owner_required, name="dispatch")
class DashboardView(TemplateView):
    template_name = "inkpress/admin/dashboard.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["stats"] = services.get_dashboard_statistics()
        context["recent_comments"] = (
            Comment.objects.select_related("author", "post").order_by("-created_at")[:5]
        )
        return context


@method_decorator(owner_required, name="dispatch")
class AdminPostsView(TemplateView):
    """Filterable list of every post with publish/feature/delete actions."""

    template_name = "inkpress/admin/posts.html"
    intents = ("publish", "unpublish", "feature", "unfeature", "delete")

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        params = self.request.GET
        filters = {
            "status": params.get("status", "all"),
            "featured": params.get("featured", "all"),
            "tag_slug": params.get("tag") or None,
            "query": params.get("q", "").strip(),
        }
        context["page"] = services.get_admin_posts(page=_page_number(self.request), **filters)
        context["filters"] = filters
        context["tags"] = Tag.objects.all()
        return context

    def post(self, request):
        intent = request.POST.get("intent")
        if intent not in self.intents:
            return HttpResponseBadRequest("Invalid action")
        post = _posted_object(Post, request, "postId")
        if post is None:
            return HttpResponseBadRequest("Invalid post id")

        if intent == "delete":
            post.delete()
        else:
            getattr(post, intent)()
        logger.info("Owner applied %s to post %s", intent, post.pk)
        return redirect(request.get_full_path())


@method_decorator(owner_required, name="dispatch")
class AdminCommentsView(TemplateView):
    template_name = "inkpress/admin/comments.html"
    intents = ("approve", "unapprove", "archive", "delete")

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        query = self.request.GET.get("q", "").strip()
        comments = Comment.objects.select_related("author", "post").order_by("-created_at")
        if query:
            comments = comments.filter(
                Q(content__icontains=query)
                | Q(author__name__icontains=query)
                | Q(author__login__icontains=query)
                | Q(post__title__icontains=query)
            )
        context["comments"] = comments
        context["query"] = query
        return context

    def post(self, request):
        intent = request.POST.get("intent")
        if intent not in self.intents:
            return HttpResponseBadRequest("Invalid action")
        comment = _posted_object(Comment, request, "commentId")
        if comment is None:
            return HttpResponseBadRequest("Invalid comment id")

        if intent == "delete":
            comment.delete()
        elif intent == "archive":
            comment.soft_delete()
        else:
            getattr(comment, intent)()
        return redirect(request.get_full_path())


@method_decorator(owner_required, name="dispatch")
class AdminTagsView(TemplateView):
    template_name = "inkpress/admin/tags.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["tags"] = Tag.objects.annotate(num_posts=Count("posts")).order_by("name")
        context.setdefault("form", TagForm())
        return context

    def post(self, request):
        intent = request.POST.get("intent")
        if intent == "delete":
            tag = _posted_object(Tag, request, "tagId")
            if tag is None:
                return HttpResponseBadRequest("Invalid tag id")
            tag.delete()
            return redirect("inkpress:admin_tags")
        if intent == "create":
            form = TagForm(request.POST)
            if form.is_valid():
                try:
                    form.save()
                except ValueError as exc:
                    form.add_error("name", str(exc))
                else:
                    return redirect("inkpress:admin_tags")
            return self.render_to_response(self.get_context_data(form=form), status=400)
        return HttpResponseBadRequest("Invalid action")


@method_decorator(owner_required, name="dispatch")
class AdminCategoriesView(TemplateView):
    template_name = "inkpress/admin/categories.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["categories"] = Category.objects.annotate(num_posts=Count("posts"))
        context.setdefault("form", CategoryForm())
        return context

    def post(self, request):
        intent = request.POST.get("intent")
        if intent == "delete":
            category = _posted_object(Category, request, "categoryId")
            if category is None:
                return HttpResponseBadRequest("Invalid category id")
            category.delete()
            return redirect("inkpress:admin_categories")
        if intent in ("create", "update"):
            instance = None
            if intent == "update":
                instance = _posted_object(Category, request, "categoryId")
                if instance is None:
                    return HttpResponseBadRequest("Invalid category id")
            form = CategoryForm(request.POST, instance=instance)
            if form.is_valid():
                form.save()
                return redirect("inkpress:admin_categories")
            return self.render_to_response(self.get_context_data(form=form), status=400)
        return HttpResponseBadRequest("Invalid action")

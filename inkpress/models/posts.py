"""
Post, Category, Tag and PostView models for django-inkpress.
"""
import hashlib

from django.db import models
from django.urls import reverse
from django.utils import timezone
from django.utils.text import slugify

from ..conf import blog_settings

# Post slugs that would collide with fixed routes under /posts/.
RESERVED_SLUGS = frozenset({"new"})


def make_slug(text, fallback_seed=""):
    """
    Build a URL slug from text.

    Titles without any ASCII letters (e.g. CJK) keep their unicode slug;
    if even that is empty a short hash of fallback_seed is used.
    """
    max_length = blog_settings.SLUG_MAX_LENGTH
    slug = slugify(text)[:max_length].strip("-")
    if not slug:
        slug = slugify(text, allow_unicode=True)[:max_length].strip("-")
    if not slug:
        digest = hashlib.md5((fallback_seed or text or "").encode()).hexdigest()
        slug = f"post-{digest[:8]}"
    return slug


class Category(models.Model):
    """Category for grouping posts."""

    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=100, unique=True, allow_unicode=True)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "Categories"

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = make_slug(self.name)
        super().save(*args, **kwargs)

    def get_absolute_url(self):
        return reverse("inkpress:category_detail", kwargs={"slug": self.slug})

    @property
    def post_count(self):
        """Return count of published posts in this category."""
        return self.posts.filter(published=True).count()


class TagManager(models.Manager):
    def get_or_create_by_name(self, name):
        """
        Return (tag, created) for name, matching existing tags case-insensitively.

        Raises ValueError when name is blank or yields no slug.
        """
        name = (name or "").strip()
        if not name:
            raise ValueError("Tag name is required")
        existing = self.filter(name__iexact=name).first()
        if existing:
            return existing, False
        slug = slugify(name, allow_unicode=True)[:blog_settings.SLUG_MAX_LENGTH]
        if not slug:
            raise ValueError("Invalid tag name")
        existing = self.filter(slug=slug).first()
        if existing:
            return existing, False
        return self.create(name=name, slug=slug), True


class Tag(models.Model):
    """Flat label attached to posts."""

    name = models.CharField(max_length=100, unique=True)
    slug = models.SlugField(max_length=100, unique=True, allow_unicode=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TagManager()

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name, allow_unicode=True)[:blog_settings.SLUG_MAX_LENGTH]
        super().save(*args, **kwargs)

    def get_absolute_url(self):
        return reverse("inkpress:tag_detail", kwargs={"slug": self.slug})

    @property
    def post_count(self):
        """Return count of published posts with this tag."""
        return self.posts.filter(published=True).count()


class Post(models.Model):
    """
    Blog post written in markdown.

    Drafts (published=False) are only visible to the owner. Featured
    posts are listed first on the index and shown on the home page.
    """

    title = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, unique=True, blank=True, allow_unicode=True)
    content = models.TextField()
    excerpt = models.TextField(
        blank=True,
        help_text="Optional manual excerpt. Auto-generated if blank.",
    )
    cover_image = models.CharField(max_length=500, blank=True)

    author = models.ForeignKey(
        "inkpress.Account",
        on_delete=models.CASCADE,
        related_name="posts",
    )
    category = models.ForeignKey(
        Category,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="posts",
    )
    tags = models.ManyToManyField(Tag, related_name="posts", blank=True)

    published = models.BooleanField(default=False)
    featured = models.BooleanField(default=False)
    view_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    published_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-featured", "-created_at"]
        indexes = [
            models.Index(fields=["published", "-created_at"]),
            models.Index(fields=["published", "featured"]),
        ]

    def __str__(self):
        return self.title

    def save(self, *args, **kwargs):
        if not self.slug or self.slug in RESERVED_SLUGS:
            base_slug = self.slug or make_slug(self.title, fallback_seed=self.content)
            slug = base_slug
            counter = 1
            while slug in RESERVED_SLUGS or Post.objects.filter(slug=slug).exclude(pk=self.pk).exists():
                slug = f"{base_slug}-{counter}"
                counter += 1
            self.slug = slug

        if not self.created_at:
            self.created_at = timezone.now()

        if self.published and not self.published_at:
            self.published_at = timezone.now()
            update_fields = kwargs.get("update_fields")
            if update_fields is not None and "published_at" not in update_fields:
                kwargs["update_fields"] = list(update_fields) + ["published_at"]

        super().save(*args, **kwargs)

    def get_absolute_url(self):
        return reverse("inkpress:post_detail", kwargs={"slug": self.slug})

    @property
    def preview(self):
        """Return the excerpt, or the truncated content."""
        if self.excerpt:
            return self.excerpt
        limit = blog_settings.PREVIEW_LENGTH
        if len(self.content) > limit:
            return self.content[:limit] + "..."
        return self.content

    @property
    def tag_names(self):
        return [tag.name for tag in self.tags.all()]

    def set_tags(self, names):
        """Replace the post's tags, creating missing ones by name."""
        tags = []
        for name in names:
            if not (name or "").strip():
                continue
            tag, _ = Tag.objects.get_or_create_by_name(name)
            if tag not in tags:
                tags.append(tag)
        self.tags.set(tags)
        return tags

    def publish(self):
        self.published = True
        self.save(update_fields=["published", "updated_at"])

    def unpublish(self):
        self.published = False
        self.save(update_fields=["published", "updated_at"])

    def feature(self):
        self.featured = True
        self.save(update_fields=["featured", "updated_at"])

    def unfeature(self):
        self.featured = False
        self.save(update_fields=["featured", "updated_at"])

    def get_previous(self):
        """Return the published post written just before this one."""
        return (
            Post.objects.filter(published=True, created_at__lt=self.created_at)
            .order_by("-created_at")
            .first()
        )

    def get_next(self):
        """Return the published post written just after this one."""
        return (
            Post.objects.filter(published=True, created_at__gt=self.created_at)
            .order_by("created_at")
            .first()
        )


class PostView(models.Model):
    """
    One row per (post, viewer).

    viewer_id is the account pk, or 0 for every anonymous visitor, so the
    number of rows for a post is its unique viewer count.
    """

    ANONYMOUS_VIEWER = 0

    post = models.ForeignKey(Post, on_delete=models.CASCADE, related_name="views")
    viewer_id = models.BigIntegerField(default=ANONYMOUS_VIEWER)
    view_count = models.PositiveIntegerField(default=1)
    viewed_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-viewed_at"]
        constraints = [
            models.UniqueConstraint(fields=["post", "viewer_id"], name="inkpress_unique_post_viewer"),
        ]

    def __str__(self):
        return f"{self.viewer_id} viewed {self.post} x{self.view_count}"

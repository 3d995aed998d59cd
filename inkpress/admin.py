"""
Django admin configuration for inkpress.
"""
from django.contrib import admin
from django.utils import timezone
from django.utils.html import format_html

from .models import Account, Category, Comment, Image, Post, PostView, Session, Tag


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    list_display = ["display_name", "login", "email", "role", "created_at", "last_login_at"]
    list_filter = ["role", "created_at"]
    search_fields = ["name", "login", "email"]
    readonly_fields = ["github_id", "created_at", "last_login_at"]
    list_editable = ["role"]
    list_display_links = ["display_name"]


@admin.register(Session)
class SessionAdmin(admin.ModelAdmin):
    list_display = ["account", "expires", "created_at", "is_expired"]
    raw_id_fields = ["account"]
    readonly_fields = ["session_token", "created_at"]
    actions = ["purge_expired"]

    @admin.display(boolean=True)
    def is_expired(self, obj):
        return obj.is_expired

    @admin.action(description="Delete all expired sessions")
    def purge_expired(self, request, queryset):
        count = Session.objects.purge_expired()
        self.message_user(request, f"{count} expired sessions deleted.")


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ["name", "slug", "post_count", "created_at"]
    search_fields = ["name", "slug", "description"]
    prepopulated_fields = {"slug": ("name",)}


@admin.register(Tag)
class TagAdmin(admin.ModelAdmin):
    list_display = ["name", "slug", "post_count", "created_at"]
    search_fields = ["name", "slug"]
    prepopulated_fields = {"slug": ("name",)}
    readonly_fields = ["created_at"]


@admin.register(Post)
class PostAdmin(admin.ModelAdmin):
    list_display = [
        "title_preview",
        "author",
        "published",
        "featured",
        "category",
        "view_count",
        "created_at",
    ]
    list_filter = ["published", "featured", "category", "created_at"]
    search_fields = ["title", "content", "author__login"]
    raw_id_fields = ["author", "category"]
    filter_horizontal = ["tags"]
    date_hierarchy = "created_at"
    readonly_fields = ["view_count", "updated_at", "published_at"]
    prepopulated_fields = {"slug": ("title",)}

    fieldsets = (
        (None, {
            "fields": ("title", "slug", "content", "excerpt", "cover_image", "author")
        }),
        ("Taxonomy", {
            "fields": ("category", "tags")
        }),
        ("Status", {
            "fields": ("published", "featured")
        }),
        ("Metadata", {
            "fields": ("view_count", "created_at", "updated_at", "published_at"),
            "classes": ("collapse",),
        }),
    )

    actions = ["publish_posts", "unpublish_posts", "feature_posts", "unfeature_posts"]

    @admin.display(description="Title")
    def title_preview(self, obj):
        return obj.title[:60] + "..." if len(obj.title) > 60 else obj.title

    @admin.action(description="Publish selected posts")
    def publish_posts(self, request, queryset):
        for post in queryset:
            post.publish()
        self.message_user(request, f"{queryset.count()} posts published.")

    @admin.action(description="Unpublish selected posts")
    def unpublish_posts(self, request, queryset):
        queryset.update(published=False)
        self.message_user(request, f"{queryset.count()} posts unpublished.")

    @admin.action(description="Feature selected posts")
    def feature_posts(self, request, queryset):
        queryset.update(featured=True)
        self.message_user(request, f"{queryset.count()} posts featured.")

    @admin.action(description="Unfeature selected posts")
    def unfeature_posts(self, request, queryset):
        queryset.update(featured=False)
        self.message_user(request, f"{queryset.count()} posts unfeatured.")


@admin.register(PostView)
class PostViewAdmin(admin.ModelAdmin):
    list_display = ["post", "viewer_id", "view_count", "viewed_at"]
    raw_id_fields = ["post"]


@admin.register(Comment)
class CommentAdmin(admin.ModelAdmin):
    list_display = [
        "preview",
        "author",
        "post",
        "approved",
        "is_deleted",
        "created_at",
    ]
    list_filter = ["approved", "created_at"]
    search_fields = ["content", "author__login", "post__title"]
    raw_id_fields = ["post", "author", "parent"]
    readonly_fields = ["edited_at", "deleted_at", "created_at", "updated_at"]
    actions = ["approve_comments", "archive_comments"]

    @admin.display(boolean=True)
    def is_deleted(self, obj):
        return obj.is_deleted

    @admin.action(description="Approve selected comments")
    def approve_comments(self, request, queryset):
        queryset.update(approved=True)
        self.message_user(request, f"{queryset.count()} comments approved.")

    @admin.action(description="Archive selected comments")
    def archive_comments(self, request, queryset):
        queryset.update(deleted_at=timezone.now())
        self.message_user(request, f"{queryset.count()} comments archived.")


@admin.register(Image)
class ImageAdmin(admin.ModelAdmin):
    list_display = [
        "thumbnail_preview",
        "original_name",
        "mime_type",
        "human_size",
        "dimensions",
        "uploaded_by",
        "created_at",
    ]
    list_filter = ["mime_type", "created_at"]
    search_fields = ["original_name", "object_key", "md5"]
    readonly_fields = [
        "object_key",
        "md5",
        "size",
        "width",
        "height",
        "mime_type",
        "created_at",
    ]

    def thumbnail_preview(self, obj):
        return format_html(
            '<img src="{}" style="max-width: 50px; max-height: 50px;" />',
            obj.url,
        )

    thumbnail_preview.short_description = "Preview"

    def dimensions(self, obj):
        if obj.width and obj.height:
            return f"{obj.width}x{obj.height}"
        return "-"

    dimensions.short_description = "Size"

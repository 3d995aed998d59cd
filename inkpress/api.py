"""
JSON endpoints for django-inkpress.

Errors are always returned as {"error": "..."} with a matching status.
"""
import base64
import json
import logging

from django.db import IntegrityError, transaction
from django.http import HttpResponse, HttpResponseNotModified, JsonResponse, QueryDict
from django.shortcuts import redirect
from django.utils.decorators import method_decorator
from django.utils.http import http_date, parse_etags
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from . import services
from .auth import api_login_required, api_owner_required
from .conf import blog_settings
from .exceptions import CommentRejected, ImageRejected, InvalidPayload, StorageError
from .forms import parse_tag_names
from .models import Category, Comment, Image, Post, Tag
from .models.posts import RESERVED_SLUGS
from .storage import S3ImageStorage, get_image_storage

logger = logging.getLogger(__name__)

parse_int = services.parse_int


def error(message, status):
    return JsonResponse({"error": message}, status=status)


def read_payload(request):
    """Parse a JSON or form-encoded body (Django only parses POST forms)."""
    content_type = request.content_type or ""
    if content_type == "application/json":
        payload = json.loads(request.body or b"{}")
        if not isinstance(payload, dict):
            raise InvalidPayload("Expected a JSON object")
        return payload
    if request.method == "POST":
        return request.POST
    return QueryDict(request.body)


def text_field(payload, name):
    """Return the stripped string at payload[name]; "" when absent."""
    value = payload.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidPayload(f"{name} must be a string")
    return value.strip()


def parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).lower() in ("1", "true", "yes", "on")


@method_decorator(csrf_exempt, name="dispatch")
class JsonView(View):
    """View answering unsupported methods and bad bodies with JSON errors."""

    def http_method_not_allowed(self, request, *args, **kwargs):
        return error("Method not allowed", 405)

    def dispatch(self, request, *args, **kwargs):
        try:
            return super().dispatch(request, *args, **kwargs)
        except json.JSONDecodeError:
            return error("Invalid JSON format", 400)
        except InvalidPayload as exc:
            return error(exc.message, exc.status)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


class CommentsApiView(JsonView):
    def get(self, request):
        post_id = parse_int(request.GET.get("postId"))
        if post_id is None:
            return error("Post ID is required", 400)

        comments = (
            Comment.objects.filter(post_id=post_id)
            .visible_to(request.account)
            .select_related("author")
            .order_by("created_at")
        )
        return JsonResponse({"comments": [c.to_dict() for c in comments]})

    @method_decorator(api_login_required)
    def post(self, request):
        payload = read_payload(request)
        try:
            comment = services.add_comment(
                payload.get("postId"),
                request.account,
                text_field(payload, "content"),
                parent_id=payload.get("parentId"),
            )
        except CommentRejected as exc:
            return error(exc.message, exc.status)
        return JsonResponse({"comment": comment.to_dict()}, status=201)


class CommentDetailApiView(JsonView):
    @method_decorator(api_login_required)
    def put(self, request, pk):
        payload = read_payload(request)
        content = text_field(payload, "content")
        if not content:
            return error("Missing required fields", 400)

        comment = Comment.objects.select_related("author").filter(pk=pk).first()
        if comment is None:
            return error("Comment not found", 404)
        try:
            services.edit_comment(comment, request.account, content)
        except CommentRejected as exc:
            return error(exc.message, exc.status)
        return JsonResponse({"comment": comment.to_dict()})

    @method_decorator(api_login_required)
    def delete(self, request, pk):
        comment = Comment.objects.filter(pk=pk).first()
        if comment is None:
            return error("Comment not found", 404)

        hard = request.GET.get("mode") == "hard"
        try:
            services.remove_comment(comment, request.account, hard=hard)
        except CommentRejected as exc:
            return error(exc.message, exc.status)
        if hard:
            return JsonResponse({"message": "Comment permanently removed"})
        return JsonResponse({"message": "Comment archived"})


# ---------------------------------------------------------------------------
# Tags and categories
# ---------------------------------------------------------------------------


def tag_dict(tag):
    return {
        "id": tag.pk,
        "name": tag.name,
        "slug": tag.slug,
        "createdAt": tag.created_at.isoformat(),
    }


def category_dict(category):
    return {
        "id": category.pk,
        "name": category.name,
        "slug": category.slug,
        "description": category.description,
        "createdAt": category.created_at.isoformat(),
        "updatedAt": category.updated_at.isoformat(),
    }


class TagsApiView(JsonView):
    def get(self, request):
        tags = Tag.objects.order_by("-created_at")
        search = request.GET.get("search", "").strip()
        if search:
            tags = tags.filter(name__icontains=search)
        return JsonResponse({"tags": [tag_dict(t) for t in tags]})

    @method_decorator(api_owner_required)
    def post(self, request):
        payload = read_payload(request)
        try:
            tag, created = Tag.objects.get_or_create_by_name(text_field(payload, "name"))
        except ValueError as exc:
            return error(str(exc), 400)
        return JsonResponse({"tag": tag_dict(tag)}, status=201 if created else 200)


@method_decorator(api_owner_required, name="post")
@method_decorator(api_owner_required, name="put")
@method_decorator(api_owner_required, name="delete")
class CategoriesApiView(JsonView):
    def get(self, request):
        return JsonResponse({"categories": [category_dict(c) for c in Category.objects.all()]})

    def post(self, request):
        body = read_payload(request)
        name = text_field(body, "name")
        slug = text_field(body, "slug")
        if not name or not slug:
            return error("Name and slug are required", 400)
        if Category.objects.filter(slug=slug).exists():
            return error("Category slug already exists", 400)

        category = Category.objects.create(
            name=name,
            slug=slug,
            description=text_field(body, "description"),
        )
        return JsonResponse(
            {"success": True, "message": "Category created successfully", "category": category_dict(category)}
        )

    def put(self, request):
        body = read_payload(request)
        category_id = body.get("id")
        if not category_id:
            return error("Missing category ID", 400)
        category_id = parse_int(category_id)
        if category_id is None:
            return error("Invalid category ID format", 400)

        category = Category.objects.filter(pk=category_id).first()
        if category is None:
            return error("Category not found", 404)

        name = text_field(body, "name")
        slug = text_field(body, "slug")
        if slug and Category.objects.filter(slug=slug).exclude(pk=category_id).exists():
            return error("Category slug already exists", 400)

        if name:
            category.name = name
        if slug:
            category.slug = slug
        if "description" in body:
            category.description = text_field(body, "description")
        category.save()
        return JsonResponse(
            {"success": True, "message": "Category updated successfully", "category": category_dict(category)}
        )

    def delete(self, request):
        body = read_payload(request)
        category_id = body.get("id")
        if not category_id:
            return error("Missing category ID", 400)
        category_id = parse_int(category_id)
        if category_id is None:
            return error("Invalid category ID format", 400)

        Category.objects.filter(pk=category_id).delete()
        return JsonResponse({"success": True, "message": "Category deleted successfully"})


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


class PostCreateApiView(JsonView):
    """Create posts from scripts: POST a JSON body."""

    def get(self, request):
        return JsonResponse({
            "message": "JSON API for creating posts",
            "method": "POST",
            "requiredFields": ["title", "content"],
            "optionalFields": ["excerpt", "slug", "tags", "category", "published", "featured"],
            "example": {
                "title": "My New Post",
                "content": "Post content here...",
                "excerpt": "Brief description",
                "slug": "my-new-post",
                "tags": "python, django",
                "published": True,
            },
        })

    @method_decorator(api_owner_required)
    def post(self, request):
        if request.content_type != "application/json":
            return error("Expected a JSON body", 400)
        body = read_payload(request)

        title = text_field(body, "title")
        content = body.get("content") or ""
        if not isinstance(content, str):
            raise InvalidPayload("content must be a string")
        if not title or not content.strip():
            return error("Missing required fields", 400)

        slug = text_field(body, "slug")
        if slug in RESERVED_SLUGS:
            return error(f"\"{slug}\" is a reserved slug", 400)
        if slug and Post.objects.filter(slug=slug).exists():
            return error("Slug already exists", 400)

        category = None
        category_slug = text_field(body, "category")
        if category_slug:
            category = Category.objects.filter(slug=category_slug).first()
            if category is None:
                return error("Category not found", 400)

        tags = body.get("tags") or []
        if isinstance(tags, str):
            tags = parse_tag_names(tags)
        elif not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            raise InvalidPayload("tags must be a string or a list of strings")

        try:
            with transaction.atomic():
                post = Post.objects.create(
                    title=title,
                    slug=slug,
                    content=content,
                    excerpt=text_field(body, "excerpt"),
                    cover_image=text_field(body, "coverImage"),
                    author=request.account,
                    category=category,
                    published=parse_bool(body.get("published"), default=True),
                    featured=parse_bool(body.get("featured")),
                )
                post.set_tags(tags)
        except IntegrityError:
            return error("Slug already exists", 400)
        except ValueError as exc:
            return error(str(exc), 400)

        return JsonResponse({
            "success": True,
            "message": "Post created successfully",
            "post": {
                "id": post.pk,
                "title": post.title,
                "slug": post.slug,
                "excerpt": post.excerpt,
                "content": post.content,
                "published": post.published,
                "featured": post.featured,
                "tags": post.tag_names,
                "createdAt": post.created_at.isoformat(),
            },
        }, status=201)


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


class ImagesApiView(JsonView):
    @method_decorator(api_login_required)
    def get(self, request):
        """Duplicate check before uploading: ?md5=<hex>."""
        md5 = request.GET.get("md5", "").strip().lower()
        if not md5:
            return error("Missing MD5 hash", 400)
        image = Image.objects.filter(md5=md5).first()
        if image is None:
            return JsonResponse({"exists": False})
        return JsonResponse({
            "exists": True,
            "objectKey": image.object_key,
            "filename": image.original_name,
            "url": image.url,
        })

    @method_decorator(api_login_required)
    def post(self, request):
        upload = request.FILES.get("file")
        if upload is None:
            return error("Missing file", 400)
        filename = request.POST.get("filename")
        if filename:
            upload.name = filename

        try:
            image, created = Image.objects.get_or_create_from_upload(upload, uploaded_by=request.account)
        except ImageRejected as exc:
            return error(exc.message, exc.status)
        except StorageError as exc:
            logger.error("Image upload failed: %s", exc)
            return error("Failed to upload image", 500)

        return JsonResponse({
            "success": True,
            "created": created,
            "objectKey": image.object_key,
            "url": image.url,
            "image": image.to_dict(),
            "message": "Image uploaded successfully" if created else "Image already exists",
        }, status=201 if created else 200)


class ImageDetailApiView(View):
    """Serve an image by object key with long-lived cache headers."""

    def get(self, request, object_key):
        image = Image.objects.filter(object_key=object_key).first()
        if image is None:
            return HttpResponse("Image not found", status=404, content_type="text/plain")

        storage = get_image_storage()
        if not storage.serves_directly:
            return redirect(storage.url(image))

        etag = f'"{image.md5}"'
        if etag in parse_etags(request.headers.get("If-None-Match", "")):
            response = HttpResponseNotModified()
            response["ETag"] = etag
            return response

        try:
            data = storage.open(image)
        except StorageError:
            return HttpResponse("Image data not found", status=404, content_type="text/plain")

        response = HttpResponse(data, content_type=image.mime_type or "application/octet-stream")
        response["Content-Length"] = str(len(data))
        response["Cache-Control"] = f"public, max-age={blog_settings.IMAGE_CACHE_MAX_AGE}, immutable"
        response["ETag"] = etag
        response["Last-Modified"] = http_date(image.created_at.timestamp())
        return response


class ImagePresignApiView(JsonView):
    """
    Presigned PUT URL for direct-to-bucket uploads (S3 storage only).

    The Image row is reserved here, keyed by the client's MD5, and the
    signed URL pins Content-MD5 so the uploaded bytes must match it. An
    MD5 that is already stored returns the existing key and no URL.
    """

    @method_decorator(api_owner_required)
    def post(self, request):
        storage = get_image_storage()
        if not isinstance(storage, S3ImageStorage):
            return error("Direct uploads require S3 storage", 400)

        payload = read_payload(request)
        md5 = text_field(payload, "md5").lower()
        filename = text_field(payload, "filename")
        content_type = text_field(payload, "contentType")
        if not md5 or not content_type:
            return error("md5 and contentType are required", 400)
        size = payload.get("size")
        if size is not None:
            size = parse_int(size)
            if size is None or size < 0:
                return error("size must be a non-negative integer", 400)

        try:
            image, created = Image.objects.reserve_upload(
                md5, filename, content_type, size=size or 0, uploaded_by=request.account
            )
        except ImageRejected as exc:
            return error(exc.message, exc.status)

        if not created:
            return JsonResponse({"exists": True, "objectKey": image.object_key, "url": image.url})

        content_md5 = base64.b64encode(bytes.fromhex(image.md5)).decode("ascii")
        return JsonResponse({
            "exists": False,
            "objectKey": image.object_key,
            "url": image.url,
            "uploadUrl": storage.presigned_upload_url(image.object_key, content_type, content_md5=content_md5),
            "headers": {"Content-Type": content_type, "Content-MD5": content_md5},
            "expiresIn": blog_settings.S3_URL_EXPIRES,
        }, status=201)

"""
Image model for django-inkpress.

Uploads are content addressed: the object key is the MD5 of the bytes
plus the original extension, so the same file uploaded twice resolves
to the same Image row and is stored once.
"""
import hashlib
import io
import logging
import os
import re

from django.db import IntegrityError, models, transaction
from django.urls import reverse
from PIL import Image as PILImage
from PIL import UnidentifiedImageError

from ..conf import blog_settings
from ..exceptions import ImageRejected

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "jpg"
EXTENSION_RE = re.compile(r"^[a-z0-9]{1,10}$")
MD5_RE = re.compile(r"^[0-9a-f]{32}$")


def object_key_for(md5, filename):
    """Return "<md5>.<ext>"; odd or missing extensions fall back to jpg."""
    ext = os.path.splitext(filename or "")[1].lstrip(".").lower()
    if not EXTENSION_RE.match(ext):
        ext = DEFAULT_EXTENSION
    return f"{md5}.{ext}"


def read_dimensions(data):
    """Return (width, height) for raster images, (None, None) otherwise."""
    try:
        with PILImage.open(io.BytesIO(data)) as img:
            return img.size
    except (UnidentifiedImageError, OSError):
        logger.debug("Could not read image dimensions", exc_info=True)
        return None, None


class ImageManager(models.Manager):
    def get_or_create_from_upload(self, upload, uploaded_by=None):
        """
        Get existing image or store a new one based on its MD5 hash.

        Args:
            upload: Django UploadedFile (anything with chunks(), name,
                content_type and size)
            uploaded_by: Account that uploaded the file

        Returns:
            (Image instance, created boolean)

        Raises:
            ImageRejected: empty file, too large or disallowed type
        """
        from ..storage import get_image_storage

        if not upload.size:
            raise ImageRejected("Empty file")
        if upload.size > blog_settings.IMAGE_MAX_SIZE:
            raise ImageRejected(
                f"File exceeds {blog_settings.IMAGE_MAX_SIZE_MB} MB limit", status=413
            )

        hasher = hashlib.md5()
        buffer = io.BytesIO()
        for chunk in upload.chunks():
            hasher.update(chunk)
            buffer.write(chunk)
        md5 = hasher.hexdigest()

        existing = self.filter(md5=md5).first()
        if existing:
            return existing, False

        mime_type = (getattr(upload, "content_type", "") or "").split(";")[0].strip()
        if mime_type not in blog_settings.ALLOWED_IMAGE_TYPES:
            raise ImageRejected(f"Unsupported image type: {mime_type or 'unknown'}", status=415)

        data = buffer.getvalue()
        width, height = read_dimensions(data)
        image = self.model(
            object_key=object_key_for(md5, upload.name),
            md5=md5,
            original_name=os.path.basename(upload.name or "")[:255],
            mime_type=mime_type,
            size=len(data),
            width=width,
            height=height,
            uploaded_by=uploaded_by,
        )
        storage = get_image_storage()
        with transaction.atomic():
            storage.save(image, data)
            image.save(force_insert=True)
        logger.info("Stored image %s (%d bytes) via %s", image.object_key, image.size, storage.name)
        return image, True

    def reserve_upload(self, md5, filename, mime_type, size=0, uploaded_by=None):
        """
        Get the image with this MD5 or record one the client will upload
        itself. Reserved rows carry no data; the bucket holds the bytes.
        """
        md5 = (md5 or "").strip().lower()
        if not MD5_RE.match(md5):
            raise ImageRejected("md5 must be 32 hexadecimal characters")
        if mime_type not in blog_settings.ALLOWED_IMAGE_TYPES:
            raise ImageRejected(f"Unsupported image type: {mime_type or 'unknown'}", status=415)
        if size > blog_settings.IMAGE_MAX_SIZE:
            raise ImageRejected(
                f"File exceeds {blog_settings.IMAGE_MAX_SIZE_MB} MB limit", status=413
            )

        existing = self.filter(md5=md5).first()
        if existing:
            return existing, False
        try:
            with transaction.atomic():
                image = self.create(
                    object_key=object_key_for(md5, filename),
                    md5=md5,
                    original_name=os.path.basename(filename or "")[:255],
                    mime_type=mime_type,
                    size=size,
                    uploaded_by=uploaded_by,
                )
        except IntegrityError:
            return self.get(md5=md5), False
        logger.info("Reserved image %s for direct upload", image.object_key)
        return image, True


class Image(models.Model):
    """Uploaded image referenced from post markdown by its object key."""

    object_key = models.CharField(max_length=100, primary_key=True)
    md5 = models.CharField(
        max_length=32,
        unique=True,
        help_text="MD5 of file content for deduplication",
    )
    original_name = models.CharField(max_length=255)
    mime_type = models.CharField(max_length=100)
    size = models.PositiveIntegerField(default=0, help_text="File size in bytes")
    width = models.PositiveIntegerField(null=True, blank=True)
    height = models.PositiveIntegerField(null=True, blank=True)
    data = models.BinaryField(null=True, blank=True, editable=False)
    uploaded_by = models.ForeignKey(
        "inkpress.Account",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="images",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = ImageManager()

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.original_name} ({self.object_key})"

    @property
    def url(self):
        """App URL serving the image; S3 storage redirects from here."""
        return reverse("inkpress:api_image_detail", kwargs={"object_key": self.object_key})

    @property
    def human_size(self):
        size = self.size
        for unit in ["B", "KB", "MB", "GB"]:
            if size < 1024:
                return f"{size:.1f} {unit}"
            size /= 1024
        return f"{size:.1f} TB"

    def to_dict(self):
        return {
            "objectKey": self.object_key,
            "md5": self.md5,
            "filename": self.original_name,
            "mimeType": self.mime_type,
            "size": self.size,
            "width": self.width,
            "height": self.height,
            "url": self.url,
        }

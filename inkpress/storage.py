"""
Image storage backends.

The database backend keeps bytes in Image.data and the app serves them.
The S3 backend writes to any S3-compatible bucket (AWS, R2, MinIO) and
serves through short-lived presigned URLs.
"""
import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .conf import blog_settings
from .exceptions import StorageError

logger = logging.getLogger(__name__)


class DatabaseImageStorage:
    name = "database"
    serves_directly = True

    def save(self, image, data):
        image.data = data

    def open(self, image):
        if image.data is None:
            raise StorageError(f"No data stored for {image.object_key}", status=404)
        return bytes(image.data)

    def url(self, image):
        return image.url

    def delete(self, image):
        image.data = None


class S3ImageStorage:
    name = "s3"
    serves_directly = False

    def __init__(self, client=None):
        self.bucket = blog_settings.S3_BUCKET
        if not self.bucket:
            raise StorageError("S3_BUCKET is not configured")
        self.prefix = blog_settings.S3_KEY_PREFIX
        self.expires = blog_settings.S3_URL_EXPIRES
        self.client = client or boto3.client(
            "s3",
            endpoint_url=blog_settings.S3_ENDPOINT_URL or None,
            region_name=blog_settings.S3_REGION,
            aws_access_key_id=blog_settings.S3_ACCESS_KEY_ID or None,
            aws_secret_access_key=blog_settings.S3_SECRET_ACCESS_KEY or None,
        )

    def key_for(self, object_key):
        return f"{self.prefix}{object_key}"

    def save(self, image, data):
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=self.key_for(image.object_key),
                Body=data,
                ContentType=image.mime_type,
                CacheControl=f"public, max-age={blog_settings.IMAGE_CACHE_MAX_AGE}, immutable",
                Metadata={"md5": image.md5, "original-name": image.original_name},
            )
        except (BotoCoreError, ClientError) as exc:
            logger.exception("S3 upload failed for %s", image.object_key)
            raise StorageError(f"Failed to upload image: {exc}") from exc

    def open(self, image):
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=self.key_for(image.object_key))
            return response["Body"].read()
        except (BotoCoreError, ClientError) as exc:
            logger.exception("S3 download failed for %s", image.object_key)
            raise StorageError(f"Failed to read image: {exc}") from exc

    def url(self, image):
        return self.client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": self.key_for(image.object_key)},
            ExpiresIn=self.expires,
        )

    def presigned_upload_url(self, object_key, content_type, content_md5=None):
        """
        Signed PUT URL so a browser can upload straight to the bucket.

        With content_md5 (base64 digest) the upload must send a matching
        Content-MD5 header, so the bytes have to hash to the reserved key.
        """
        params = {
            "Bucket": self.bucket,
            "Key": self.key_for(object_key),
            "ContentType": content_type,
        }
        if content_md5:
            params["ContentMD5"] = content_md5
        return self.client.generate_presigned_url(
            "put_object",
            Params=params,
            ExpiresIn=self.expires,
        )

    def delete(self, image):
        try:
            self.client.delete_object(Bucket=self.bucket, Key=self.key_for(image.object_key))
        except (BotoCoreError, ClientError) as exc:
            logger.exception("S3 delete failed for %s", image.object_key)
            raise StorageError(f"Failed to delete image: {exc}") from exc


BACKENDS = {
    DatabaseImageStorage.name: DatabaseImageStorage,
    S3ImageStorage.name: S3ImageStorage,
}


def get_image_storage():
    """Return the backend selected by the IMAGE_STORAGE setting."""
    backend = blog_settings.IMAGE_STORAGE
    try:
        return BACKENDS[backend]()
    except KeyError:
        raise StorageError(f"Unknown IMAGE_STORAGE backend: {backend}") from None

"""
Exceptions raised by inkpress services.

Views translate these into JSON error responses or redirects.
"""


class InkpressError(Exception):
    """Base class for inkpress errors."""

    status = 500

    def __init__(self, message="", status=None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status


class OAuthError(InkpressError):
    """GitHub token exchange or profile lookup failed."""

    status = 401

    def __init__(self, message="", code="authentication_failed", status=None):
        super().__init__(message, status)
        self.code = code


class ImageRejected(InkpressError):
    """Uploaded file is empty, too large or of a disallowed type."""

    status = 400


class StorageError(InkpressError):
    """Image storage backend failed."""


class InvalidPayload(InkpressError):
    """Request body is not an object or a field has the wrong type."""

    status = 400


class CommentRejected(InkpressError):
    """A comment could not be created or changed."""

    status = 400

    def __init__(self, message="", code="invalid", status=None):
        super().__init__(message, status)
        self.code = code

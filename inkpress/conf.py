"""
Configuration settings for django-inkpress.

Override these in your Django settings.py:

    INKPRESS = {
        'GITHUB_CLIENT_ID': '...',
        'GITHUB_CLIENT_SECRET': '...',
        'OWNER_GITHUB_LOGINS': ['octocat'],
        'IMAGE_STORAGE': 'database',
        ...
    }

Image bytes live in the database by default. To keep them in an
S3-compatible bucket instead:

    INKPRESS = {
        'IMAGE_STORAGE': 's3',
        'S3_BUCKET': 'blog-images',
        'S3_ENDPOINT_URL': 'https://<account>.r2.cloudflarestorage.com',
        'S3_ACCESS_KEY_ID': '...',
        'S3_SECRET_ACCESS_KEY': '...',
    }
"""
from django.conf import settings

DEFAULTS = {
    # GitHub OAuth
    "GITHUB_CLIENT_ID": "",
    "GITHUB_CLIENT_SECRET": "",
    "GITHUB_SCOPE": "read:user user:email",
    "GITHUB_AUTHORIZE_URL": "https://github.com/login/oauth/authorize",
    "GITHUB_TOKEN_URL": "https://github.com/login/oauth/access_token",
    "GITHUB_API_URL": "https://api.github.com",
    "GITHUB_TIMEOUT": 10,

    # Accounts matching these become the owner on sign-in
    "OWNER_GITHUB_LOGINS": [],
    "OWNER_EMAILS": [],

    # Sessions
    "SESSION_COOKIE_NAME": "session",
    "SESSION_MAX_AGE": 60 * 60 * 24 * 30,
    "SESSION_COOKIE_SECURE": None,  # None = follow request.is_secure()
    "OAUTH_STATE_COOKIE_NAME": "oauth_state",

    # Posts
    "POSTS_PER_PAGE": 10,
    "ADMIN_POSTS_PER_PAGE": 20,
    "FEATURED_POSTS_LIMIT": 4,
    "RECENT_POSTS_LIMIT": 6,
    "SLUG_MAX_LENGTH": 100,
    "ABOUT_SLUG": "about",
    "PREVIEW_LENGTH": 280,

    # Comments
    "COMMENT_MAX_LENGTH": 5000,
    "MODERATE_COMMENTS": False,
    "COMMENT_EDIT_WINDOW_MINUTES": 15,

    # Images
    "IMAGE_STORAGE": "database",
    "IMAGE_MAX_SIZE_MB": 10,
    "ALLOWED_IMAGE_TYPES": [
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/svg+xml",
    ],
    "IMAGE_CACHE_MAX_AGE": 31536000,

    # S3-compatible storage
    "S3_BUCKET": "",
    "S3_ENDPOINT_URL": "",
    "S3_REGION": "auto",
    "S3_ACCESS_KEY_ID": "",
    "S3_SECRET_ACCESS_KEY": "",
    "S3_KEY_PREFIX": "images/",
    "S3_URL_EXPIRES": 3600,

    # Markdown
    "MARKDOWN_EXTENSIONS": ["extra", "sane_lists", "toc"],
}


class InkpressSettings:
    """
    Lazy settings object that reads from Django settings.

    Access via: from inkpress.conf import blog_settings
    """

    def __getattr__(self, name):
        if name not in DEFAULTS:
            raise AttributeError(f"Invalid inkpress setting: {name}")

        user_settings = getattr(settings, "INKPRESS", {})
        return user_settings.get(name, DEFAULTS[name])

    @property
    def IMAGE_MAX_SIZE(self):
        """Maximum upload size in bytes."""
        return int(self.IMAGE_MAX_SIZE_MB * 1024 * 1024)


blog_settings = InkpressSettings()

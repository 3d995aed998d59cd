"""
django-inkpress - A single-owner Django blog.

Features:
- GitHub OAuth sign-in with opaque session tokens
- Markdown posts with tags, categories and featured flags
- Threaded comments with owner moderation
- Content-addressed image uploads with MD5 deduplication
- Per-viewer view tracking
- Owner dashboard
"""

__version__ = "0.1.0"

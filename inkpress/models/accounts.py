"""
Account and Session models for django-inkpress.

Accounts are created from GitHub profiles. A Session is an opaque token
stored in a cookie; it maps to one account until it expires.
"""
import secrets
from datetime import timedelta

from django.db import models
from django.utils import timezone


class Account(models.Model):
    """
    A person who signed in with GitHub.

    The blog has a single owner with admin and moderation rights.
    Everyone else is a reader.
    """

    ROLE_OWNER = "owner"
    ROLE_READER = "reader"
    ROLE_CHOICES = [
        (ROLE_OWNER, "Owner"),
        (ROLE_READER, "Reader"),
    ]

    github_id = models.BigIntegerField(unique=True, null=True, blank=True)
    login = models.CharField(max_length=100, blank=True)
    name = models.CharField(max_length=255, blank=True)
    email = models.EmailField()
    email_verified = models.DateTimeField(null=True, blank=True)
    image = models.URLField(max_length=500, blank=True)
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_READER)
    created_at = models.DateTimeField(auto_now_add=True)
    last_login_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["created_at"]

    def __str__(self):
        return self.display_name

    @property
    def display_name(self):
        return self.name or self.login or self.email

    @property
    def is_owner(self):
        return self.role == self.ROLE_OWNER

    @property
    def is_authenticated(self):
        return True

    @property
    def is_anonymous(self):
        return False


class AnonymousAccount:
    """Stand-in for request.account when nobody is signed in."""

    pk = None
    id = None
    role = None
    is_owner = False
    is_authenticated = False
    is_anonymous = True
    display_name = "Anonymous"

    def __str__(self):
        return self.display_name

    def __eq__(self, other):
        return isinstance(other, self.__class__)

    def __hash__(self):
        return 1


class SessionManager(models.Manager):
    def create_for(self, account, max_age):
        """Open a new session for account valid for max_age seconds."""
        return self.create(
            session_token=secrets.token_urlsafe(32),
            account=account,
            expires=timezone.now() + timedelta(seconds=max_age),
        )

    def purge_expired(self):
        """Delete expired sessions; returns the number removed."""
        deleted, _ = self.filter(expires__lte=timezone.now()).delete()
        return deleted


class Session(models.Model):
    """Opaque session token mapping to an account."""

    session_token = models.CharField(max_length=64, primary_key=True)
    account = models.ForeignKey(
        Account,
        on_delete=models.CASCADE,
        related_name="sessions",
    )
    expires = models.DateTimeField(db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = SessionManager()

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Session for {self.account} until {self.expires:%Y-%m-%d %H:%M}"

    @property
    def is_expired(self):
        return self.expires <= timezone.now()

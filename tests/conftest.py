"""
Shared fixtures for django-inkpress tests.
"""
import pytest
from django.test import Client

from inkpress.models import Account, Post, Session


def client_for(account):
    """Return a test client carrying a live session cookie for account."""
    client = Client()
    session = Session.objects.create_for(account, 3600)
    client.cookies["session"] = session.session_token
    return client


@pytest.fixture
def owner(db):
    return Account.objects.create(
        github_id=1,
        login="blog-owner",
        name="Blog Owner",
        email="owner@example.com",
        role=Account.ROLE_OWNER,
    )


@pytest.fixture
def reader(db):
    return Account.objects.create(
        github_id=2,
        login="reader",
        name="Reader",
        email="reader@example.com",
    )


@pytest.fixture
def owner_client(owner):
    return client_for(owner)


@pytest.fixture
def reader_client(reader):
    return client_for(reader)


@pytest.fixture
def post(db, owner):
    return Post.objects.create(
        title="Hello World",
        content="# Hello\n\nThis is the **first** post.",
        author=owner,
        published=True,
    )


@pytest.fixture
def draft(db, owner):
    return Post.objects.create(
        title="Work in progress",
        content="Not ready yet.",
        author=owner,
    )

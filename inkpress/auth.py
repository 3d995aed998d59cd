"""
GitHub OAuth sign-in and cookie sessions for django-inkpress.

Flow:
    1. /auth/signin/github/ redirects to GitHub with a random state
       remembered in a short-lived cookie.
    2. GitHub redirects back to /auth/callback/?code=...&state=...
    3. The code is exchanged for an access token, the profile is read and
       an Account is created or updated.
    4. A Session row is created and its token set as an HttpOnly cookie.

Requests may also authenticate with ``Authorization: Bearer <token>``.
"""
import logging
from functools import wraps
from urllib.parse import urlencode

import requests
from django.http import JsonResponse
from django.shortcuts import redirect
from django.urls import reverse
from django.utils import timezone
from django.utils.functional import SimpleLazyObject

from .conf import blog_settings
from .exceptions import OAuthError
from .models import Account, AnonymousAccount, Session

logger = logging.getLogger(__name__)


def github_authorize_url(redirect_uri, state):
    params = {
        "client_id": blog_settings.GITHUB_CLIENT_ID,
        "redirect_uri": redirect_uri,
        "scope": blog_settings.GITHUB_SCOPE,
        "state": state,
        "allow_signup": "true",
    }
    return f"{blog_settings.GITHUB_AUTHORIZE_URL}?{urlencode(params)}"


def exchange_code(code, redirect_uri=None):
    """Trade an OAuth code for a GitHub access token."""
    payload = {
        "client_id": blog_settings.GITHUB_CLIENT_ID,
        "client_secret": blog_settings.GITHUB_CLIENT_SECRET,
        "code": code,
    }
    if redirect_uri:
        payload["redirect_uri"] = redirect_uri
    try:
        response = requests.post(
            blog_settings.GITHUB_TOKEN_URL,
            data=payload,
            headers={"Accept": "application/json"},
            timeout=blog_settings.GITHUB_TIMEOUT,
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("GitHub token exchange failed: %s", exc)
        raise OAuthError("Token exchange failed", code="token_exchange_failed") from exc

    token = data.get("access_token")
    if not token:
        error = data.get("error", "no_access_token")
        logger.warning("GitHub refused code: %s %s", error, data.get("error_description", ""))
        raise OAuthError(data.get("error_description") or error, code=error)
    return token


def _github_get(path, token):
    response = requests.get(
        f"{blog_settings.GITHUB_API_URL}{path}",
        headers={
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
        },
        timeout=blog_settings.GITHUB_TIMEOUT,
    )
    response.raise_for_status()
    return response.json()


def fetch_github_profile(token):
    """
    Return the GitHub profile for token.

    When the public profile hides the email, the primary verified address
    from /user/emails is used instead.
    """
    try:
        profile = _github_get("/user", token)
        email = profile.get("email")
        verified = bool(email)
        if not email:
            emails = _github_get("/user/emails", token)
            primary = next(
                (e for e in emails if e.get("primary") and e.get("verified")),
                None,
            )
            if primary is None:
                primary = next((e for e in emails if e.get("verified")), None)
            if primary is not None:
                email = primary["email"]
                verified = True
    except (requests.RequestException, ValueError) as exc:
        logger.warning("GitHub profile lookup failed: %s", exc)
        raise OAuthError("Could not read GitHub profile", code="profile_failed") from exc

    if not email:
        raise OAuthError("GitHub account has no verified email", code="no_email")

    return {
        "github_id": profile["id"],
        "login": profile.get("login", ""),
        "name": profile.get("name") or profile.get("login", ""),
        "email": email,
        "email_verified": verified,
        "image": profile.get("avatar_url") or "",
    }


def is_owner_identity(login, email):
    logins = {l.lower() for l in blog_settings.OWNER_GITHUB_LOGINS}
    emails = {e.lower() for e in blog_settings.OWNER_EMAILS}
    return (login or "").lower() in logins or (email or "").lower() in emails


def upsert_account(profile):
    """Create or refresh the Account for a GitHub profile."""
    account = Account.objects.filter(github_id=profile["github_id"]).first()
    if account is None:
        account = Account.objects.filter(github_id__isnull=True, email__iexact=profile["email"]).first()
    if account is None:
        account = Account(github_id=profile["github_id"])

    account.github_id = profile["github_id"]
    account.login = profile["login"]
    account.name = profile["name"]
    account.email = profile["email"]
    account.image = profile["image"]
    if profile["email_verified"] and not account.email_verified:
        account.email_verified = timezone.now()
    if is_owner_identity(account.login, account.email):
        account.role = Account.ROLE_OWNER
    account.last_login_at = timezone.now()
    account.save()
    return account


def authenticate_with_github(code, redirect_uri=None):
    """Run the whole code -> Session exchange. Raises OAuthError."""
    token = exchange_code(code, redirect_uri)
    profile = fetch_github_profile(token)
    account = upsert_account(profile)
    session = Session.objects.create_for(account, blog_settings.SESSION_MAX_AGE)
    logger.info("Signed in %s (%s)", account.login, account.role)
    return session


def get_session_token(request):
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip() or None
    return request.COOKIES.get(blog_settings.SESSION_COOKIE_NAME) or None


def get_current_account(request):
    """Return the signed-in Account or an AnonymousAccount."""
    token = get_session_token(request)
    if not token:
        return AnonymousAccount()
    session = Session.objects.select_related("account").filter(session_token=token).first()
    if session is None:
        return AnonymousAccount()
    if session.is_expired:
        session.delete()
        return AnonymousAccount()
    return session.account


def delete_session(token):
    deleted, _ = Session.objects.filter(session_token=token).delete()
    return bool(deleted)


def _cookie_secure(request):
    secure = blog_settings.SESSION_COOKIE_SECURE
    if secure is None:
        return request.is_secure()
    return bool(secure)


def set_session_cookie(response, session, request):
    response.set_cookie(
        blog_settings.SESSION_COOKIE_NAME,
        session.session_token,
        max_age=blog_settings.SESSION_MAX_AGE,
        path="/",
        httponly=True,
        samesite="Lax",
        secure=_cookie_secure(request),
    )
    return response


def clear_session_cookie(response):
    response.delete_cookie(blog_settings.SESSION_COOKIE_NAME, path="/", samesite="Lax")
    return response


class SessionAuthenticationMiddleware:
    """Attach request.account, resolved lazily from the session token."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.account = SimpleLazyObject(lambda: get_current_account(request))
        return self.get_response(request)


def _account(request):
    account = getattr(request, "account", None)
    if account is None:
        account = get_current_account(request)
        request.account = account
    return account


def owner_required(view_func):
    """Page guard: anonymous -> sign-in page, readers -> home."""

    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        account = _account(request)
        if not account.is_authenticated:
            return redirect(f"{reverse('inkpress:signin')}?{urlencode({'next': request.get_full_path()})}")
        if not account.is_owner:
            return redirect("inkpress:home")
        return view_func(request, *args, **kwargs)

    return wrapper


def api_login_required(view_func):
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not _account(request).is_authenticated:
            return JsonResponse({"error": "Authentication required"}, status=401)
        return view_func(request, *args, **kwargs)

    return wrapper


def api_owner_required(view_func):
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        account = _account(request)
        if not account.is_authenticated:
            return JsonResponse({"error": "Authentication required"}, status=401)
        if not account.is_owner:
            return JsonResponse({"error": "Admin access required"}, status=403)
        return view_func(request, *args, **kwargs)

    return wrapper

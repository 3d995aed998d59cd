"""Template context shared by every inkpress page."""
from .auth import get_current_account
from .models import Category


def inkpress(request):
    account = getattr(request, "account", None)
    if account is None:
        account = get_current_account(request)
    return {
        "account": account,
        "nav_categories": Category.objects.all(),
    }

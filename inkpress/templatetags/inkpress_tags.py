"""Template helpers for inkpress templates."""
import markdown as markdown_lib
from django import template
from django.utils.safestring import mark_safe

from ..conf import blog_settings

register = template.Library()


def render_markdown(text):
    """Render owner-written markdown to HTML."""
    renderer = markdown_lib.Markdown(extensions=blog_settings.MARKDOWN_EXTENSIONS)
    return renderer.convert(text or "")


@register.filter(name="markdown")
def markdown_filter(text):
    return mark_safe(render_markdown(text))


@register.filter
def can_edit(comment, account):
    return comment.can_edit(account)


@register.inclusion_tag("inkpress/_comment.html", takes_context=True)
def render_comment(context, comment):
    return {
        "comment": comment,
        "account": context.get("account"),
        "post": context.get("post"),
    }


@register.simple_tag(takes_context=True)
def page_query(context, page, **extra):
    """Rebuild the current query string with a different page number."""
    request = context["request"]
    params = request.GET.copy()
    params["page"] = page
    for key, value in extra.items():
        params[key] = value
    return params.urlencode()

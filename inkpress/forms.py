"""
Forms for django-inkpress.
"""
from django import forms

from .models import Category, Post, Tag
from .models.posts import RESERVED_SLUGS


def parse_tag_names(value):
    """Split "a, b,,c " into ["a", "b", "c"], dropping duplicates."""
    names = []
    seen = set()
    for raw in (value or "").split(","):
        name = raw.strip()
        if name and name.lower() not in seen:
            seen.add(name.lower())
            names.append(name)
    return names


class PostForm(forms.ModelForm):
    """Owner's post editor. Tags are typed as comma-separated names."""

    tags_input = forms.CharField(
        label="Tags",
        required=False,
        help_text="Comma-separated",
    )

    class Meta:
        model = Post
        fields = [
            "title",
            "slug",
            "content",
            "excerpt",
            "cover_image",
            "category",
            "published",
            "featured",
        ]
        widgets = {
            "content": forms.Textarea(attrs={"rows": 24}),
            "excerpt": forms.Textarea(attrs={"rows": 3}),
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["slug"].required = False
        self.fields["category"].required = False
        if self.instance.pk:
            self.fields["tags_input"].initial = ", ".join(self.instance.tag_names)

    def clean_slug(self):
        slug = self.cleaned_data.get("slug", "").strip()
        if slug in RESERVED_SLUGS:
            raise forms.ValidationError(f"\"{slug}\" is reserved")
        if slug and Post.objects.filter(slug=slug).exclude(pk=self.instance.pk).exists():
            raise forms.ValidationError("Slug already exists")
        return slug

    def clean_tags_input(self):
        return parse_tag_names(self.cleaned_data.get("tags_input"))

    def save(self, commit=True):
        post = super().save(commit=commit)
        if commit:
            post.set_tags(self.cleaned_data["tags_input"])
        return post


class CategoryForm(forms.ModelForm):
    class Meta:
        model = Category
        fields = ["name", "slug", "description"]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["slug"].required = False


class TagForm(forms.Form):
    name = forms.CharField(max_length=100)

    def save(self):
        """Return (tag, created); raises ValueError for unusable names."""
        return Tag.objects.get_or_create_by_name(self.cleaned_data["name"])

"""
URL configuration for django-inkpress.

Include in your project urls.py:

    path('', include('inkpress.urls')),
"""
from django.urls import path

from . import api, views

app_name = "inkpress"

urlpatterns = [
    # Public pages
    path("", views.HomeView.as_view(), name="home"),
    path("posts/", views.PostListView.as_view(), name="post_list"),
    path("posts/new/", views.PostCreateView.as_view(), name="post_create"),
    path("posts/<str:slug>/", views.PostDetailView.as_view(), name="post_detail"),
    path("posts/<str:slug>/edit/", views.PostUpdateView.as_view(), name="post_update"),
    path("posts/<str:slug>/comments/", views.PostCommentView.as_view(), name="post_comment"),
    path("comments/<int:pk>/edit/", views.CommentEditView.as_view(), name="comment_edit"),
    path("comments/<int:pk>/delete/", views.CommentDeleteView.as_view(), name="comment_delete"),
    path("about/", views.AboutView.as_view(), name="about"),
    path("tags/", views.TagListView.as_view(), name="tag_list"),
    path("tag/<str:slug>/", views.TagPostListView.as_view(), name="tag_detail"),
    path("category/<str:slug>/", views.CategoryPostListView.as_view(), name="category_detail"),
    path("search/", views.SearchView.as_view(), name="search"),

    # Sign-in
    path("auth/signin/", views.SignInView.as_view(), name="signin"),
    path("auth/signin/github/", views.GitHubSignInView.as_view(), name="signin_github"),
    path("auth/callback/", views.OAuthCallbackView.as_view(), name="auth_callback"),
    path("auth/signout/", views.SignOutView.as_view(), name="signout"),
    path("auth/error/", views.AuthErrorView.as_view(), name="auth_error"),

    # Owner dashboard
    path("admin/", views.DashboardView.as_view(), name="admin_dashboard"),
    path("admin/posts/", views.AdminPostsView.as_view(), name="admin_posts"),
    path("admin/comments/", views.AdminCommentsView.as_view(), name="admin_comments"),
    path("admin/tags/", views.AdminTagsView.as_view(), name="admin_tags"),
    path("admin/categories/", views.AdminCategoriesView.as_view(), name="admin_categories"),

    # JSON API
    path("api/comments", api.CommentsApiView.as_view(), name="api_comments"),
    path("api/comments/<int:pk>", api.CommentDetailApiView.as_view(), name="api_comment_detail"),
    path("api/tags", api.TagsApiView.as_view(), name="api_tags"),
    path("api/categories", api.CategoriesApiView.as_view(), name="api_categories"),
    path("api/posts/create", api.PostCreateApiView.as_view(), name="api_post_create"),
    path("api/images", api.ImagesApiView.as_view(), name="api_images"),
    path("api/images/presign", api.ImagePresignApiView.as_view(), name="api_image_presign"),
    path("api/images/<str:object_key>", api.ImageDetailApiView.as_view(), name="api_image_detail"),
]

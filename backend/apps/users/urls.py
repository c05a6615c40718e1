"""
URL routing for user endpoints.
"""

from django.urls import path
from apps.users import views

app_name = "users"

urlpatterns = [
    path("me", views.get_current_user, name="current-user"),
    path("<uuid:userId>", views.get_user, name="get-user"),
    path("", views.list_or_create_users, name="list-or-create-users"),
]

"""
URL routing for authentication endpoints.
"""

from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView
from apps.auth import views

app_name = "auth"

urlpatterns = [
    path("login", views.login, name="login"),
    path("logout", views.logout, name="logout"),
    path("refresh", TokenRefreshView.as_view(), name="refresh"),
]

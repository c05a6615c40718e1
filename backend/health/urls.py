from django.urls import path

from health.views import LiveView, ReadyView, health_check

app_name = "health"

urlpatterns = [
    path("", health_check, name="health"),
    path("live/", LiveView.as_view(), name="live"),
    path("ready/", ReadyView.as_view(), name="ready"),
]

"""
URL routing for work item endpoints.
"""

from django.urls import path
from apps.work import views

app_name = "work"

urlpatterns = [
    path("work-items", views.list_or_create_work_items, name="list-or-create-work-items"),
    path(
        "work-items/<uuid:workItemId>",
        views.get_or_update_work_item,
        name="get-or-update-work-item",
    ),
    # Business transitions
    path(
        "work-items/<uuid:workItemId>/publish",
        views.publish_work_item,
        name="publish-work-item",
    ),
    path(
        "work-items/<uuid:workItemId>/assign",
        views.assign_work_item,
        name="assign-work-item",
    ),
    path(
        "work-items/<uuid:workItemId>/cancel",
        views.cancel_work_item,
        name="cancel-work-item",
    ),
    path(
        "work-items/<uuid:workItemId>/approve",
        views.approve_work_item,
        name="approve-work-item",
    ),
    path(
        "work-items/<uuid:workItemId>/reject",
        views.reject_work_item,
        name="reject-work-item",
    ),
    # Contractor transitions
    path(
        "work-items/<uuid:workItemId>/accept",
        views.accept_work_item,
        name="accept-work-item",
    ),
    path(
        "work-items/<uuid:workItemId>/decline",
        views.decline_work_item,
        name="decline-work-item",
    ),
    path(
        "work-items/<uuid:workItemId>/submissions",
        views.list_or_create_submissions,
        name="list-or-create-submissions",
    ),
    path(
        "work-items/<uuid:workItemId>/artifacts",
        views.upload_or_download_artifact,
        name="upload-or-download-artifact",
    ),
]

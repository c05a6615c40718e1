from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/health/", include("health.urls")),
    # API v1 base path: /api/v1
    path("api/v1/auth/", include("apps.auth.urls")),
    path("api/v1/users/", include("apps.users.urls")),
    path("api/v1/audit/", include("apps.audit.urls")),
    path("api/v1/directory/", include("apps.directory.urls")),
    # Work items, payments and ledger endpoints are defined directly under
    # /api/v1 (e.g. /api/v1/work-items, /api/v1/payments, /api/v1/ledger/summary)
    path("api/v1/", include("apps.work.urls")),
    path("api/v1/", include("apps.payments.urls")),
    path("api/v1/", include("apps.ledger.urls")),
]

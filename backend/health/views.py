from django.apps import apps
from django.core.cache import caches
from django.db import DatabaseError, connection
from django.db.migrations.executor import MigrationExecutor
from django.http import JsonResponse
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

ARCHITECTURE_VERSION = "v1.0.0"


def health_check(request):
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except DatabaseError:
        return JsonResponse(
            {
                "status": "unhealthy",
                "database": "disconnected",
                "architecture_version": ARCHITECTURE_VERSION,
            },
            status=503,
        )
    return JsonResponse(
        {
            "status": "ok",
            "database": "connected",
            "architecture_version": ARCHITECTURE_VERSION,
        },
        status=200,
    )


class LiveView(APIView):
    """Liveness probe: process is running. No DB or external deps."""

    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        return Response({"status": "alive"})


class ReadyView(APIView):
    """Readiness probe: DB, cache, migrations, idempotency and payment tables."""

    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        return self._run_checks()

    def _run_checks(self):

        checks = {}

        # DB check
        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1;")
            checks["database"] = "ok"
        except DatabaseError:
            checks["database"] = "error"

        # Migration consistency check
        try:
            executor = MigrationExecutor(connection)
            plan = executor.migration_plan(executor.loader.graph.leaf_nodes())
            checks["migrations"] = "ok" if not plan else "pending"
        except DatabaseError:
            checks["migrations"] = "error"

        # Cache check
        cache = caches["default"]
        cache.set("health_check", "ok", timeout=5)
        checks["cache"] = "ok" if cache.get("health_check") == "ok" else "error"

        for label, model_name in (
            ("idempotency_table", "IdempotencyKey"),
            ("payments_table", "Payment"),
        ):
            try:
                apps.get_model("payments", model_name).objects.exists()
                checks[label] = "ok"
            except DatabaseError:
                checks[label] = "error"

        overall = "ready" if all(v == "ok" for v in checks.values()) else "not_ready"
        http_status = 200 if overall == "ready" else 503

        return Response({"status": overall, "checks": checks}, status=http_status)

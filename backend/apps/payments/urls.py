"""
URL routing for payment endpoints.
"""

from django.urls import path
from apps.payments import views

app_name = "payments"

urlpatterns = [
    path("payments/direct", views.create_direct_payment, name="create-direct-payment"),
    path("payments/reconcile", views.reconcile_payments, name="reconcile-payments"),
    path("payments/webhook", views.processor_webhook, name="processor-webhook"),
    path(
        "payments/<uuid:paymentId>/retry", views.retry_payment, name="retry-payment"
    ),
]

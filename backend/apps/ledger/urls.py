"""
URL routing for ledger endpoints.
"""

from django.urls import path
from apps.ledger import views

app_name = "ledger"

urlpatterns = [
    # Payments (read side)
    path("payments", views.list_payments, name="list-payments"),
    path("payments/<uuid:paymentId>", views.get_payment, name="get-payment"),
    # Aggregates
    path("ledger/summary", views.ledger_summary, name="ledger-summary"),
    path("ledger/monthly", views.ledger_monthly, name="ledger-monthly"),
    path("ledger/budget", views.ledger_budget, name="ledger-budget"),
]

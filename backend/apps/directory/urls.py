"""
URL routing for directory endpoints.
"""

from django.urls import path
from apps.directory import views

app_name = "directory"

urlpatterns = [
    # Businesses
    path(
        "businesses",
        views.list_or_create_businesses,
        name="list-or-create-businesses",
    ),
    path(
        "businesses/<uuid:businessId>",
        views.get_or_update_business,
        name="get-or-update-business",
    ),
    # Contractors
    path(
        "contractors",
        views.list_or_create_contractors,
        name="list-or-create-contractors",
    ),
    path(
        "contractors/<uuid:contractorId>",
        views.get_or_update_contractor,
        name="get-or-update-contractor",
    ),
    # Contracts
    path("contracts", views.list_or_create_contracts, name="list-or-create-contracts"),
    path("contracts/<uuid:contractId>", views.get_contract, name="get-contract"),
    path(
        "contracts/<uuid:contractId>/<str:action>",
        views.transition_contract,
        name="transition-contract",
    ),
]

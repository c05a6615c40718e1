"""
Directory services - all master-data mutations flow through this layer.

Rules:
- Every function takes a guard Capability as its first argument
- All mutations wrapped in transaction.atomic
- Use select_for_update for row-level locking
- Create audit entries for all mutations
- No direct model.save() from views
"""

import logging
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from core.exceptions import (
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
)
from core.guard import Operation
from core.state_machine import validate_transition
from core.versioning import version_locked_update
from apps.audit.services import audit_as
from apps.directory.models import (
    BudgetPeriod,
    Business,
    Contract,
    ContractStatus,
    Contractor,
)

logger = logging.getLogger(__name__)

UNSET = object()


def _require_name(value, field="displayName"):
    if not value or not str(value).strip():
        raise ValidationError(f"{field} must be non-empty", {"field": field})
    return str(value).strip()


def _non_negative(value, field):
    if value is None:
        return None
    value = Decimal(str(value))
    if value < 0:
        raise ValidationError(f"{field} must be zero or greater", {"field": field})
    return value


def _lock(model, pk):
    try:
        return model.objects.select_for_update().get(id=pk)
    except model.DoesNotExist:
        raise NotFoundError(f"{model.__name__} {pk} does not exist")


def _set_active(instance, is_active):
    instance.is_active = is_active
    instance.deactivated_at = None if is_active else timezone.now()


# -----------------------------
# Businesses (ADMIN)
# -----------------------------


def create_business(
    capability,
    display_name,
    budget_cap=None,
    budget_period=BudgetPeriod.MONTHLY,
    budget_start_date=None,
):
    """Create a Business (tenant)."""
    capability.require(Operation.ADMINISTER)
    display_name = _require_name(display_name)
    budget_cap = _non_negative(budget_cap, "budgetCap")
    if budget_period not in BudgetPeriod.values:
        raise ValidationError(
            "Invalid budgetPeriod", {"allowed": list(BudgetPeriod.values)}
        )

    with transaction.atomic():
        business = Business.objects.create(
            display_name=display_name,
            budget_cap=budget_cap,
            budget_period=budget_period,
            budget_start_date=budget_start_date,
        )
        audit_as(
            capability,
            "BUSINESS_CREATED",
            "Business",
            business.id,
            business_id=business.id,
            new_state={
                "displayName": business.display_name,
                "budgetCap": str(budget_cap) if budget_cap is not None else None,
                "budgetPeriod": budget_period,
            },
        )

    logger.info(
        "business_created",
        extra={"operation": "CREATE_BUSINESS", "entity_id": str(business.id)},
    )
    return business


def update_business(capability, business_id, display_name=None, is_active=None):
    """Rename or (de)activate a Business."""
    with transaction.atomic():
        business = _lock(Business, business_id)
        capability.verify(Operation.ADMINISTER, business)

        previous_state = {
            "displayName": business.display_name,
            "isActive": business.is_active,
        }
        if display_name is not None:
            business.display_name = _require_name(display_name)
        if is_active is not None:
            _set_active(business, is_active)
        business.save()

        audit_as(
            capability,
            "BUSINESS_UPDATED",
            "Business",
            business.id,
            business_id=business.id,
            previous_state=previous_state,
            new_state={
                "displayName": business.display_name,
                "isActive": business.is_active,
            },
        )

    return business


def update_budget(
    capability,
    business_id,
    budget_cap=UNSET,
    budget_period=None,
    budget_start_date=UNSET,
):
    """
    Change a business's budget settings (business owner).

    A cap below the value of outstanding commitments (published work not
    yet approved) is refused with PreconditionFailedError.
    """
    from apps.ledger import selectors

    with transaction.atomic():
        business = _lock(Business, business_id)
        capability.verify(Operation.UPDATE, business)

        previous_state = {
            "budgetCap": str(business.budget_cap) if business.budget_cap is not None else None,
            "budgetPeriod": business.budget_period,
        }

        if budget_period is not None:
            if budget_period not in BudgetPeriod.values:
                raise ValidationError(
                    "Invalid budgetPeriod", {"allowed": list(BudgetPeriod.values)}
                )
            business.budget_period = budget_period

        if budget_start_date is not UNSET:
            business.budget_start_date = budget_start_date

        if budget_cap is not UNSET:
            budget_cap = _non_negative(budget_cap, "budgetCap")
            if budget_cap is not None:
                committed = selectors.outstanding_commitments(business.id)
                if budget_cap < committed:
                    raise PreconditionFailedError(
                        "Budget cap cannot be lower than outstanding commitments",
                        {
                            "budgetCap": str(budget_cap),
                            "outstandingCommitments": str(committed),
                        },
                    )
            business.budget_cap = budget_cap

        business.save()

        audit_as(
            capability,
            "BUDGET_UPDATED",
            "Business",
            business.id,
            business_id=business.id,
            previous_state=previous_state,
            new_state={
                "budgetCap": str(business.budget_cap)
                if business.budget_cap is not None
                else None,
                "budgetPeriod": business.budget_period,
            },
        )

    logger.info(
        "budget_updated",
        extra={"operation": "UPDATE_BUDGET", "entity_id": str(business.id)},
    )
    return business


# -----------------------------
# Contractors (ADMIN)
# -----------------------------


def create_contractor(
    capability, display_name, connected_account_id=None, payouts_enabled=False
):
    """Create a Contractor (payee)."""
    capability.require(Operation.ADMINISTER)
    display_name = _require_name(display_name)
    if payouts_enabled and not connected_account_id:
        raise ValidationError(
            "Payouts cannot be enabled without a connected account",
            {"field": "connectedAccountId"},
        )

    with transaction.atomic():
        contractor = Contractor.objects.create(
            display_name=display_name,
            connected_account_id=connected_account_id or None,
            payouts_enabled=payouts_enabled,
        )
        audit_as(
            capability,
            "CONTRACTOR_CREATED",
            "Contractor",
            contractor.id,
            new_state={
                "displayName": contractor.display_name,
                "payoutsEnabled": contractor.payouts_enabled,
            },
        )

    logger.info(
        "contractor_created",
        extra={"operation": "CREATE_CONTRACTOR", "entity_id": str(contractor.id)},
    )
    return contractor


def update_contractor(
    capability,
    contractor_id,
    display_name=None,
    connected_account_id=UNSET,
    payouts_enabled=None,
    is_active=None,
):
    """Update contractor profile and payout onboarding state."""
    with transaction.atomic():
        contractor = _lock(Contractor, contractor_id)
        capability.verify(Operation.ADMINISTER, contractor)

        previous_state = {
            "connectedAccountId": contractor.connected_account_id,
            "payoutsEnabled": contractor.payouts_enabled,
            "isActive": contractor.is_active,
        }

        if display_name is not None:
            contractor.display_name = _require_name(display_name)
        if connected_account_id is not UNSET:
            contractor.connected_account_id = connected_account_id or None
        if payouts_enabled is not None:
            contractor.payouts_enabled = payouts_enabled
        if is_active is not None:
            _set_active(contractor, is_active)

        if contractor.payouts_enabled and not contractor.connected_account_id:
            raise ValidationError(
                "Payouts cannot be enabled without a connected account",
                {"field": "connectedAccountId"},
            )
        contractor.save()

        audit_as(
            capability,
            "CONTRACTOR_UPDATED",
            "Contractor",
            contractor.id,
            previous_state=previous_state,
            new_state={
                "connectedAccountId": contractor.connected_account_id,
                "payoutsEnabled": contractor.payouts_enabled,
                "isActive": contractor.is_active,
            },
        )

    return contractor


# -----------------------------
# Contracts (BUSINESS)
# -----------------------------


def create_contract(
    capability,
    business_id,
    title,
    code,
    contractor_id=None,
    total_value=Decimal("0"),
    start_date=None,
    end_date=None,
):
    """Create a DRAFT contract owned by the business."""
    title = _require_name(title, "title")
    code = _require_name(code, "code")
    total_value = _non_negative(total_value, "totalValue") or Decimal("0")
    if start_date and end_date and end_date < start_date:
        raise ValidationError("endDate must not be before startDate")

    with transaction.atomic():
        business = _lock(Business, business_id)
        capability.verify(Operation.CREATE, business)
        if not business.is_active:
            raise PreconditionFailedError(f"Business {business_id} is inactive")

        contractor = None
        if contractor_id:
            contractor = Contractor.objects.filter(id=contractor_id).first()
            if contractor is None:
                raise NotFoundError(f"Contractor {contractor_id} does not exist")
            if not contractor.is_active:
                raise PreconditionFailedError(f"Contractor {contractor_id} is inactive")

        if Contract.objects.filter(code=code).exists():
            raise ValidationError(
                f"Contract code '{code}' already exists", {"field": "code"}
            )

        contract = Contract.objects.create(
            business=business,
            contractor=contractor,
            title=title,
            code=code,
            total_value=total_value,
            start_date=start_date,
            end_date=end_date,
        )
        audit_as(
            capability,
            "CONTRACT_CREATED",
            "Contract",
            contract.id,
            business_id=business.id,
            new_state={
                "status": contract.status,
                "code": contract.code,
                "contractorId": str(contractor.id) if contractor else None,
                "totalValue": str(total_value),
            },
        )

    logger.info(
        "contract_created",
        extra={"operation": "CREATE_CONTRACT", "entity_id": str(contract.id)},
    )
    return contract


def _transition_contract(capability, contract_id, target_status, event_type):
    with transaction.atomic():
        contract = _lock(Contract, contract_id)
        capability.verify(Operation.UPDATE, contract)

        previous_status = contract.status
        validate_transition("Contract", previous_status, target_status)
        if target_status == ContractStatus.ACTIVE and contract.contractor_id is None:
            raise PreconditionFailedError(
                "A contract needs a contractor before it can be activated"
            )

        version_locked_update(
            Contract.objects.filter(id=contract.id),
            current_version=contract.version,
            status=target_status,
            updated_at=timezone.now(),
        )
        contract.refresh_from_db()

        audit_as(
            capability,
            event_type,
            "Contract",
            contract.id,
            business_id=contract.business_id,
            previous_state={"status": previous_status},
            new_state={"status": contract.status},
        )

    logger.info(
        "contract_transitioned",
        extra={
            "operation": event_type,
            "entity_id": str(contract.id),
            "from_status": previous_status,
            "to_status": target_status,
        },
    )
    return contract


def activate_contract(capability, contract_id):
    return _transition_contract(
        capability, contract_id, ContractStatus.ACTIVE, "CONTRACT_ACTIVATED"
    )


def complete_contract(capability, contract_id):
    return _transition_contract(
        capability, contract_id, ContractStatus.COMPLETED, "CONTRACT_COMPLETED"
    )


def terminate_contract(capability, contract_id):
    return _transition_contract(
        capability, contract_id, ContractStatus.TERMINATED, "CONTRACT_TERMINATED"
    )

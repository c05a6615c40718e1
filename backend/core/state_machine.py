"""
State machine enforcement for WorkItem, Contract and Payment.

Raises InvalidStateTransition for disallowed transitions.
"""

from core.exceptions import InvalidStateTransition

# Allowed transitions for WorkItem
WORK_ITEM_TRANSITIONS = {
    "DRAFT": ["OPEN", "CANCELLED"],
    "OPEN": ["ASSIGNED", "DECLINED", "CANCELLED"],
    "ASSIGNED": ["SUBMITTED", "DECLINED", "CANCELLED"],
    "SUBMITTED": ["APPROVED", "REJECTED", "CANCELLED"],
    "REJECTED": ["SUBMITTED", "CANCELLED"],  # resubmission
    "APPROVED": ["PAID"],  # only via processor confirmation
    "PAID": [],  # Terminal
    "DECLINED": [],  # Terminal
    "CANCELLED": [],  # Terminal
}

# Allowed transitions for Contract
CONTRACT_TRANSITIONS = {
    "DRAFT": ["ACTIVE", "TERMINATED"],
    "ACTIVE": ["COMPLETED", "TERMINATED"],
    "COMPLETED": [],  # Terminal
    "TERMINATED": [],  # Terminal
}

# Allowed transitions for Payment
PAYMENT_TRANSITIONS = {
    "SCHEDULED": ["PROCESSING", "FAILED"],
    "PROCESSING": ["COMPLETED", "FAILED"],
    "FAILED": ["PROCESSING", "COMPLETED"],  # retry, or late settlement
    "COMPLETED": [],  # Terminal
}

TRANSITIONS = {
    "WorkItem": WORK_ITEM_TRANSITIONS,
    "Contract": CONTRACT_TRANSITIONS,
    "Payment": PAYMENT_TRANSITIONS,
}


def validate_transition(entity_type, current_status, target_status):
    """
    Validate a state transition.

    Args:
        entity_type: 'WorkItem', 'Contract' or 'Payment'
        current_status: Current state
        target_status: Target state

    Returns:
        bool: True if transition is allowed

    Raises:
        InvalidStateTransition: If transition is disallowed
    """
    try:
        transitions = TRANSITIONS[entity_type]
    except KeyError:
        raise ValueError(f"Unknown entity_type: {entity_type}") from None

    if current_status not in transitions:
        raise InvalidStateTransition(
            f"Invalid current status: {current_status}",
            current_state=current_status,
            target_state=target_status,
            details={"entityType": entity_type},
        )

    allowed_targets = transitions[current_status]

    if not allowed_targets:
        raise InvalidStateTransition(
            (
                f"{entity_type} in state {current_status} is terminal and cannot "
                "transition"
            ),
            current_state=current_status,
            target_state=target_status,
            details={"entityType": entity_type},
        )

    if target_status not in allowed_targets:
        raise InvalidStateTransition(
            (
                "Invalid transition: "
                f"{entity_type} cannot transition from {current_status} to "
                f"{target_status}"
            ),
            current_state=current_status,
            target_state=target_status,
            details={
                "entityType": entity_type,
                "allowedTransitions": allowed_targets,
            },
        )

    return True

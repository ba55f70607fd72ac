"""Loan status state machine and tiered approval level rules"""

from decimal import Decimal
from typing import Dict, FrozenSet, Optional

from loan_origination.domain.models import ApproverRole, LoanStatus

# Any transition not listed here is rejected
STATUS_TRANSITIONS: Dict[LoanStatus, FrozenSet[LoanStatus]] = {
    LoanStatus.DRAFT: frozenset({LoanStatus.SUBMITTED, LoanStatus.CANCELLED}),
    LoanStatus.SUBMITTED: frozenset({LoanStatus.UNDER_REVIEW, LoanStatus.CANCELLED}),
    LoanStatus.UNDER_REVIEW: frozenset(
        {LoanStatus.APPROVED, LoanStatus.REJECTED, LoanStatus.REQUIRES_MORE_INFO}
    ),
    LoanStatus.REQUIRES_MORE_INFO: frozenset({LoanStatus.UNDER_REVIEW, LoanStatus.CANCELLED}),
    LoanStatus.APPROVED: frozenset({LoanStatus.DISBURSED, LoanStatus.CANCELLED}),
    LoanStatus.DISBURSED: frozenset({LoanStatus.ACTIVE, LoanStatus.CANCELLED}),
    LoanStatus.ACTIVE: frozenset({LoanStatus.CLOSED, LoanStatus.DEFAULTED}),
}

STATUS_DESCRIPTIONS: Dict[LoanStatus, str] = {
    LoanStatus.DRAFT: "Draft - Application being prepared",
    LoanStatus.SUBMITTED: "Submitted - Application submitted for review",
    LoanStatus.UNDER_REVIEW: "Under Review - Being evaluated by loan officer",
    LoanStatus.REQUIRES_MORE_INFO: "Requires More Information - Additional documents needed",
    LoanStatus.APPROVED: "Approved - Loan application approved",
    LoanStatus.REJECTED: "Rejected - Loan application rejected",
    LoanStatus.DISBURSED: "Disbursed - Loan amount disbursed to customer",
    LoanStatus.ACTIVE: "Active - Loan is active and repayments ongoing",
    LoanStatus.CLOSED: "Closed - Loan fully repaid",
    LoanStatus.DEFAULTED: "Defaulted - Loan in default",
    LoanStatus.CANCELLED: "Cancelled - Application cancelled by customer",
}

# Level → (approver role, amount that must be exceeded to require the level)
APPROVAL_LEVELS: Dict[int, tuple[ApproverRole, Optional[Decimal]]] = {
    1: (ApproverRole.LOAN_OFFICER, None),
    2: (ApproverRole.BRANCH_MANAGER, Decimal("10000")),
    3: (ApproverRole.REGIONAL_DIRECTOR, Decimal("50000")),
    4: (ApproverRole.CHIEF_CREDIT_OFFICER, Decimal("200000")),
}

FIRST_APPROVAL_LEVEL = 1

# Application statuses in which an open approval may still be decided
AWAITING_DECISION_STATUSES = frozenset({LoanStatus.SUBMITTED.value, LoanStatus.UNDER_REVIEW.value})


def parse_status(status_code: str) -> Optional[LoanStatus]:
    """Return the LoanStatus for a code, or None when the code is unknown"""
    try:
        return LoanStatus(status_code)
    except ValueError:
        return None


def is_valid_status_transition(current_status: str, new_status: str) -> bool:
    """Check a transition against the table; unknown codes are never valid"""
    current = parse_status(current_status)
    target = parse_status(new_status)
    if current is None or target is None:
        return False
    return target in STATUS_TRANSITIONS.get(current, frozenset())


def status_description(status_code: str) -> str:
    status = parse_status(status_code)
    if status is None:
        return "Unknown Status"
    return STATUS_DESCRIPTIONS[status]


def next_approval_level(current_level: Optional[int], loan_amount: Decimal) -> Optional[int]:
    """
    Decide whether another approval level is needed after `current_level` approves.

    Level 1 always starts the chain. Level N+1 is required only when the
    loan amount strictly exceeds that level's threshold:
    - 1 → 2 above 10,000
    - 2 → 3 above 50,000
    - 3 → 4 above 200,000

    Returns:
        The next level, or None when the chain is complete
    """
    if current_level is None:
        return FIRST_APPROVAL_LEVEL

    candidate = current_level + 1
    if candidate not in APPROVAL_LEVELS:
        return None

    _, threshold = APPROVAL_LEVELS[candidate]
    if threshold is not None and loan_amount > threshold:
        return candidate
    return None


def approver_role_for_level(level: int) -> ApproverRole:
    """Role that owns an approval level"""
    if level not in APPROVAL_LEVELS:
        raise ValueError(f"Unknown approval level: {level}")
    return APPROVAL_LEVELS[level][0]

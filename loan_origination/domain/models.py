"""Domain models - pure Python dataclasses and enums representing business entities"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class LoanStatus(str, Enum):
    """Loan application lifecycle states"""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    REQUIRES_MORE_INFO = "REQUIRES_MORE_INFO"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    DISBURSED = "DISBURSED"
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    DEFAULTED = "DEFAULTED"
    CANCELLED = "CANCELLED"


class ApprovalStatus(str, Enum):
    """State of a single approval step"""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    MORE_INFO_NEEDED = "MORE_INFO_NEEDED"


class ApproverRole(str, Enum):
    """Roles that own an approval level"""

    LOAN_OFFICER = "LOAN_OFFICER"
    BRANCH_MANAGER = "BRANCH_MANAGER"
    REGIONAL_DIRECTOR = "REGIONAL_DIRECTOR"
    CHIEF_CREDIT_OFFICER = "CHIEF_CREDIT_OFFICER"


class RecordStatus(str, Enum):
    """Active flag shared by users and products"""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


ADMIN_ROLE = "ADMIN"


@dataclass
class RepaymentScheduleEntry:
    """Single monthly installment in an amortization schedule"""

    installment_number: int
    payment_date: date
    emi: Decimal
    principal_component: Decimal
    interest_component: Decimal
    remaining_balance: Decimal


@dataclass
class EMICalculation:
    """Output of an EMI computation"""

    principal_amount: Decimal
    annual_interest_rate: Decimal
    tenure_months: int
    emi: Decimal
    total_payment: Decimal
    total_interest: Decimal
    repayment_schedule: List[RepaymentScheduleEntry] = field(default_factory=list)


@dataclass
class InterestCalculation:
    """Output of a simple or compound interest computation"""

    principal_amount: Decimal
    annual_interest_rate: Decimal
    time_years: Decimal
    interest: Decimal
    total_amount: Decimal
    interest_type: str  # "SIMPLE" or "COMPOUND"


@dataclass
class TokenPair:
    """Access/refresh tokens issued to a user"""

    access_token: str
    refresh_token: str
    expires_in: int
    message: str
    token_type: str = "Bearer"
    username: Optional[str] = None

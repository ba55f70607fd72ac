"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from loan_origination.domain.amortization import MAX_TENURE_MONTHS


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Authentication


class RegisterRequest(CamelModel):
    """Request body for POST /api/auth/register"""

    username: str = Field(..., min_length=3, max_length=100)
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    phone: Optional[str] = None
    password: str = Field(..., min_length=1)
    branch_id: Optional[int] = None
    role_code: Optional[str] = None


class LoginRequest(CamelModel):
    """Request body for POST /api/auth/login"""

    username_or_email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(CamelModel):
    refresh_token: Optional[str] = None


class TokenResponse(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    username: Optional[str] = None
    message: str


class UserResponse(CamelModel):
    id: int
    username: str
    email: str
    phone: Optional[str] = None
    role_code: Optional[str] = None
    branch_id: Optional[int] = None
    status_code: str


class MessageResponse(CamelModel):
    message: str


class HealthResponse(CamelModel):
    status: str
    service: str


class CountResponse(CamelModel):
    count: int


# Customers


class CustomerRequest(CamelModel):
    """Request body for creating or updating a customer"""

    name_en: Optional[str] = Field(None, max_length=255)
    name_kh: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    address_id: Optional[int] = None


class CustomerResponse(CamelModel):
    id: int
    name_en: Optional[str] = None
    name_kh: Optional[str] = None
    phone: Optional[str] = None
    address_id: Optional[int] = None
    created_at: Optional[datetime] = None


class CreditScoreResponse(CamelModel):
    customer_id: int
    credit_score: int


# Products


class ProductResponse(CamelModel):
    id: int
    code: str
    name: Optional[str] = None
    product_type: Optional[str] = None
    min_amount: Decimal
    max_amount: Decimal
    tenure_month: Optional[int] = None
    interest_rate: Decimal
    status_code: str


# Loan applications


class LoanApplicationRequest(CamelModel):
    """Request body for POST /api/loan-applications"""

    customer_id: int
    product_id: int
    applied_amount: Decimal = Field(..., gt=0)
    loan_term_months: Optional[int] = Field(None, gt=0, le=MAX_TENURE_MONTHS)
    branch_id: Optional[int] = None


class LoanApplicationResponse(CamelModel):
    id: int
    application_no: str
    customer_id: int
    product_id: int
    branch_id: Optional[int] = None
    loan_amount: Decimal
    tenure_month: Optional[int] = None
    interest_rate: Optional[Decimal] = None
    processing_fee: Optional[Decimal] = None
    status_code: str
    status_description: str
    created_at: Optional[datetime] = None


class BranchTotalResponse(CamelModel):
    branch_id: int
    total_approved_amount: Decimal


# Approvals


class ApprovalDecisionRequest(CamelModel):
    remarks: Optional[str] = None


class RejectionRequest(CamelModel):
    rejection_reason: str = Field(..., min_length=1)


class MoreInfoRequest(CamelModel):
    info_request: str = Field(..., min_length=1)


class ApprovalResponse(CamelModel):
    id: int
    loan_application_id: int
    application_no: str
    application_status: str
    approval_level: int
    approver_role: str
    status: str
    remarks: Optional[str] = None
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None


# Calculations


class EMIRequest(CamelModel):
    principal_amount: Decimal = Field(..., gt=0)
    annual_interest_rate: Decimal = Field(..., ge=0)
    tenure_months: int = Field(..., gt=0, le=MAX_TENURE_MONTHS)
    start_date: Optional[date] = None


class RepaymentScheduleEntrySchema(CamelModel):
    installment_number: int
    payment_date: date
    emi: Decimal
    principal_component: Decimal
    interest_component: Decimal
    remaining_balance: Decimal


class EMIResponse(CamelModel):
    principal_amount: Decimal
    annual_interest_rate: Decimal
    tenure_months: int
    emi: Decimal
    total_payment: Decimal
    total_interest: Decimal
    repayment_schedule: List[RepaymentScheduleEntrySchema]


class InterestRequest(CamelModel):
    principal_amount: Decimal = Field(..., gt=0)
    annual_interest_rate: Decimal = Field(..., ge=0)
    time_years: Decimal = Field(..., ge=0)


class InterestResponse(CamelModel):
    principal_amount: Decimal
    annual_interest_rate: Decimal
    time_years: Decimal
    interest: Decimal
    total_amount: Decimal
    interest_type: str


class ProcessingFeeRequest(CamelModel):
    loan_amount: Decimal
    percentage: Optional[Decimal] = Field(None, ge=0)
    min_fee: Optional[Decimal] = Field(None, ge=0)


class ProcessingFeeResponse(CamelModel):
    loan_amount: Decimal
    processing_fee: Decimal


class LatePaymentPenaltyRequest(CamelModel):
    overdue_amount: Optional[Decimal] = Field(None, ge=0)
    fixed_penalty: Optional[Decimal] = Field(None, ge=0)
    percentage_penalty: Optional[Decimal] = Field(None, ge=0)
    days_late: Optional[int] = Field(None, ge=0)


class LatePaymentPenaltyResponse(CamelModel):
    penalty: Decimal


class LTVRequest(CamelModel):
    loan_amount: Decimal = Field(..., ge=0)
    property_value: Decimal


class LTVResponse(CamelModel):
    loan_to_value_ratio: Decimal

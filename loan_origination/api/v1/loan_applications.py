"""/api/loan-applications - loan application lifecycle"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response

from loan_origination.api.dependencies import get_current_user, get_loan_application_service
from loan_origination.api.v1.calculations import to_emi_response
from loan_origination.api.v1.schemas import (
    BranchTotalResponse,
    CountResponse,
    EMIResponse,
    LoanApplicationRequest,
    LoanApplicationResponse,
)
from loan_origination.domain.workflow import status_description
from loan_origination.infrastructure.database.models import LoanApplication, User
from loan_origination.services.loan_applications import LoanApplicationService

router = APIRouter(dependencies=[Depends(get_current_user)])


def to_application_response(application: LoanApplication) -> LoanApplicationResponse:
    return LoanApplicationResponse(
        id=application.id,
        application_no=application.application_no,
        customer_id=application.customer_id,
        product_id=application.product_id,
        branch_id=application.branch_id,
        loan_amount=application.loan_amount,
        tenure_month=application.tenure_month,
        interest_rate=application.interest_rate,
        processing_fee=application.processing_fee,
        status_code=application.status_code,
        status_description=status_description(application.status_code),
        created_at=application.created_at,
    )


@router.post("", response_model=LoanApplicationResponse, status_code=201)
def create_loan_application(
    body: LoanApplicationRequest,
    user: User = Depends(get_current_user),
    applications: LoanApplicationService = Depends(get_loan_application_service),
):
    """Create a DRAFT application; branch defaults to the caller's branch"""
    application = applications.create(
        customer_id=body.customer_id,
        product_id=body.product_id,
        applied_amount=body.applied_amount,
        loan_term_months=body.loan_term_months,
        branch_id=body.branch_id if body.branch_id is not None else user.branch_id,
    )
    return to_application_response(application)


@router.get("/customer/{customer_id}", response_model=List[LoanApplicationResponse])
def list_by_customer(
    customer_id: int,
    applications: LoanApplicationService = Depends(get_loan_application_service),
):
    return [to_application_response(a) for a in applications.list_by_customer(customer_id)]


@router.get("/status/{status_code}", response_model=List[LoanApplicationResponse])
def list_by_status(
    status_code: str,
    applications: LoanApplicationService = Depends(get_loan_application_service),
):
    return [to_application_response(a) for a in applications.list_by_status(status_code)]


@router.get("/status/{status_code}/count", response_model=CountResponse)
def count_by_status_since(
    status_code: str,
    since: datetime = Query(...),
    applications: LoanApplicationService = Depends(get_loan_application_service),
):
    return CountResponse(count=applications.count_by_status_since(status_code, since))


@router.get("/branch/{branch_id}/total-approved", response_model=BranchTotalResponse)
def total_approved_by_branch(
    branch_id: int,
    applications: LoanApplicationService = Depends(get_loan_application_service),
):
    return BranchTotalResponse(
        branch_id=branch_id,
        total_approved_amount=applications.total_approved_amount_by_branch(branch_id),
    )


@router.get("/{application_id}", response_model=LoanApplicationResponse)
def get_loan_application(
    application_id: int,
    applications: LoanApplicationService = Depends(get_loan_application_service),
):
    return to_application_response(applications.get(application_id))


@router.put("/{application_id}/status", response_model=LoanApplicationResponse)
def update_status(
    application_id: int,
    status_code: str = Query(..., alias="statusCode"),
    remarks: Optional[str] = Query(None),
    applications: LoanApplicationService = Depends(get_loan_application_service),
):
    """Move the application along the status transition table"""
    return to_application_response(applications.update_status(application_id, status_code, remarks))


@router.post("/{application_id}/approve", response_model=LoanApplicationResponse)
def approve_loan_application(
    application_id: int,
    approved_amount: Decimal = Query(..., alias="approvedAmount"),
    approved_by: Optional[str] = Query(None, alias="approvedBy"),
    user: User = Depends(get_current_user),
    applications: LoanApplicationService = Depends(get_loan_application_service),
):
    application = applications.approve(application_id, approved_amount, approved_by or user.username)
    return to_application_response(application)


@router.post("/{application_id}/reject", response_model=LoanApplicationResponse)
def reject_loan_application(
    application_id: int,
    rejection_reason: str = Query(..., alias="rejectionReason", min_length=1),
    rejected_by: Optional[str] = Query(None, alias="rejectedBy"),
    user: User = Depends(get_current_user),
    applications: LoanApplicationService = Depends(get_loan_application_service),
):
    application = applications.reject(application_id, rejection_reason, rejected_by or user.username)
    return to_application_response(application)


@router.delete("/{application_id}", status_code=204)
def delete_loan_application(
    application_id: int,
    applications: LoanApplicationService = Depends(get_loan_application_service),
):
    applications.delete(application_id)
    return Response(status_code=204)


@router.get("/{application_id}/repayment-schedule", response_model=EMIResponse)
def repayment_schedule(
    application_id: int,
    start_date: Optional[date] = Query(None, alias="startDate"),
    applications: LoanApplicationService = Depends(get_loan_application_service),
):
    return to_emi_response(applications.repayment_schedule(application_id, start_date))

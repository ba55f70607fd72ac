"""Approval workflow endpoints - submission, level decisions and approval queries"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from loan_origination.api.dependencies import ensure_role, get_approval_service, get_current_user
from loan_origination.api.v1.schemas import (
    ApprovalDecisionRequest,
    ApprovalResponse,
    MoreInfoRequest,
    RejectionRequest,
)
from loan_origination.domain.models import ApproverRole
from loan_origination.infrastructure.database.models import User
from loan_origination.services.approvals import ApprovalStep, ApprovalWorkflowService

router = APIRouter(dependencies=[Depends(get_current_user)])


def to_approval_response(step: ApprovalStep) -> ApprovalResponse:
    approval = step.approval
    return ApprovalResponse(
        id=approval.id,
        loan_application_id=approval.loan_application_id,
        application_no=step.application.application_no,
        application_status=step.application.status_code,
        approval_level=approval.approval_level,
        approver_role=approval.approver_role,
        status=approval.status,
        remarks=approval.remarks,
        created_at=approval.created_at,
        created_by=approval.created_by,
        approved_at=approval.approved_at,
        approved_by=approval.approved_by,
    )


@router.post("/loan-applications/{application_id}/submit", response_model=ApprovalResponse)
def submit_for_approval(
    application_id: int,
    user: User = Depends(get_current_user),
    workflow: ApprovalWorkflowService = Depends(get_approval_service),
):
    """DRAFT → SUBMITTED and open the level-1 approval"""
    return to_approval_response(workflow.submit_for_approval(application_id, user.username))


@router.get("/loan-applications/{application_id}/approvals", response_model=List[ApprovalResponse])
def approval_history(application_id: int, workflow: ApprovalWorkflowService = Depends(get_approval_service)):
    return [to_approval_response(step) for step in workflow.get_approval_history(application_id)]


@router.get("/loan-applications/{application_id}/approvals/current", response_model=ApprovalResponse)
def current_approval_level(application_id: int, workflow: ApprovalWorkflowService = Depends(get_approval_service)):
    return to_approval_response(workflow.get_current_approval_level(application_id))


@router.get("/approvals/pending", response_model=List[ApprovalResponse])
def pending_approvals(
    role: Optional[ApproverRole] = Query(None),
    user: User = Depends(get_current_user),
    workflow: ApprovalWorkflowService = Depends(get_approval_service),
):
    """PENDING approvals for a role; defaults to the caller's own role"""
    role_code = role.value if role is not None else user.role_code
    if not role_code:
        return []
    return [to_approval_response(step) for step in workflow.get_pending_approvals_by_role(role_code)]


@router.get("/approvals/{approval_id}", response_model=ApprovalResponse)
def get_approval(approval_id: int, workflow: ApprovalWorkflowService = Depends(get_approval_service)):
    return to_approval_response(workflow.get_approval(approval_id))


@router.post("/approvals/{approval_id}/approve", response_model=ApprovalResponse)
def approve_level(
    approval_id: int,
    body: Optional[ApprovalDecisionRequest] = None,
    user: User = Depends(get_current_user),
    workflow: ApprovalWorkflowService = Depends(get_approval_service),
):
    ensure_role(user, workflow.get_approval(approval_id).approval.approver_role)
    remarks = body.remarks if body else None
    return to_approval_response(workflow.approve_level(approval_id, user.username, remarks))


@router.post("/approvals/{approval_id}/reject", response_model=ApprovalResponse)
def reject_level(
    approval_id: int,
    body: RejectionRequest,
    user: User = Depends(get_current_user),
    workflow: ApprovalWorkflowService = Depends(get_approval_service),
):
    ensure_role(user, workflow.get_approval(approval_id).approval.approver_role)
    return to_approval_response(workflow.reject_level(approval_id, user.username, body.rejection_reason))


@router.post("/approvals/{approval_id}/request-info", response_model=ApprovalResponse)
def request_more_info(
    approval_id: int,
    body: MoreInfoRequest,
    user: User = Depends(get_current_user),
    workflow: ApprovalWorkflowService = Depends(get_approval_service),
):
    ensure_role(user, workflow.get_approval(approval_id).approval.approver_role)
    return to_approval_response(workflow.request_more_info(approval_id, user.username, body.info_request))

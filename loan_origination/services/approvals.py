"""Tiered approval workflow over loan applications"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List

from sqlalchemy.orm import Session

from loan_origination.domain.exceptions import NotFoundError, ValidationError
from loan_origination.domain.models import ApprovalStatus, LoanStatus
from loan_origination.domain.workflow import (
    AWAITING_DECISION_STATUSES,
    FIRST_APPROVAL_LEVEL,
    approver_role_for_level,
    next_approval_level,
)
from loan_origination.infrastructure.database.models import LoanApplication, LoanApproval
from loan_origination.infrastructure.database.repositories import (
    LoanApplicationRepository,
    LoanApprovalRepository,
)
from loan_origination.infrastructure.database.session import transaction
from loan_origination.infrastructure.observability.metrics import record_approval_decision

logger = logging.getLogger(__name__)


@dataclass
class ApprovalStep:
    """An approval together with the state of its application after the operation"""

    approval: LoanApproval
    application: LoanApplication


class ApprovalWorkflowService:
    """
    Drive a loan application through its approval chain.

    Level 1 (LOAN_OFFICER) always starts the chain; further levels are added
    while the loan amount exceeds the next threshold (10,000 / 50,000 /
    200,000). Every transition locks the application row, re-reads the
    approval, validates, and commits approval and application together.
    """

    def __init__(self, db: Session):
        self.db = db
        self.applications = LoanApplicationRepository(db)
        self.approvals = LoanApprovalRepository(db)

    def submit_for_approval(self, application_id: int, submitted_by: str) -> ApprovalStep:
        """DRAFT → SUBMITTED with a PENDING level-1 approval"""
        logger.info("Submitting loan application %s for approval by %s", application_id, submitted_by)

        with transaction(self.db):
            application = self._lock_application(application_id)
            if application.status_code != LoanStatus.DRAFT.value:
                raise ValidationError(
                    "Loan application must be in DRAFT status to submit for approval. "
                    f"Current status: {application.status_code}"
                )

            application.status_code = LoanStatus.SUBMITTED.value
            approval = self._open_level(
                application,
                FIRST_APPROVAL_LEVEL,
                remarks="Submitted for initial review",
                created_by=submitted_by,
            )

        record_approval_decision(FIRST_APPROVAL_LEVEL, "submitted")
        logger.info("Loan application %s submitted for level 1 approval", application_id)
        return ApprovalStep(approval=approval, application=application)

    def approve_level(self, approval_id: int, approver: str, remarks: str = None) -> ApprovalStep:
        """
        Approve a PENDING level and either open the next level (application
        → UNDER_REVIEW) or finish the chain (application → APPROVED).
        """
        logger.info("Approving level for approval ID: %s by %s", approval_id, approver)

        with transaction(self.db):
            approval, application = self._lock_pending(approval_id)

            self._decide(approval, ApprovalStatus.APPROVED, approver, remarks)
            # Flush the decision before any new PENDING row is inserted
            self.db.flush()

            next_level = next_approval_level(approval.approval_level, application.loan_amount)
            if next_level is not None:
                self._open_level(
                    application,
                    next_level,
                    remarks=f"Awaiting level {next_level} approval",
                    created_by=approver,
                )
                application.status_code = LoanStatus.UNDER_REVIEW.value
            else:
                application.status_code = LoanStatus.APPROVED.value

        record_approval_decision(approval.approval_level, "approved")
        if next_level is not None:
            logger.info("Created level %s approval for loan application %s", next_level, application.id)
        else:
            logger.info("Loan application %s fully approved", application.id)
        return ApprovalStep(approval=approval, application=application)

    def reject_level(self, approval_id: int, approver: str, rejection_reason: str) -> ApprovalStep:
        """Reject a PENDING level; the application is REJECTED and the chain ends"""
        logger.info("Rejecting level for approval ID: %s by %s", approval_id, approver)

        with transaction(self.db):
            approval, application = self._lock_pending(approval_id)
            self._decide(approval, ApprovalStatus.REJECTED, approver, f"Rejected: {rejection_reason}")
            application.status_code = LoanStatus.REJECTED.value

        record_approval_decision(approval.approval_level, "rejected")
        logger.info("Loan application %s rejected at level %s", application.id, approval.approval_level)
        return ApprovalStep(approval=approval, application=application)

    def request_more_info(self, approval_id: int, approver: str, info_request: str) -> ApprovalStep:
        """Consume a PENDING level asking for more information; application → REQUIRES_MORE_INFO"""
        logger.info("Requesting more info for approval ID: %s by %s", approval_id, approver)

        with transaction(self.db):
            approval, application = self._lock_pending(approval_id)
            self._decide(
                approval,
                ApprovalStatus.MORE_INFO_NEEDED,
                approver,
                f"More information requested: {info_request}",
            )
            application.status_code = LoanStatus.REQUIRES_MORE_INFO.value

        record_approval_decision(approval.approval_level, "more_info")
        logger.info(
            "More info requested for loan application %s at level %s", application.id, approval.approval_level
        )
        return ApprovalStep(approval=approval, application=application)

    def get_approval(self, approval_id: int) -> ApprovalStep:
        approval = self.approvals.get(approval_id)
        if approval is None:
            raise NotFoundError(f"Approval record not found with ID: {approval_id}")
        return ApprovalStep(approval=approval, application=self._get_application(approval.loan_application_id))

    def get_current_approval_level(self, application_id: int) -> ApprovalStep:
        """First PENDING approval, else the most recent approval overall"""
        application = self._get_application(application_id)

        pending = self.approvals.list_by_application_and_status(application_id, ApprovalStatus.PENDING.value)
        if pending:
            return ApprovalStep(approval=pending[0], application=application)

        history = self.approvals.list_by_application(application_id)
        if not history:
            raise NotFoundError(f"No approval records found for loan application: {application_id}")
        return ApprovalStep(approval=history[-1], application=application)

    def get_approval_history(self, application_id: int) -> List[ApprovalStep]:
        """All approvals for an application in insertion order"""
        application = self._get_application(application_id)
        return [
            ApprovalStep(approval=approval, application=application)
            for approval in self.approvals.list_by_application(application_id)
        ]

    def get_pending_approvals_by_role(self, approver_role: str) -> List[ApprovalStep]:
        """Operator dashboard feed of PENDING approvals owned by a role"""
        steps = []
        for approval in self.approvals.list_by_role_and_status(approver_role, ApprovalStatus.PENDING.value):
            steps.append(ApprovalStep(approval=approval, application=self._get_application(approval.loan_application_id)))
        return steps

    def _open_level(self, application: LoanApplication, level: int, remarks: str, created_by: str) -> LoanApproval:
        approval = LoanApproval(
            loan_application_id=application.id,
            approval_level=level,
            approver_role=approver_role_for_level(level).value,
            status=ApprovalStatus.PENDING.value,
            remarks=remarks,
            created_at=datetime.now(timezone.utc),
            created_by=created_by,
        )
        return self.approvals.add(approval)

    def _decide(self, approval: LoanApproval, status: ApprovalStatus, approver: str, remarks: str) -> None:
        approval.status = status.value
        approval.approved_at = datetime.now(timezone.utc)
        approval.approved_by = approver
        approval.remarks = remarks

    def _lock_pending(self, approval_id: int) -> tuple[LoanApproval, LoanApplication]:
        """
        Lock the owning application, then re-read the approval and require PENDING.

        Raises:
            NotFoundError: Unknown approval or application
            ValidationError: Approval already decided, or application no longer under review
        """
        approval = self.approvals.get(approval_id)
        if approval is None:
            raise NotFoundError(f"Approval record not found with ID: {approval_id}")

        application = self._lock_application(approval.loan_application_id)
        approval = self.approvals.refresh(approval)

        if approval.status != ApprovalStatus.PENDING.value:
            raise ValidationError("Approval is not in PENDING status")
        if application.status_code not in AWAITING_DECISION_STATUSES:
            raise ValidationError(
                f"Loan application is not awaiting approval. Current status: {application.status_code}"
            )
        return approval, application

    def _lock_application(self, application_id: int) -> LoanApplication:
        application = self.applications.get_for_update(application_id)
        if application is None:
            raise NotFoundError(f"Loan application not found with ID: {application_id}")
        return application

    def _get_application(self, application_id: int) -> LoanApplication:
        application = self.applications.get(application_id)
        if application is None:
            raise NotFoundError(f"Loan application not found with ID: {application_id}")
        return application

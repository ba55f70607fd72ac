"""Loan application lifecycle: creation, queries, status transitions and schedules"""

import logging
import time
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from loan_origination.config import Settings
from loan_origination.domain.amortization import calculate_emi, calculate_processing_fee
from loan_origination.domain.exceptions import InvalidStateTransitionError, NotFoundError, ValidationError
from loan_origination.domain.models import ApprovalStatus, EMICalculation, LoanStatus, RecordStatus
from loan_origination.domain.workflow import (
    AWAITING_DECISION_STATUSES,
    is_valid_status_transition,
    parse_status,
    status_description,
)
from loan_origination.infrastructure.database.models import LoanApplication
from loan_origination.infrastructure.database.repositories import (
    CustomerRepository,
    LoanApplicationRepository,
    LoanApprovalRepository,
    ProductRepository,
)
from loan_origination.infrastructure.database.session import transaction
from loan_origination.infrastructure.observability.metrics import loan_application_counter
from loan_origination.utils.money import round_money, to_decimal

logger = logging.getLogger(__name__)

# Statuses whose loan_amount counts as an approved figure
APPROVED_STATUSES = (
    LoanStatus.APPROVED.value,
    LoanStatus.DISBURSED.value,
    LoanStatus.ACTIVE.value,
    LoanStatus.CLOSED.value,
)

# Outcome recorded on an open approval when the application leaves the chain
CLOSING_APPROVAL_STATUS = {
    LoanStatus.APPROVED.value: ApprovalStatus.APPROVED,
    LoanStatus.REQUIRES_MORE_INFO.value: ApprovalStatus.MORE_INFO_NEEDED,
}


def generate_application_number() -> str:
    """APP-<last 6 digits of epoch millis>-<8 upper-case hex chars of a random UUID>"""
    timestamp = str(int(time.time() * 1000))
    random_part = uuid.uuid4().hex[:8].upper()
    return f"APP-{timestamp[-6:]}-{random_part}"


class LoanApplicationService:
    """Operations on the loan application aggregate outside the approval chain"""

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings
        self.applications = LoanApplicationRepository(db)
        self.approvals = LoanApprovalRepository(db)
        self.customers = CustomerRepository(db)
        self.products = ProductRepository(db)

    def create(
        self,
        customer_id: int,
        product_id: int,
        applied_amount: Decimal,
        loan_term_months: Optional[int] = None,
        branch_id: Optional[int] = None,
    ) -> LoanApplication:
        """
        Create a DRAFT application for an existing customer and ACTIVE product.

        Requirements:
        - customer exists
        - product exists and is ACTIVE
        - product.min_amount <= applied_amount <= product.max_amount

        Interest rate is copied from the product, tenure defaults to the
        product tenure, and the processing fee is priced at creation.

        Raises:
            ValidationError: Any requirement above fails
        """
        applied_amount = round_money(to_decimal(applied_amount))
        logger.info("Creating loan application for customer: %s", customer_id)

        with transaction(self.db):
            customer = self.customers.get(customer_id)
            if customer is None:
                raise ValidationError(f"Customer not found with ID: {customer_id}")

            product = self.products.get(product_id)
            if product is None:
                raise ValidationError(f"Product not found with ID: {product_id}")
            if product.status_code != RecordStatus.ACTIVE.value:
                raise ValidationError(f"Product is not active: {product.code}")

            if applied_amount < product.min_amount or applied_amount > product.max_amount:
                raise ValidationError(
                    f"Applied amount {applied_amount:.2f} is outside product limits "
                    f"[{product.min_amount:.2f} - {product.max_amount:.2f}]"
                )

            tenure = loan_term_months or product.tenure_month
            if tenure is None or tenure <= 0:
                raise ValidationError("Loan term must be greater than zero months")

            application_no = generate_application_number()
            while self.applications.exists_by_application_no(application_no):
                application_no = generate_application_number()

            application = LoanApplication(
                application_no=application_no,
                customer_id=customer.id,
                product_id=product.id,
                branch_id=branch_id,
                loan_amount=applied_amount,
                tenure_month=tenure,
                interest_rate=product.interest_rate,
                processing_fee=calculate_processing_fee(
                    applied_amount,
                    self.settings.processing_fee_percentage,
                    self.settings.processing_fee_minimum,
                ),
                status_code=LoanStatus.DRAFT.value,
                created_at=datetime.now(timezone.utc),
            )
            self.applications.add(application)

        loan_application_counter.inc()
        logger.info("Loan application created with ID: %s", application.id)
        return application

    def get(self, application_id: int) -> LoanApplication:
        application = self.applications.get(application_id)
        if application is None:
            raise NotFoundError(f"Loan application not found with ID: {application_id}")
        return application

    def list_by_customer(self, customer_id: int) -> List[LoanApplication]:
        return self.applications.list_by_customer(customer_id)

    def list_by_status(self, status_code: str) -> List[LoanApplication]:
        if parse_status(status_code) is None:
            raise ValidationError(f"Unknown status code: {status_code}")
        return self.applications.list_by_status(status_code)

    def update_status(self, application_id: int, status_code: str, remarks: Optional[str] = None) -> LoanApplication:
        """
        Move an application along the status transition table.

        Raises:
            NotFoundError: Unknown application
            InvalidStateTransitionError: Transition is not in the table
        """
        logger.info("Updating loan application %s status to: %s", application_id, status_code)

        with transaction(self.db):
            application = self._get_for_update(application_id)
            if not is_valid_status_transition(application.status_code, status_code):
                raise InvalidStateTransitionError(application.status_code, status_code)
            application.status_code = status_code
            if status_code not in AWAITING_DECISION_STATUSES:
                self._close_pending_approvals(application, None, remarks or f"Application moved to {status_code}")

        logger.info(
            "Loan application %s status updated to: %s",
            application_id,
            status_code,
            extra={"remarks": remarks} if remarks else None,
        )
        return application

    def approve(self, application_id: int, approved_amount: Decimal, approved_by: str) -> LoanApplication:
        """
        Directly approve an application under review, overwriting loan_amount
        with the approved figure.

        Raises:
            ValidationError: Not UNDER_REVIEW, or amount not in (0, loan_amount]
        """
        approved_amount = round_money(to_decimal(approved_amount))
        logger.info("Approving loan application %s by %s", application_id, approved_by)

        with transaction(self.db):
            application = self._get_for_update(application_id)
            if application.status_code != LoanStatus.UNDER_REVIEW.value:
                raise ValidationError("Loan application must be in UNDER_REVIEW status for approval")
            if approved_amount <= 0:
                raise ValidationError("Approved amount must be greater than zero")
            if approved_amount > application.loan_amount:
                raise ValidationError("Approved amount cannot exceed applied amount")

            application.status_code = LoanStatus.APPROVED.value
            application.loan_amount = approved_amount
            self._close_pending_approvals(application, approved_by, f"Approved directly with amount {approved_amount}")

        logger.info("Loan application %s approved with amount: %s", application_id, approved_amount)
        return application

    def reject(self, application_id: int, rejection_reason: str, rejected_by: str) -> LoanApplication:
        with transaction(self.db):
            application = self._get_for_update(application_id)
            if application.status_code != LoanStatus.UNDER_REVIEW.value:
                raise ValidationError("Loan application must be in UNDER_REVIEW status for rejection")
            application.status_code = LoanStatus.REJECTED.value
            self._close_pending_approvals(application, rejected_by, f"Rejected: {rejection_reason}")

        logger.info("Loan application %s rejected by %s: %s", application_id, rejected_by, rejection_reason)
        return application

    def delete(self, application_id: int) -> None:
        """Delete a DRAFT application together with its approvals"""
        with transaction(self.db):
            application = self._get_for_update(application_id)
            if application.status_code != LoanStatus.DRAFT.value:
                raise ValidationError("Only DRAFT loan applications can be deleted")
            self.applications.delete(application)

        logger.info("Loan application %s deleted", application_id)

    def total_approved_amount_by_branch(self, branch_id: int) -> Decimal:
        return self.applications.sum_amount_by_branch(branch_id, APPROVED_STATUSES)

    def count_by_status_since(self, status_code: str, since: datetime) -> int:
        return self.applications.count_by_status_since(status_code, since)

    def status_description(self, status_code: str) -> str:
        return status_description(status_code)

    def repayment_schedule(self, application_id: int, start_date: Optional[date] = None) -> EMICalculation:
        """Amortize the application's current loan amount over its tenure"""
        application = self.get(application_id)
        if not application.tenure_month:
            raise ValidationError("Loan application has no tenure")
        return calculate_emi(
            application.loan_amount,
            application.interest_rate or Decimal("0"),
            application.tenure_month,
            start_date,
        )

    def _close_pending_approvals(self, application: LoanApplication, actor: Optional[str], remarks: str) -> None:
        """Decide any open approval so a finished application cannot re-enter the chain"""
        outcome = CLOSING_APPROVAL_STATUS.get(application.status_code, ApprovalStatus.REJECTED)
        for approval in self.approvals.list_by_application_and_status(application.id, ApprovalStatus.PENDING.value):
            approval.status = outcome.value
            approval.approved_at = datetime.now(timezone.utc)
            approval.approved_by = actor
            approval.remarks = remarks
            logger.info("Closed approval %s of loan application %s as %s", approval.id, application.id, outcome.value)

    def _get_for_update(self, application_id: int) -> LoanApplication:
        application = self.applications.get_for_update(application_id)
        if application is None:
            raise NotFoundError(f"Loan application not found with ID: {application_id}")
        return application

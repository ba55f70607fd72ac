"""Integration tests for the loan application service"""

import pytest
import re
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from loan_origination.domain.exceptions import InvalidStateTransitionError, NotFoundError, ValidationError
from loan_origination.infrastructure.database.models import LoanApproval
from loan_origination.services.approvals import ApprovalWorkflowService
from loan_origination.services.loan_applications import LoanApplicationService, generate_application_number


@pytest.fixture
def service(db, settings):
    return LoanApplicationService(db, settings)


def _under_review(db, service, customer, product, amount="60000"):
    """Application moved to UNDER_REVIEW through the approval chain"""
    workflow = ApprovalWorkflowService(db)
    application = service.create(customer.id, product.id, Decimal(amount))
    step = workflow.submit_for_approval(application.id, "officer")
    workflow.approve_level(step.approval.id, "officer", None)
    return service.get(application.id)


def test_application_number_format():
    number = generate_application_number()
    assert re.fullmatch(r"APP-\d{6}-[0-9A-F]{8}", number)


def test_create_application(service, customer, product):
    application = service.create(customer.id, product.id, Decimal("150000"), branch_id=7)

    assert application.id is not None
    assert application.status_code == "DRAFT"
    assert application.loan_amount == Decimal("150000.00")
    assert application.tenure_month == 12
    assert application.interest_rate == Decimal("12.0000")
    assert application.processing_fee == Decimal("1500.00")
    assert application.branch_id == 7
    assert re.fullmatch(r"APP-\d{6}-[0-9A-F]{8}", application.application_no)


def test_create_uses_requested_term_and_minimum_fee(service, customer, product):
    application = service.create(customer.id, product.id, Decimal("2000"), loan_term_months=6)

    assert application.tenure_month == 6
    assert application.processing_fee == Decimal("50.00")


def test_application_numbers_are_unique(service, customer, product):
    numbers = {service.create(customer.id, product.id, Decimal("5000")).application_no for _ in range(5)}
    assert len(numbers) == 5


@pytest.mark.parametrize("amount", ["999.99", "500000.01"])
def test_create_rejects_amount_outside_product_bounds(service, customer, product, amount):
    with pytest.raises(ValidationError):
        service.create(customer.id, product.id, Decimal(amount))


@pytest.mark.parametrize("amount", ["1000", "500000"])
def test_create_accepts_amount_on_product_bounds(service, customer, product, amount):
    assert service.create(customer.id, product.id, Decimal(amount)).status_code == "DRAFT"


def test_create_rejects_inactive_product(service, customer, inactive_product):
    with pytest.raises(ValidationError):
        service.create(customer.id, inactive_product.id, Decimal("50000"))


def test_create_rejects_unknown_customer_and_product(service, customer, product):
    with pytest.raises(ValidationError):
        service.create(999, product.id, Decimal("5000"))
    with pytest.raises(ValidationError):
        service.create(customer.id, 999, Decimal("5000"))


def test_get_unknown_application(service):
    with pytest.raises(NotFoundError):
        service.get(404)


def test_illegal_transition_leaves_state_unchanged(service, customer, product):
    """Test DRAFT cannot jump to APPROVED"""
    application = service.create(customer.id, product.id, Decimal("5000"))

    with pytest.raises(InvalidStateTransitionError):
        service.update_status(application.id, "APPROVED")

    assert service.get(application.id).status_code == "DRAFT"


def test_update_status_follows_table(service, customer, product):
    application = service.create(customer.id, product.id, Decimal("5000"))

    service.update_status(application.id, "CANCELLED", remarks="Customer withdrew")

    assert service.get(application.id).status_code == "CANCELLED"
    with pytest.raises(InvalidStateTransitionError):
        service.update_status(application.id, "SUBMITTED")


def test_approve_overwrites_loan_amount(db, service, customer, product):
    application = _under_review(db, service, customer, product)

    approved = service.approve(application.id, Decimal("55000"), "manager")

    assert approved.status_code == "APPROVED"
    assert approved.loan_amount == Decimal("55000.00")


@pytest.mark.parametrize("amount", ["0", "-1", "60000.01"])
def test_approve_rejects_out_of_range_amount(db, service, customer, product, amount):
    application = _under_review(db, service, customer, product)

    with pytest.raises(ValidationError):
        service.approve(application.id, Decimal(amount), "manager")
    assert service.get(application.id).status_code == "UNDER_REVIEW"


def test_approve_requires_under_review(service, customer, product):
    application = service.create(customer.id, product.id, Decimal("5000"))
    with pytest.raises(ValidationError):
        service.approve(application.id, Decimal("5000"), "manager")


def test_reject(db, service, customer, product):
    application = _under_review(db, service, customer, product)

    assert service.reject(application.id, "Over-leveraged", "manager").status_code == "REJECTED"
    with pytest.raises(ValidationError):
        service.reject(application.id, "Again", "manager")


def test_delete_draft_removes_approvals(db, service, customer, product):
    application = service.create(customer.id, product.id, Decimal("5000"))
    application_id = application.id

    service.delete(application_id)

    with pytest.raises(NotFoundError):
        service.get(application_id)
    assert db.query(LoanApproval).filter(LoanApproval.loan_application_id == application_id).count() == 0


def test_delete_requires_draft(db, service, customer, product):
    application = _under_review(db, service, customer, product)
    with pytest.raises(ValidationError):
        service.delete(application.id)


def test_queries(db, service, customer, product):
    first = service.create(customer.id, product.id, Decimal("5000"), branch_id=3)
    second = service.create(customer.id, product.id, Decimal("7000"), branch_id=3)
    service.update_status(second.id, "CANCELLED")

    assert [a.id for a in service.list_by_customer(customer.id)] == [first.id, second.id]
    assert [a.id for a in service.list_by_status("DRAFT")] == [first.id]
    assert service.count_by_status_since("DRAFT", datetime.now(timezone.utc) - timedelta(days=1)) == 1
    with pytest.raises(ValidationError):
        service.list_by_status("BOGUS")


def test_total_approved_amount_by_branch(db, service, customer, product):
    workflow = ApprovalWorkflowService(db)
    for amount in ("4000", "6000"):
        application = service.create(customer.id, product.id, Decimal(amount), branch_id=9)
        step = workflow.submit_for_approval(application.id, "officer")
        workflow.approve_level(step.approval.id, "officer", None)
    service.create(customer.id, product.id, Decimal("9000"), branch_id=9)

    assert service.total_approved_amount_by_branch(9) == Decimal("10000.00")
    assert service.total_approved_amount_by_branch(10) == Decimal("0.00")


def test_repayment_schedule(service, customer, product):
    application = service.create(customer.id, product.id, Decimal("12000"))

    calculation = service.repayment_schedule(application.id, start_date=date(2024, 1, 1))

    assert calculation.tenure_months == 12
    assert len(calculation.repayment_schedule) == 12
    assert calculation.repayment_schedule[-1].remaining_balance == Decimal("0.00")
    assert sum(e.principal_component for e in calculation.repayment_schedule) == Decimal("12000.00")


def test_status_description(service):
    assert service.status_description("UNDER_REVIEW") == "Under Review - Being evaluated by loan officer"

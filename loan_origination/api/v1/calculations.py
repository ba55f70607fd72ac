"""/api/calculations - stateless loan math"""

from fastapi import APIRouter, Depends

from loan_origination.api.dependencies import get_current_user, get_settings_dep
from loan_origination.api.v1.schemas import (
    EMIRequest,
    EMIResponse,
    InterestRequest,
    InterestResponse,
    LatePaymentPenaltyRequest,
    LatePaymentPenaltyResponse,
    LTVRequest,
    LTVResponse,
    ProcessingFeeRequest,
    ProcessingFeeResponse,
    RepaymentScheduleEntrySchema,
)
from loan_origination.config import Settings
from loan_origination.domain.amortization import (
    calculate_compound_interest,
    calculate_emi,
    calculate_late_payment_penalty,
    calculate_ltv,
    calculate_processing_fee,
    calculate_simple_interest,
)
from loan_origination.domain.models import EMICalculation, InterestCalculation

router = APIRouter(dependencies=[Depends(get_current_user)])


def to_emi_response(calculation: EMICalculation) -> EMIResponse:
    return EMIResponse(
        principal_amount=calculation.principal_amount,
        annual_interest_rate=calculation.annual_interest_rate,
        tenure_months=calculation.tenure_months,
        emi=calculation.emi,
        total_payment=calculation.total_payment,
        total_interest=calculation.total_interest,
        repayment_schedule=[
            RepaymentScheduleEntrySchema(
                installment_number=entry.installment_number,
                payment_date=entry.payment_date,
                emi=entry.emi,
                principal_component=entry.principal_component,
                interest_component=entry.interest_component,
                remaining_balance=entry.remaining_balance,
            )
            for entry in calculation.repayment_schedule
        ],
    )


def _to_interest_response(calculation: InterestCalculation) -> InterestResponse:
    return InterestResponse(
        principal_amount=calculation.principal_amount,
        annual_interest_rate=calculation.annual_interest_rate,
        time_years=calculation.time_years,
        interest=calculation.interest,
        total_amount=calculation.total_amount,
        interest_type=calculation.interest_type,
    )


@router.post("/emi", response_model=EMIResponse)
def emi(body: EMIRequest):
    """EMI with the full month-by-month repayment schedule"""
    return to_emi_response(
        calculate_emi(body.principal_amount, body.annual_interest_rate, body.tenure_months, body.start_date)
    )


@router.post("/simple-interest", response_model=InterestResponse)
def simple_interest(body: InterestRequest):
    return _to_interest_response(
        calculate_simple_interest(body.principal_amount, body.annual_interest_rate, body.time_years)
    )


@router.post("/compound-interest", response_model=InterestResponse)
def compound_interest(body: InterestRequest):
    """Yearly compounding over whole years"""
    return _to_interest_response(
        calculate_compound_interest(body.principal_amount, body.annual_interest_rate, body.time_years)
    )


@router.post("/processing-fee", response_model=ProcessingFeeResponse)
def processing_fee(body: ProcessingFeeRequest, settings: Settings = Depends(get_settings_dep)):
    """Percentage and minimum default to the configured pricing"""
    percentage = body.percentage if body.percentage is not None else settings.processing_fee_percentage
    min_fee = body.min_fee if body.min_fee is not None else settings.processing_fee_minimum
    return ProcessingFeeResponse(
        loan_amount=body.loan_amount,
        processing_fee=calculate_processing_fee(body.loan_amount, percentage, min_fee),
    )


@router.post("/late-payment-penalty", response_model=LatePaymentPenaltyResponse)
def late_payment_penalty(body: LatePaymentPenaltyRequest):
    penalty = calculate_late_payment_penalty(
        overdue_amount=body.overdue_amount,
        fixed_penalty=body.fixed_penalty,
        percentage_penalty=body.percentage_penalty,
        days_late=body.days_late,
    )
    return LatePaymentPenaltyResponse(penalty=penalty)


@router.post("/ltv", response_model=LTVResponse)
def loan_to_value(body: LTVRequest):
    return LTVResponse(loan_to_value_ratio=calculate_ltv(body.loan_amount, body.property_value))

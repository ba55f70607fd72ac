"""Amortization engine - EMI, repayment schedule, interest, fee, penalty and LTV formulas"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from loan_origination.domain.exceptions import ValidationError
from loan_origination.domain.models import EMICalculation, InterestCalculation, RepaymentScheduleEntry
from loan_origination.utils.date_utils import add_months
from loan_origination.utils.money import (
    ZERO,
    Number,
    RATE_SCALE,
    decimal_pow,
    divide,
    round_money,
    to_decimal,
)

logger = logging.getLogger(__name__)

# Daily penalty beyond the grace window: 0.05% of the overdue amount, or a flat 5.00
PENALTY_GRACE_DAYS = 30
DAILY_PENALTY_RATE = Decimal("0.0005")
DAILY_PENALTY_FLAT = Decimal("5")

# 50 years of monthly installments
MAX_TENURE_MONTHS = 600


def monthly_rate(annual_rate: Number) -> Decimal:
    """Annual percentage rate → monthly fraction at scale 10 (annual / 12 / 100)"""
    return divide(divide(annual_rate, 12, RATE_SCALE), 100, RATE_SCALE)


def calculate_emi(
    principal: Number,
    annual_rate: Number,
    tenure_months: int,
    start_date: Optional[date] = None,
) -> EMICalculation:
    """
    Calculate the Equated Monthly Installment and its repayment schedule.

    EMI = P · r · (1+r)^N / ((1+r)^N − 1), with r = annualRate / 12 / 100.
    A zero rate degenerates to P / N.

    Args:
        principal: Loan amount, must be > 0
        annual_rate: Annual interest rate in percent, must be >= 0
        tenure_months: Number of monthly installments, must be > 0
        start_date: First payment date (default: today + 1 month)

    Raises:
        ValidationError: On non-positive principal, tenure outside 1..600 or negative rate

    Example:
        100,000 @ 10% for 12 months → EMI 8,791.59, total interest 5,499.08
    """
    principal = to_decimal(principal)
    annual_rate = to_decimal(annual_rate)

    if principal <= 0:
        raise ValidationError("Principal amount must be greater than zero")
    if annual_rate < 0:
        raise ValidationError("Interest rate cannot be negative")
    if tenure_months <= 0:
        raise ValidationError("Tenure must be greater than zero months")
    if tenure_months > MAX_TENURE_MONTHS:
        raise ValidationError(f"Tenure cannot exceed {MAX_TENURE_MONTHS} months")

    rate = monthly_rate(annual_rate)

    if rate == 0:
        emi = divide(principal, tenure_months, 2)
    else:
        growth = decimal_pow(Decimal(1) + rate, tenure_months)
        emi = divide(principal * rate * growth, growth - 1, 2)

    total_payment = round_money(emi * tenure_months)
    total_interest = round_money(total_payment - principal)

    schedule = generate_repayment_schedule(principal, rate, tenure_months, emi, start_date)

    logger.debug(
        "EMI calculated",
        extra={"emi": str(emi), "principal": str(principal), "annual_rate": str(annual_rate), "tenure_months": tenure_months},
    )

    return EMICalculation(
        principal_amount=principal,
        annual_interest_rate=annual_rate,
        tenure_months=tenure_months,
        emi=emi,
        total_payment=total_payment,
        total_interest=total_interest,
        repayment_schedule=schedule,
    )


def generate_repayment_schedule(
    principal: Decimal,
    rate: Decimal,
    tenure_months: int,
    emi: Decimal,
    start_date: Optional[date] = None,
) -> List[RepaymentScheduleEntry]:
    """
    Build the month-by-month amortization schedule.

    The last installment takes the whole remaining balance as principal, so
    its EMI may differ from the others by the accumulated rounding drift.
    Principal components always sum to the original principal exactly.
    """
    remaining = round_money(principal)
    payment_date = start_date or add_months(date.today(), 1)

    schedule = []
    for month in range(1, tenure_months + 1):
        interest = round_money(remaining * rate)
        principal_component = emi - interest
        installment = emi

        if month == tenure_months:
            principal_component = remaining
            installment = principal_component + interest

        remaining = max(ZERO, remaining - principal_component)

        schedule.append(
            RepaymentScheduleEntry(
                installment_number=month,
                payment_date=payment_date,
                emi=installment,
                principal_component=principal_component,
                interest_component=interest,
                remaining_balance=remaining,
            )
        )
        payment_date = add_months(payment_date, 1)

    return schedule


def calculate_simple_interest(principal: Number, annual_rate: Number, time_years: Number) -> InterestCalculation:
    """Simple interest = P · R · T / 100"""
    principal = to_decimal(principal)
    annual_rate = to_decimal(annual_rate)
    time_years = to_decimal(time_years)

    interest = divide(principal * annual_rate * time_years, 100, 2)

    return InterestCalculation(
        principal_amount=principal,
        annual_interest_rate=annual_rate,
        time_years=time_years,
        interest=interest,
        total_amount=principal + interest,
        interest_type="SIMPLE",
    )


def calculate_compound_interest(principal: Number, annual_rate: Number, time_years: Number) -> InterestCalculation:
    """
    Compound amount = P · (1 + R/100)^⌊T⌋, compounded yearly.

    Fractional years are truncated to whole compounding periods.
    """
    principal = to_decimal(principal)
    annual_rate = to_decimal(annual_rate)
    time_years = to_decimal(time_years)

    if time_years < 0:
        raise ValidationError("Time cannot be negative")

    periods = int(time_years)
    factor = Decimal(1) + divide(annual_rate, 100, RATE_SCALE)
    total_amount = round_money(principal * decimal_pow(factor, periods))

    return InterestCalculation(
        principal_amount=principal,
        annual_interest_rate=annual_rate,
        time_years=time_years,
        interest=total_amount - principal,
        total_amount=total_amount,
        interest_type="COMPOUND",
    )


def calculate_processing_fee(loan_amount: Number, percentage: Number, min_fee: Number) -> Decimal:
    """Percentage of the loan amount, never below the minimum fee"""
    loan_amount = to_decimal(loan_amount)
    if loan_amount <= 0:
        raise ValidationError("Loan amount must be greater than zero")

    fee = divide(loan_amount * to_decimal(percentage), 100, 2)
    return max(to_decimal(min_fee), fee)


def calculate_late_payment_penalty(
    overdue_amount: Optional[Number] = None,
    fixed_penalty: Optional[Number] = None,
    percentage_penalty: Optional[Number] = None,
    days_late: Optional[int] = None,
) -> Decimal:
    """
    Sum of the fixed penalty, a percentage of the overdue amount, and a daily
    component for every day beyond 30 days late.

    The daily component is 0.05% of the overdue amount per day, or a flat
    5.00 per day when the overdue amount is unknown.
    """
    penalty = Decimal(0)

    if fixed_penalty is not None:
        penalty += to_decimal(fixed_penalty)

    if percentage_penalty is not None and overdue_amount is not None:
        penalty += divide(to_decimal(overdue_amount) * to_decimal(percentage_penalty), 100, 2)

    if days_late is not None and days_late > PENALTY_GRACE_DAYS:
        daily = (
            to_decimal(overdue_amount) * DAILY_PENALTY_RATE
            if overdue_amount is not None
            else DAILY_PENALTY_FLAT
        )
        penalty += daily * (days_late - PENALTY_GRACE_DAYS)

    return round_money(penalty)


def calculate_ltv(loan_amount: Number, property_value: Number) -> Decimal:
    """Loan-to-value ratio in percent"""
    property_value = to_decimal(property_value)
    if property_value <= 0:
        raise ValidationError("Property value must be greater than zero")
    return divide(to_decimal(loan_amount) * 100, property_value, 2)

"""/api/customers - customer records"""

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Query, Response

from loan_origination.api.dependencies import get_current_user, get_customer_service
from loan_origination.api.v1.schemas import (
    CountResponse,
    CreditScoreResponse,
    CustomerRequest,
    CustomerResponse,
)
from loan_origination.infrastructure.database.models import Customer
from loan_origination.services.customers import CustomerService

router = APIRouter(dependencies=[Depends(get_current_user)])


def to_customer_response(customer: Customer) -> CustomerResponse:
    return CustomerResponse(
        id=customer.id,
        name_en=customer.name_en,
        name_kh=customer.name_kh,
        phone=customer.phone,
        address_id=customer.address_id,
        created_at=customer.created_at,
    )


@router.post("", response_model=CustomerResponse, status_code=201)
def create_customer(body: CustomerRequest, customers: CustomerService = Depends(get_customer_service)):
    customer = customers.create(
        name_en=body.name_en,
        name_kh=body.name_kh,
        phone=body.phone,
        address_id=body.address_id,
    )
    return to_customer_response(customer)


@router.get("", response_model=List[CustomerResponse])
def list_customers(customers: CustomerService = Depends(get_customer_service)):
    return [to_customer_response(c) for c in customers.list_all()]


@router.get("/search", response_model=List[CustomerResponse])
def search_customers(name: str = Query(..., min_length=1), customers: CustomerService = Depends(get_customer_service)):
    return [to_customer_response(c) for c in customers.search_by_name(name)]


@router.get("/count", response_model=CountResponse)
def count_customers(customers: CustomerService = Depends(get_customer_service)):
    return CountResponse(count=customers.count())


@router.get("/created-between", response_model=List[CustomerResponse])
def customers_created_between(
    start: datetime = Query(...),
    end: datetime = Query(...),
    customers: CustomerService = Depends(get_customer_service),
):
    return [to_customer_response(c) for c in customers.list_created_between(start, end)]


@router.get("/phone/{phone}", response_model=CustomerResponse)
def get_customer_by_phone(phone: str, customers: CustomerService = Depends(get_customer_service)):
    return to_customer_response(customers.get_by_phone(phone))


@router.get("/{customer_id}", response_model=CustomerResponse)
def get_customer(customer_id: int, customers: CustomerService = Depends(get_customer_service)):
    return to_customer_response(customers.get(customer_id))


@router.put("/{customer_id}", response_model=CustomerResponse)
def update_customer(
    customer_id: int,
    body: CustomerRequest,
    customers: CustomerService = Depends(get_customer_service),
):
    customer = customers.update(
        customer_id,
        name_en=body.name_en,
        name_kh=body.name_kh,
        phone=body.phone,
        address_id=body.address_id,
    )
    return to_customer_response(customer)


@router.delete("/{customer_id}", status_code=204)
def delete_customer(customer_id: int, customers: CustomerService = Depends(get_customer_service)):
    customers.delete(customer_id)
    return Response(status_code=204)


@router.get("/{customer_id}/credit-score", response_model=CreditScoreResponse)
def get_credit_score(customer_id: int, customers: CustomerService = Depends(get_customer_service)):
    return CreditScoreResponse(customer_id=customer_id, credit_score=customers.credit_score(customer_id))

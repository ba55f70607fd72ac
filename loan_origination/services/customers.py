"""Customer records referenced by loan applications"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from loan_origination.domain.exceptions import ConflictError, NotFoundError, ValidationError
from loan_origination.infrastructure.database.models import Customer
from loan_origination.infrastructure.database.repositories import (
    CustomerRepository,
    LoanApplicationRepository,
)
from loan_origination.infrastructure.database.session import transaction
from loan_origination.utils.date_utils import ensure_utc

logger = logging.getLogger(__name__)

# Placeholder until a credit bureau integration exists
DEFAULT_CREDIT_SCORE = 650


class CustomerService:
    def __init__(self, db: Session):
        self.db = db
        self.customers = CustomerRepository(db)
        self.applications = LoanApplicationRepository(db)

    def create(
        self,
        name_en: Optional[str] = None,
        name_kh: Optional[str] = None,
        phone: Optional[str] = None,
        address_id: Optional[int] = None,
    ) -> Customer:
        """
        Create a customer.

        Raises:
            ValidationError: Phone already belongs to another customer
            ConflictError: A concurrent insert took the phone number
        """
        logger.info("Creating customer with phone: %s", phone)

        try:
            with transaction(self.db):
                if phone and self.customers.exists_by_phone(phone):
                    raise ValidationError(f"Customer with phone {phone} already exists")

                customer = Customer(
                    name_en=name_en,
                    name_kh=name_kh,
                    phone=phone,
                    address_id=address_id,
                    created_at=datetime.now(timezone.utc),
                )
                self.customers.add(customer)
        except IntegrityError as e:
            raise ConflictError(f"Customer with phone {phone} already exists") from e

        logger.info("Customer created with ID: %s", customer.id)
        return customer

    def get(self, customer_id: int) -> Customer:
        customer = self.customers.get(customer_id)
        if customer is None:
            raise NotFoundError(f"Customer not found with ID: {customer_id}")
        return customer

    def list_all(self) -> List[Customer]:
        return self.customers.list_all()

    def search_by_name(self, name: str) -> List[Customer]:
        logger.debug("Searching customers by name: %s", name)
        return self.customers.search_by_name(name)

    def get_by_phone(self, phone: str) -> Customer:
        customer = self.customers.get_by_phone(phone)
        if customer is None:
            raise NotFoundError(f"Customer not found with phone: {phone}")
        return customer

    def list_created_between(self, start: datetime, end: datetime) -> List[Customer]:
        """Customers registered within [start, end], both ends inclusive"""
        start = ensure_utc(start).astimezone(timezone.utc)
        end = ensure_utc(end).astimezone(timezone.utc)
        if start > end:
            raise ValidationError("Start of the range must not be after its end")
        return self.customers.list_created_between(start, end)

    def update(
        self,
        customer_id: int,
        name_en: Optional[str] = None,
        name_kh: Optional[str] = None,
        phone: Optional[str] = None,
        address_id: Optional[int] = None,
    ) -> Customer:
        """Replace the editable profile fields; a changed phone must still be unique"""
        logger.info("Updating customer with ID: %s", customer_id)

        try:
            with transaction(self.db):
                customer = self.get(customer_id)
                if phone and phone != customer.phone and self.customers.exists_by_phone(phone):
                    raise ValidationError(f"Customer with phone {phone} already exists")

                customer.name_en = name_en
                customer.name_kh = name_kh
                customer.phone = phone
                customer.address_id = address_id
                self.db.flush()
        except IntegrityError as e:
            raise ConflictError(f"Customer with phone {phone} already exists") from e

        return customer

    def delete(self, customer_id: int) -> None:
        """
        Delete a customer with no loan applications.

        Raises:
            NotFoundError: Unknown customer
            ConflictError: Customer still has loan applications
        """
        with transaction(self.db):
            customer = self.get(customer_id)
            if self.applications.count_by_customer(customer_id) > 0:
                raise ConflictError("Cannot delete customer with existing loan applications")
            self.customers.delete(customer)

        logger.info("Customer %s deleted", customer_id)

    def count(self) -> int:
        return self.customers.count()

    def credit_score(self, customer_id: int) -> int:
        self.get(customer_id)
        return DEFAULT_CREDIT_SCORE

"""Data access layer for users, customers, products, loan applications and approvals"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from loan_origination.infrastructure.database.models import (
    Customer,
    LoanApplication,
    LoanApproval,
    Product,
    User,
)


class UserRepository:
    """Repository for operator accounts"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, user: User) -> User:
        self.db.add(user)
        self.db.flush()
        return user

    def get_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def get_by_refresh_token(self, refresh_token: str) -> Optional[User]:
        return self.db.query(User).filter(User.refresh_token == refresh_token).first()

    def rotate_refresh_token(
        self,
        user_id: int,
        expected_token: str,
        new_token: str,
        new_expiry: datetime,
    ) -> bool:
        """
        Replace the stored refresh token only if it still equals `expected_token`.

        Returns:
            True when exactly one row was updated; False if another rotation won
        """
        result = self.db.execute(
            update(User)
            .where(User.id == user_id, User.refresh_token == expected_token)
            .values(refresh_token=new_token, refresh_token_expiry=new_expiry)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class CustomerRepository:
    """Repository for customers"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, customer: Customer) -> Customer:
        self.db.add(customer)
        self.db.flush()
        return customer

    def get(self, customer_id: int) -> Optional[Customer]:
        return self.db.get(Customer, customer_id)

    def list_all(self) -> List[Customer]:
        return self.db.query(Customer).order_by(Customer.id).all()

    def search_by_name(self, name: str) -> List[Customer]:
        """Case-insensitive substring match on either language name"""
        pattern = f"%{name.lower()}%"
        return (
            self.db.query(Customer)
            .filter(or_(func.lower(Customer.name_en).like(pattern), func.lower(Customer.name_kh).like(pattern)))
            .order_by(Customer.id)
            .all()
        )

    def get_by_phone(self, phone: str) -> Optional[Customer]:
        return self.db.query(Customer).filter(Customer.phone == phone).first()

    def exists_by_phone(self, phone: str) -> bool:
        return self.get_by_phone(phone) is not None

    def list_created_between(self, start: datetime, end: datetime) -> List[Customer]:
        return (
            self.db.query(Customer)
            .filter(Customer.created_at >= start, Customer.created_at <= end)
            .order_by(Customer.id)
            .all()
        )

    def count(self) -> int:
        return self.db.query(func.count(Customer.id)).scalar()

    def delete(self, customer: Customer) -> None:
        self.db.delete(customer)


class ProductRepository:
    """Read-only repository for loan products"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, product_id: int) -> Optional[Product]:
        return self.db.get(Product, product_id)

    def get_by_code(self, code: str) -> Optional[Product]:
        return self.db.query(Product).filter(Product.code == code).first()

    def list_all(self) -> List[Product]:
        return self.db.query(Product).order_by(Product.id).all()

    def list_by_status(self, status_code: str) -> List[Product]:
        return self.db.query(Product).filter(Product.status_code == status_code).order_by(Product.id).all()

    def list_by_type(self, product_type: str) -> List[Product]:
        return self.db.query(Product).filter(Product.product_type == product_type).order_by(Product.id).all()

    def search_active(self, term: str) -> List[Product]:
        pattern = f"%{term.lower()}%"
        return (
            self.db.query(Product)
            .filter(Product.status_code == "ACTIVE")
            .filter(or_(func.lower(Product.code).like(pattern), func.lower(Product.name).like(pattern)))
            .order_by(Product.id)
            .all()
        )

    def list_active_for_amount(self, amount: Decimal) -> List[Product]:
        return (
            self.db.query(Product)
            .filter(Product.status_code == "ACTIVE")
            .filter(Product.min_amount <= amount, Product.max_amount >= amount)
            .order_by(Product.id)
            .all()
        )

    def count_by_status(self, status_code: str) -> int:
        return self.db.query(func.count(Product.id)).filter(Product.status_code == status_code).scalar()


class LoanApplicationRepository:
    """Repository for loan application aggregates"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, application: LoanApplication) -> LoanApplication:
        self.db.add(application)
        self.db.flush()  # Get ID without committing
        return application

    def get(self, application_id: int) -> Optional[LoanApplication]:
        return self.db.get(LoanApplication, application_id)

    def get_for_update(self, application_id: int) -> Optional[LoanApplication]:
        """Load the application holding a row lock until the transaction ends"""
        return (
            self.db.query(LoanApplication)
            .filter(LoanApplication.id == application_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def exists_by_application_no(self, application_no: str) -> bool:
        return (
            self.db.query(LoanApplication.id)
            .filter(LoanApplication.application_no == application_no)
            .first()
            is not None
        )

    def list_by_customer(self, customer_id: int) -> List[LoanApplication]:
        return (
            self.db.query(LoanApplication)
            .filter(LoanApplication.customer_id == customer_id)
            .order_by(LoanApplication.id)
            .all()
        )

    def count_by_customer(self, customer_id: int) -> int:
        return (
            self.db.query(func.count(LoanApplication.id))
            .filter(LoanApplication.customer_id == customer_id)
            .scalar()
        )

    def list_by_status(self, status_code: str) -> List[LoanApplication]:
        return (
            self.db.query(LoanApplication)
            .filter(LoanApplication.status_code == status_code)
            .order_by(LoanApplication.id)
            .all()
        )

    def sum_amount_by_branch(self, branch_id: int, statuses: Iterable[str]) -> Decimal:
        total = (
            self.db.query(func.sum(LoanApplication.loan_amount))
            .filter(LoanApplication.branch_id == branch_id)
            .filter(LoanApplication.status_code.in_(list(statuses)))
            .scalar()
        )
        return Decimal(str(total)) if total is not None else Decimal("0.00")

    def count_by_status_since(self, status_code: str, since: datetime) -> int:
        return (
            self.db.query(func.count(LoanApplication.id))
            .filter(LoanApplication.status_code == status_code)
            .filter(LoanApplication.created_at >= since)
            .scalar()
        )

    def delete(self, application: LoanApplication) -> None:
        self.db.delete(application)


class LoanApprovalRepository:
    """Repository for approval steps"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, approval: LoanApproval) -> LoanApproval:
        self.db.add(approval)
        self.db.flush()
        return approval

    def get(self, approval_id: int) -> Optional[LoanApproval]:
        return self.db.get(LoanApproval, approval_id)

    def refresh(self, approval: LoanApproval) -> LoanApproval:
        """Re-read the row after a lock was taken on its application"""
        self.db.refresh(approval)
        return approval

    def list_by_application(self, application_id: int) -> List[LoanApproval]:
        """All approvals for an application in insertion order"""
        return (
            self.db.query(LoanApproval)
            .filter(LoanApproval.loan_application_id == application_id)
            .order_by(LoanApproval.id)
            .all()
        )

    def list_by_application_and_status(self, application_id: int, status: str) -> List[LoanApproval]:
        return (
            self.db.query(LoanApproval)
            .filter(LoanApproval.loan_application_id == application_id, LoanApproval.status == status)
            .order_by(LoanApproval.id)
            .all()
        )

    def list_by_role_and_status(self, approver_role: str, status: str) -> List[LoanApproval]:
        return (
            self.db.query(LoanApproval)
            .filter(LoanApproval.approver_role == approver_role, LoanApproval.status == status)
            .order_by(LoanApproval.id)
            .all()
        )

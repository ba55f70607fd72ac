"""SQLAlchemy ORM models for users, customers, products, loan applications and approvals"""

from sqlalchemy import Column, String, BigInteger, Integer, Numeric, DateTime, ForeignKey, Text, Index, text
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

# SQLite only autoincrements INTEGER primary keys
IdType = BigInteger().with_variant(Integer(), "sqlite")


class User(Base):
    """Operator account able to authenticate against the API"""

    __tablename__ = "t_user"

    id = Column(IdType, primary_key=True, autoincrement=True)
    branch_id = Column(BigInteger, nullable=True)
    role_code = Column(String(50), nullable=True)
    username = Column(String(100), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    phone = Column(String(50), nullable=True)
    status_code = Column(String(50), nullable=False, default="ACTIVE")
    password = Column(String(255), nullable=False)
    refresh_token = Column(String(1024), nullable=True, index=True)
    refresh_token_expiry = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Customer(Base):
    """Retail banking customer applying for loans"""

    __tablename__ = "t_customer"

    id = Column(IdType, primary_key=True, autoincrement=True)
    name_en = Column(String(255), nullable=True)
    name_kh = Column(String(255), nullable=True)
    # Unique among non-null values
    phone = Column(String(50), nullable=True, unique=True)
    address_id = Column(BigInteger, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Product(Base):
    """Loan product with amount bounds, tenure and pricing"""

    __tablename__ = "m_product"

    id = Column(IdType, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(255), nullable=True)
    product_type = Column(String(50), nullable=True)
    min_amount = Column(Numeric(18, 2), nullable=False)
    max_amount = Column(Numeric(18, 2), nullable=False)
    tenure_month = Column(Integer, nullable=True)
    interest_rate = Column(Numeric(8, 4), nullable=False, default=0)
    status_code = Column(String(50), nullable=False, default="ACTIVE")


class LoanApplication(Base):
    """Loan application aggregate root; owns its ordered approval chain"""

    __tablename__ = "t_loan_application"

    id = Column(IdType, primary_key=True, autoincrement=True)
    application_no = Column(String(100), nullable=False, unique=True)
    customer_id = Column(BigInteger, ForeignKey("t_customer.id"), nullable=False, index=True)
    product_id = Column(BigInteger, ForeignKey("m_product.id"), nullable=False)
    branch_id = Column(BigInteger, nullable=True, index=True)
    # Applied amount until approval, approved amount afterwards
    loan_amount = Column(Numeric(18, 2), nullable=False)
    tenure_month = Column(Integer, nullable=True)
    interest_rate = Column(Numeric(8, 4), nullable=True)
    processing_fee = Column(Numeric(18, 2), nullable=True)
    status_code = Column(String(50), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    approvals = relationship(
        "LoanApproval",
        order_by="LoanApproval.id",
        cascade="all, delete-orphan",
    )


class LoanApproval(Base):
    """One level of the approval chain for a loan application"""

    __tablename__ = "t_loan_approval"
    __table_args__ = (
        Index("ix_t_loan_approval_role_status", "approver_role", "status"),
        # At most one PENDING approval per application
        Index(
            "uq_t_loan_approval_pending",
            "loan_application_id",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
    )

    id = Column(IdType, primary_key=True, autoincrement=True)
    loan_application_id = Column(
        BigInteger,
        ForeignKey("t_loan_application.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    approval_level = Column(Integer, nullable=False)
    approver_role = Column(String(50), nullable=False)
    status = Column(String(50), nullable=False, default="PENDING")
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_by = Column(String(100), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_by = Column(String(100), nullable=True)

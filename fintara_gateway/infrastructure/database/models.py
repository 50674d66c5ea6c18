"""SQLAlchemy ORM models for the loan origination schema"""

import uuid
from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

from fintara_gateway.domain.models import LoanStatus, OPEN_STATUSES, Role

Base = declarative_base()

MONEY = Numeric(18, 2)
RATE = Numeric(9, 6)

# Partial index predicate: rows still moving through the workflow
_OPEN_STATUS_PREDICATE = "status IN ({})".format(", ".join(f"'{s.value}'" for s in sorted(OPEN_STATUSES)))


class Branch(Base):
    """Physical branch; marketing, BM and back office staff belong to one"""

    __tablename__ = "branch"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class User(Base):
    """Customer or staff account"""

    __tablename__ = "app_user"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=False, unique=True)
    role = Column(Enum(Role, name="user_role", native_enum=False, length=32), nullable=False)
    branch_id = Column(Uuid, ForeignKey("branch.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Plafond(Base):
    """Credit tier"""

    __tablename__ = "plafond"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False, unique=True)
    max_amount = Column(MONEY, nullable=False)
    max_tenor = Column(Integer, nullable=False)
    fee_rate = Column(RATE, nullable=False)


class InterestPerTenor(Base):
    """Interest rate offered by a plafond for one tenor"""

    __tablename__ = "interest_per_tenor"
    __table_args__ = (UniqueConstraint("plafond_id", "tenor", name="uq_interest_plafond_tenor"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    plafond_id = Column(Uuid, ForeignKey("plafond.id", ondelete="CASCADE"), nullable=False)
    tenor = Column(Integer, nullable=False)
    interest_rate = Column(RATE, nullable=False)


class CustomerDetails(Base):
    """Customer profile and credit state"""

    __tablename__ = "customer_details"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("app_user.id"), nullable=False, unique=True)
    plafond_id = Column(Uuid, ForeignKey("plafond.id"), nullable=False)
    remaining_credit_limit = Column(MONEY, nullable=False)

    gender = Column(Text, nullable=True)
    birth_date = Column(Date, nullable=True)
    id_card_url = Column(Text, nullable=True)
    selfie_id_card_url = Column(Text, nullable=True)
    address = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    nik = Column(Text, nullable=True)
    mother_maiden_name = Column(Text, nullable=True)
    occupation = Column(Text, nullable=True)
    salary = Column(MONEY, nullable=True)
    account_number = Column(Text, nullable=True)
    home_status = Column(Text, nullable=True)


class LoanRequest(Base):
    """Loan request moving through the approval workflow"""

    __tablename__ = "loan_request"
    __table_args__ = (
        # One open request per customer
        Index(
            "uq_loan_request_open_customer",
            "customer_id",
            unique=True,
            postgresql_where=text(_OPEN_STATUS_PREDICATE),
            sqlite_where=text(_OPEN_STATUS_PREDICATE),
        ),
        Index("ix_loan_request_branch_status", "branch_id", "status"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id = Column(Uuid, ForeignKey("customer_details.id"), nullable=False, index=True)
    marketing_id = Column(Uuid, ForeignKey("app_user.id"), nullable=False, index=True)
    branch_id = Column(Uuid, ForeignKey("branch.id"), nullable=False)
    plafond_id = Column(Uuid, ForeignKey("plafond.id"), nullable=False)

    amount = Column(MONEY, nullable=False)
    tenor = Column(Integer, nullable=False)
    status = Column(Enum(LoanStatus, name="loan_status", native_enum=False, length=40), nullable=False)

    interest_rate = Column(RATE, nullable=False)
    fee_rate = Column(RATE, nullable=False)
    interest_amount = Column(MONEY, nullable=False)
    fees_amount = Column(MONEY, nullable=False)
    disbursed_amount = Column(MONEY, nullable=True)
    total_repayment_amount = Column(MONEY, nullable=True)
    estimated_installment = Column(MONEY, nullable=True)

    request_date = Column(DateTime(timezone=True), nullable=False)
    approval_marketing_at = Column(DateTime(timezone=True), nullable=True)
    approval_bm_at = Column(DateTime(timezone=True), nullable=True)
    disbursed_at = Column(DateTime(timezone=True), nullable=True)

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Concurrent writers to the same request fail with StaleDataError on flush
    __mapper_args__ = {"version_id_col": version}


class LoanApproval(Base):
    """Immutable audit record, one per status transition"""

    __tablename__ = "loan_approval"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    loan_request_id = Column(Uuid, ForeignKey("loan_request.id"), nullable=False, index=True)
    handled_by = Column(Uuid, ForeignKey("app_user.id"), nullable=False, index=True)
    status = Column(Enum(LoanStatus, name="loan_status", native_enum=False, length=40), nullable=False)
    notes = Column(Text, nullable=True)
    identity_notes = Column(Text, nullable=True)
    credit_limit_notes = Column(Text, nullable=True)
    summary_notes = Column(Text, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=False)


class RepaymentSchedule(Base):
    """Individual installment of a disbursed loan"""

    __tablename__ = "repayment_schedule"
    __table_args__ = (UniqueConstraint("loan_request_id", "installment_number", name="uq_schedule_installment"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    loan_request_id = Column(Uuid, ForeignKey("loan_request.id", ondelete="CASCADE"), nullable=False, index=True)
    installment_number = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False)
    amount = Column(MONEY, nullable=False)
    status = Column(String(16), nullable=False, default="UNPAID")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

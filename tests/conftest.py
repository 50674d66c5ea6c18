"""Pytest fixtures for testing"""

import pytest
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Generator, List
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from fintara_gateway.api.dependencies import get_dispatcher
from fintara_gateway.api.main import create_app
from fintara_gateway.domain.models import Actor, Notification, Role
from fintara_gateway.infrastructure.database.models import (
    Base,
    Branch,
    CustomerDetails,
    InterestPerTenor,
    Plafond,
    User,
)
from fintara_gateway.infrastructure.database.session import get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

JAKARTA = (-6.2088, 106.8456)
BANDUNG = (-6.9175, 107.6191)


@dataclass
class Seed:
    """Actors and reference rows every workflow test starts from"""

    jakarta: Branch
    bandung: Branch
    bronze: Plafond
    customer: Actor
    other_customer: Actor
    incomplete_customer: Actor
    marketing_a: Actor
    marketing_b: Actor
    marketing_bandung: Actor
    branch_manager: Actor
    back_office: Actor
    back_office_bandung: Actor
    customer_details_id: object


class RecordingDispatcher:
    """Stands in for NotificationDispatcher; keeps what would have been sent"""

    def __init__(self):
        self.sent: List[Notification] = []

    async def dispatch(self, notifications, request_id=None) -> int:
        self.sent.extend(notifications)
        return len(notifications)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


def _actor(user: User) -> Actor:
    return Actor(id=user.id, role=user.role, branch_id=user.branch_id)


def _complete_profile(user: User, plafond: Plafond, remaining: str, nik: str) -> CustomerDetails:
    return CustomerDetails(
        user_id=user.id,
        plafond_id=plafond.id,
        remaining_credit_limit=Decimal(remaining),
        gender="F",
        birth_date=date(1990, 5, 17),
        id_card_url="https://files.example/id.jpg",
        selfie_id_card_url="https://files.example/selfie.jpg",
        address="Jl. Sudirman 1, Jakarta",
        phone="+6281200000000",
        nik=nik,
        mother_maiden_name="Sari",
        occupation="Engineer",
        salary=Decimal("15000000"),
        account_number="1234567890",
        home_status="OWNED",
    )


@pytest.fixture
def seed(db: Session) -> Seed:
    """
    Two branches, one plafond with a 6 and 12 month rate, and a user per role.

    Jakarta has two marketing agents (A listed before B), a branch manager
    and back office; Bandung has one marketing agent and back office.
    """
    jakarta = Branch(name="Jakarta Pusat", latitude=JAKARTA[0], longitude=JAKARTA[1])
    bandung = Branch(name="Bandung", latitude=BANDUNG[0], longitude=BANDUNG[1])
    bronze = Plafond(name="Bronze", max_amount=Decimal("50000000"), max_tenor=12, fee_rate=Decimal("0.01"))
    db.add_all([jakarta, bandung, bronze])
    db.flush()

    db.add_all(
        [
            InterestPerTenor(plafond_id=bronze.id, tenor=6, interest_rate=Decimal("0.015")),
            InterestPerTenor(plafond_id=bronze.id, tenor=12, interest_rate=Decimal("0.02")),
        ]
    )

    def user(name: str, role: Role, branch: Branch | None = None) -> User:
        row = User(
            name=name,
            email=f"{name.lower().replace(' ', '.')}@fintara.test",
            role=role,
            branch_id=branch.id if branch else None,
        )
        db.add(row)
        db.flush()
        return row

    customer = user("Dewi Lestari", Role.CUSTOMER)
    other_customer = user("Budi Santoso", Role.CUSTOMER)
    incomplete_customer = user("Rina Wati", Role.CUSTOMER)
    marketing_a = user("Marketing A", Role.MARKETING, jakarta)
    marketing_b = user("Marketing B", Role.MARKETING, jakarta)
    marketing_bandung = user("Marketing C", Role.MARKETING, bandung)
    branch_manager = user("Manager Jakarta", Role.BRANCH_MANAGER, jakarta)
    back_office = user("Back Office Jakarta", Role.BACK_OFFICE, jakarta)
    back_office_bandung = user("Back Office Bandung", Role.BACK_OFFICE, bandung)

    details = _complete_profile(customer, bronze, "20000000", "3171000000000001")
    db.add(details)
    db.add(_complete_profile(other_customer, bronze, "20000000", "3171000000000002"))
    db.add(
        CustomerDetails(
            user_id=incomplete_customer.id,
            plafond_id=bronze.id,
            remaining_credit_limit=Decimal("20000000"),
            phone="+6281300000000",
        )
    )
    db.commit()

    return Seed(
        jakarta=jakarta,
        bandung=bandung,
        bronze=bronze,
        customer=_actor(customer),
        other_customer=_actor(other_customer),
        incomplete_customer=_actor(incomplete_customer),
        marketing_a=_actor(marketing_a),
        marketing_b=_actor(marketing_b),
        marketing_bandung=_actor(marketing_bandung),
        branch_manager=_actor(branch_manager),
        back_office=_actor(back_office),
        back_office_bandung=_actor(back_office_bandung),
        customer_details_id=details.id,
    )


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def client(db: Session, dispatcher: RecordingDispatcher) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    return TestClient(app)

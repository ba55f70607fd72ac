"""Pytest fixtures for testing"""

import os

# Must be set before the application modules build their engine and app
TEST_SECRET = "unit-run-signing-key-0123456789abcdefghijklmnopq"
os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", TEST_SECRET)

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, Generator
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from loan_origination.api.main import create_app
from loan_origination.config import Settings
from loan_origination.infrastructure.database.models import Base, Customer, Product, User
from loan_origination.infrastructure.database.session import get_db
from loan_origination.infrastructure.security.passwords import PasswordHasher
from loan_origination.infrastructure.security.tokens import TokenService

TEST_PASSWORD = "Sup3rSecure!"

# Test database
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeRedis:
    """In-memory stand-in for the blacklist cache"""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ex=None):
        self.store[key] = value
        if ex is not None:
            self.ttls[key] = int(ex)
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    def ttl(self, key):
        if key not in self.store:
            return -2
        return self.ttls.get(key, -1)


class FailingRedis:
    """Cache whose every operation fails like an unreachable Redis"""

    def _fail(self, *args, **kwargs):
        raise RedisConnectionError("Connection refused")

    get = set = delete = ttl = _fail


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        jwt_secret_key=TEST_SECRET,
        app_environment="test",
        bcrypt_rounds=4,
        log_level="WARNING",
    )


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def failing_redis() -> FailingRedis:
    return FailingRedis()


@pytest.fixture
def token_service(settings: Settings, fake_redis: FakeRedis) -> TokenService:
    return TokenService(settings, fake_redis)


@pytest.fixture
def password_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


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


@pytest.fixture
def app(settings: Settings, fake_redis: FakeRedis, db: Session):
    """FastAPI app wired to the test database and fake cache"""
    app = create_app(settings, cache=fake_redis)

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
def client(app) -> TestClient:
    """Create FastAPI test client with test database"""
    return TestClient(app)


@pytest.fixture
def customer(db: Session) -> Customer:
    customer = Customer(
        name_en="Sok Dara",
        name_kh="សុខ ដារ៉ា",
        phone="+85512345678",
        created_at=datetime.now(timezone.utc),
    )
    db.add(customer)
    db.commit()
    return customer


@pytest.fixture
def product(db: Session) -> Product:
    product = Product(
        code="PL-001",
        name="Personal Loan",
        product_type="PERSONAL",
        min_amount=Decimal("1000.00"),
        max_amount=Decimal("500000.00"),
        tenure_month=12,
        interest_rate=Decimal("12.0000"),
        status_code="ACTIVE",
    )
    db.add(product)
    db.commit()
    return product


@pytest.fixture
def inactive_product(db: Session) -> Product:
    product = Product(
        code="HL-OLD",
        name="Legacy Home Loan",
        product_type="HOME",
        min_amount=Decimal("10000.00"),
        max_amount=Decimal("900000.00"),
        tenure_month=240,
        interest_rate=Decimal("8.5000"),
        status_code="INACTIVE",
    )
    db.add(product)
    db.commit()
    return product


@pytest.fixture
def make_user(db: Session, password_hasher: PasswordHasher) -> Callable[..., User]:
    """Insert a user directly, bypassing registration"""

    def _make_user(username: str, role_code: str = None, status_code: str = "ACTIVE", branch_id: int = 1) -> User:
        user = User(
            username=username,
            email=f"{username}@bank.example",
            password=password_hasher.hash(TEST_PASSWORD),
            role_code=role_code,
            status_code=status_code,
            branch_id=branch_id,
            created_at=datetime.now(timezone.utc),
        )
        db.add(user)
        db.commit()
        return user

    return _make_user


@pytest.fixture
def auth_headers(make_user, app) -> Callable[..., Dict[str, str]]:
    """Bearer headers for a freshly created user with the given role"""

    def _auth_headers(username: str = "officer", role_code: str = "LOAN_OFFICER") -> Dict[str, str]:
        user = make_user(username, role_code=role_code)
        token = app.state.token_service.issue_access_token(user.username)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture
def user_password() -> str:
    """Plain-text password of every user created by `make_user`"""
    return TEST_PASSWORD

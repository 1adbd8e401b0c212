import os

# Point the application at the test database before anything imports settings
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from app.core.database import Base, get_db
from app.core.security import get_password_hash
from app.models.expense import Expense
from app.models.organization import Organization
from app.models.project import Project
from app.models.user import User, UserRole
from main import app

# Test database
SQLALCHEMY_DATABASE_URL = os.environ["DATABASE_URL"]
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "testpass123"
PASSWORD_HASH = get_password_hash(PASSWORD)


def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db

client = TestClient(app)


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def _create_org(name: str) -> Organization:
    db = TestingSessionLocal()
    org = Organization(name=name, currency="USD", timezone="UTC")
    db.add(org)
    db.commit()
    db.refresh(org)
    db.close()
    return org


@pytest.fixture
def test_org():
    return _create_org("Test Company")


@pytest.fixture
def other_org():
    return _create_org("Other Company")


@pytest.fixture
def make_user(test_org):
    """Factory creating users; defaults to a member of ``test_org``."""
    def _make_user(role=UserRole.MEMBER.value, email=None, organization_id=None, hourly_rate=0, name=None):
        db = TestingSessionLocal()
        user = User(
            organization_id=organization_id or test_org.id,
            email=email or f"{role}-{os.urandom(3).hex()}@test.com",
            name=name or role.replace("_", " ").title(),
            hashed_password=PASSWORD_HASH,
            role=role,
            hourly_rate=Decimal(str(hourly_rate)),
            is_active=True
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        db.close()
        return user
    return _make_user


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN.value, email="admin@test.com")


@pytest.fixture
def manager(make_user):
    return make_user(UserRole.MANAGER.value, email="manager@test.com")


@pytest.fixture
def finance(make_user):
    return make_user(UserRole.FINANCE.value, email="finance@test.com")


@pytest.fixture
def member(make_user):
    return make_user(UserRole.MEMBER.value, email="member@test.com", hourly_rate=40)


def auth_headers_for(user) -> dict:
    """Log in through the API and return bearer headers."""
    response = client.post(
        "/api/auth/login",
        data={"username": user.email, "password": PASSWORD}
    )
    assert response.status_code == 200, response.text
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(admin):
    return auth_headers_for(admin)


def create_expense(organization_id, user_id, status="draft", amount=100, project_id=None, billable=False):
    """Insert an expense directly in the given status."""
    db = TestingSessionLocal()
    expense = Expense(
        organization_id=organization_id,
        user_id=user_id,
        project_id=project_id,
        amount=Decimal(str(amount)),
        billable=billable,
        status=status
    )
    db.add(expense)
    db.commit()
    expense_id = expense.id
    db.close()
    return expense_id


def create_project(organization_id, name="Website", **kwargs):
    db = TestingSessionLocal()
    project = Project(organization_id=organization_id, name=name, **kwargs)
    db.add(project)
    db.commit()
    project_id = project.id
    db.close()
    return project_id


def get_expense_status(expense_id):
    db = TestingSessionLocal()
    status = db.query(Expense.status).filter(Expense.id == expense_id).scalar()
    db.close()
    return status

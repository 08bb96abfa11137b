"""
Shared fixtures: an in-memory database behind the app and a few seeded records.
Environment must be set before the app modules are imported.
"""
import os

os.environ.setdefault("JWT_SECRET", "test-secret-key")
os.environ["USE_SQLITE"] = "true"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.pop("SHOPIFY_STORE_URL", None)
os.environ.pop("SHOPIFY_ACCESS_TOKEN", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from main import app
from database import get_session
from auth import create_access_token, build_token_claims, get_password_hash
from models import (
    District, Team, User, Doctor, Patient, Product, Distributor, City,
    UserRole, RecordStatus, DistributorChannel,
)
from services.shopify_service import get_shopify_client

TEST_PASSWORD = "Secret123!"


@pytest.fixture(name="session")
def session_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(session: Session):
    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_shopify_client] = lambda: None
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


def auth_headers(account, role, city_id=None) -> dict:
    role_value = role.value if isinstance(role, UserRole) else role
    token = create_access_token(build_token_claims(account, role_value, city_id=city_id))
    return {"Authorization": f"Bearer {token}"}


def add(session: Session, record):
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def make_user(session: Session, email: str, role: UserRole = UserRole.SUPER_ADMIN, **fields) -> User:
    fields.setdefault("name", email.split("@")[0].title())
    return add(session, User(
        email=email,
        password_hash=get_password_hash(TEST_PASSWORD),
        role=role.value,
        **fields,
    ))


def make_doctor(session: Session, email: str, district: District, team: Team, **fields) -> Doctor:
    fields.setdefault("name", f"Dr. {email.split('@')[0].title()}")
    fields.setdefault("phone", "03001234567")
    fields.setdefault("pmdc_number", f"PMDC-{email.split('@')[0].upper()}")
    fields.setdefault("specialty", "Dermatology")
    return add(session, Doctor(
        email=email,
        password_hash=get_password_hash(TEST_PASSWORD),
        district_id=district.id,
        team_id=team.id,
        **fields,
    ))


def make_distributor(session: Session, email: str, **fields) -> Distributor:
    fields.setdefault("name", "Karachi Pharma Traders")
    fields.setdefault("phone", "02134567890")
    return add(session, Distributor(
        email=email,
        password_hash=get_password_hash(TEST_PASSWORD),
        **fields,
    ))


@pytest.fixture
def district(session: Session) -> District:
    return add(session, District(name="Lahore", code="LHR"))


@pytest.fixture
def team(session: Session, district: District) -> Team:
    return add(session, Team(name="Derma North", district_id=district.id))


@pytest.fixture
def other_team(session: Session, district: District) -> Team:
    return add(session, Team(name="Derma South", district_id=district.id))


@pytest.fixture
def admin(session: Session) -> User:
    return make_user(session, "admin@dasteyaar.com", UserRole.SUPER_ADMIN, name="Super Administrator")


@pytest.fixture
def admin_headers(admin: User) -> dict:
    return auth_headers(admin, UserRole.SUPER_ADMIN)


@pytest.fixture
def kam(session: Session, district: District, team: Team) -> User:
    return make_user(session, "kam@dasteyaar.com", UserRole.KAM, district_id=district.id, team_id=team.id)


@pytest.fixture
def kam_headers(kam: User) -> dict:
    return auth_headers(kam, UserRole.KAM)


@pytest.fixture
def doctor(session: Session, district: District, team: Team) -> Doctor:
    return make_doctor(session, "ayesha@dasteyaar.com", district, team)


@pytest.fixture
def patient(session: Session, doctor: Doctor) -> Patient:
    return add(session, Patient(
        mrn="MRN-0001",
        name="Bilal Ahmed",
        phone="03111234567",
        age=34,
        gender="male",
        address="12 Mall Road",
        city="Karachi",
        created_by=doctor.id,
    ))


@pytest.fixture
def product(session: Session) -> Product:
    return add(session, Product(name="Acne Clear Gel", sku="ACG-30", price=850.0))


@pytest.fixture
def distributor(session: Session) -> Distributor:
    return make_distributor(session, "distributor@dasteyaar.com")


@pytest.fixture
def city(session: Session, district: District, distributor: Distributor) -> City:
    return add(session, City(
        name="Karachi",
        district_id=district.id,
        distributor_channel=DistributorChannel.LOCAL.value,
        distributor_id=distributor.id,
        status=RecordStatus.ACTIVE.value,
    ))

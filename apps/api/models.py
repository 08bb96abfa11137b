from typing import Optional, List
from datetime import datetime
from sqlmodel import Field, SQLModel, Relationship
from sqlalchemy import Column, JSON, UniqueConstraint
from enum import Enum

class UserRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    KAM = "kam"
    DISTRIBUTOR = "distributor"

# Roles that can be stored on a User row; distributors live in their own table
STAFF_ROLES = (UserRole.SUPER_ADMIN.value, UserRole.KAM.value)

class RecordStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"

class DistributorChannel(str, Enum):
    PILLBOX = "pillbox"
    LOCAL = "local"

class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"

class PrescriptionPriority(str, Enum):
    NORMAL = "normal"
    URGENT = "urgent"
    EMERGENCY = "emergency"

class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"

class FinancialStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"

class FulfillmentStatus(str, Enum):
    UNFULFILLED = "unfulfilled"
    FULFILLED = "fulfilled"
    PARTIAL = "partial"

def enum_values(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


# ==================== GEOGRAPHY ====================

class District(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    code: str = Field(unique=True, index=True)  # Stored upper-case
    status: str = Field(default=RecordStatus.ACTIVE.value, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    cities: List["City"] = Relationship(back_populates="district")
    teams: List["Team"] = Relationship(back_populates="district")

class Distributor(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    password_hash: str
    name: str
    phone: str
    status: str = Field(default=RecordStatus.ACTIVE.value, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    cities: List["City"] = Relationship(back_populates="distributor")

class City(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    district_id: Optional[int] = Field(default=None, foreign_key="district.id", index=True)
    distributor_channel: str = Field(default=DistributorChannel.PILLBOX.value)
    distributor_id: Optional[int] = Field(default=None, foreign_key="distributor.id", index=True)
    status: str = Field(default=RecordStatus.ACTIVE.value, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    district: Optional[District] = Relationship(back_populates="cities")
    distributor: Optional[Distributor] = Relationship(back_populates="cities")


# ==================== STAFF ====================

class Team(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    description: Optional[str] = None
    district_id: int = Field(foreign_key="district.id", index=True)
    status: str = Field(default=RecordStatus.ACTIVE.value, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    district: Optional[District] = Relationship(back_populates="teams")

class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    password_hash: str
    name: str
    role: str = Field(default=UserRole.KAM.value, index=True)
    district_id: Optional[int] = Field(default=None, foreign_key="district.id", index=True)
    team_id: Optional[int] = Field(default=None, foreign_key="team.id", index=True)
    status: str = Field(default=RecordStatus.ACTIVE.value, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    district: Optional[District] = Relationship()
    team: Optional[Team] = Relationship()

class Doctor(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    password_hash: str
    name: str
    phone: str
    pmdc_number: str
    specialty: str
    district_id: int = Field(foreign_key="district.id", index=True)
    team_id: int = Field(foreign_key="team.id", index=True)
    kam_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    status: str = Field(default=RecordStatus.ACTIVE.value, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    district: Optional[District] = Relationship()
    team: Optional[Team] = Relationship()
    kam: Optional[User] = Relationship()


# ==================== CLINICAL ====================

class Patient(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    mrn: str = Field(unique=True, index=True)
    name: str
    phone: str
    age: Optional[int] = Field(default=None, ge=0)
    gender: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    created_by: int = Field(foreign_key="doctor.id", index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    creator: Optional[Doctor] = Relationship()

class Prescription(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    mrn: str = Field(index=True)
    patient_id: int = Field(foreign_key="patient.id", index=True)
    doctor_id: int = Field(foreign_key="doctor.id", index=True)
    district_id: int = Field(foreign_key="district.id", index=True)
    prescription_text: str
    prescription_files: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    duration_days: int = Field(ge=1)
    priority: str = Field(default=PrescriptionPriority.NORMAL.value)
    # Snapshot of the catalog product at prescribing time:
    # {product_id, name, sku, price, quantity}
    selected_product: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    diagnosis: Optional[str] = None
    notes: Optional[str] = None
    shopify_order_id: Optional[str] = Field(default=None, index=True)
    order_status: str = Field(default=OrderStatus.PENDING.value, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    patient: Optional[Patient] = Relationship()
    doctor: Optional[Doctor] = Relationship()
    district: Optional[District] = Relationship()

class Order(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    prescription_id: int = Field(foreign_key="prescription.id", unique=True)
    shopify_order_id: str = Field(unique=True, index=True)  # "LOCAL-..." for orders created here
    shopify_order_number: Optional[str] = Field(default=None, index=True)

    # Patient snapshot
    patient_mrn: str = Field(index=True)
    patient_name: str
    patient_phone: Optional[str] = None
    patient_address: Optional[str] = None
    patient_city_id: Optional[int] = Field(default=None, foreign_key="city.id", index=True)
    patient_city_name: Optional[str] = None

    # Doctor snapshot
    doctor_id: int = Field(foreign_key="doctor.id", index=True)
    doctor_name: str
    doctor_district_id: Optional[int] = Field(default=None, foreign_key="district.id", index=True)

    order_status: str = Field(default=OrderStatus.PENDING.value, index=True)
    financial_status: str = Field(default=FinancialStatus.PENDING.value)
    fulfillment_status: str = Field(default=FulfillmentStatus.UNFULFILLED.value)
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    total_amount: float = Field(default=0.0, ge=0)
    currency: str = Field(default="PKR")
    shopify_created_at: Optional[datetime] = None
    shopify_updated_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    prescription: Optional[Prescription] = Relationship()


# ==================== CATALOG ====================

class Product(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    sku: str = Field(unique=True, index=True)  # Stored upper-case
    description: Optional[str] = None
    price: float = Field(ge=0)
    shopify_product_id: Optional[str] = Field(default=None, index=True)
    shopify_variant_id: Optional[str] = Field(default=None, index=True)
    status: str = Field(default=RecordStatus.ACTIVE.value, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

class TeamProduct(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("team_id", "product_id", name="uq_team_product"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    team_id: int = Field(foreign_key="team.id", index=True)
    product_id: int = Field(foreign_key="product.id", index=True)
    assigned_by: Optional[int] = Field(default=None, foreign_key="user.id")
    assigned_at: datetime = Field(default_factory=datetime.utcnow)
    status: str = Field(default=RecordStatus.ACTIVE.value)

class Banner(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: Optional[str] = None
    image_url: str
    image_public_id: Optional[str] = None  # CDN identifier of the hosted image
    display_order: int = Field(default=0, index=True)
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

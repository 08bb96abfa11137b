from typing import Optional, List, Any
from pydantic import BaseModel, EmailStr
from datetime import datetime

# Request schemas
# Required fields are Optional here and checked in the routers so that a
# missing field produces the resource's own 400 message.

class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

class StatusUpdate(BaseModel):
    status: Optional[str] = None

class DistrictCreate(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    status: Optional[str] = None

class DistrictUpdate(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    status: Optional[str] = None

class DistrictCityCreate(BaseModel):
    name: Optional[str] = None
    distributor_channel: Optional[str] = None
    distributor_id: Optional[int] = None

class DistrictCityUpdate(BaseModel):
    name: Optional[str] = None
    distributor_channel: Optional[str] = None
    distributor_id: Optional[int] = None
    status: Optional[str] = None

class CityCreate(BaseModel):
    name: Optional[str] = None
    distributor_channel: Optional[str] = None
    district_id: Optional[int] = None
    distributor_id: Optional[int] = None
    # Inline distributor account for local-channel cities
    distributor_name: Optional[str] = None
    distributor_email: Optional[EmailStr] = None
    distributor_phone: Optional[str] = None
    distributor_password: Optional[str] = None
    status: Optional[str] = None

class CityUpdate(BaseModel):
    name: Optional[str] = None
    status: Optional[str] = None

class DistributorCreate(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[str] = None

class DistributorUpdate(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[str] = None

class TeamCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    district_id: Optional[int] = None
    status: Optional[str] = None

class TeamUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    district_id: Optional[int] = None
    status: Optional[str] = None

class TeamProductsUpdate(BaseModel):
    product_ids: Any = None

class UserCreate(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    name: Optional[str] = None
    role: Optional[str] = None
    district_id: Optional[int] = None
    team_id: Optional[int] = None
    status: Optional[str] = None

class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    name: Optional[str] = None
    role: Optional[str] = None
    district_id: Optional[int] = None
    team_id: Optional[int] = None
    status: Optional[str] = None

class DoctorCreate(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    district_id: Optional[int] = None
    team_id: Optional[int] = None
    pmdc_number: Optional[str] = None
    specialty: Optional[str] = None
    status: Optional[str] = None

class DoctorUpdate(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    district_id: Optional[int] = None
    team_id: Optional[int] = None
    pmdc_number: Optional[str] = None
    specialty: Optional[str] = None
    status: Optional[str] = None

class PatientCreate(BaseModel):
    mrn: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    created_by: Optional[int] = None

class PatientUpdate(BaseModel):
    mrn: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None

class PrescriptionCreate(BaseModel):
    patient_id: Optional[int] = None
    doctor_id: Optional[int] = None
    prescription_text: Optional[str] = None
    prescription_files: List[str] = []
    duration_days: Optional[int] = None
    priority: Optional[str] = None
    product_id: Optional[int] = None
    quantity: int = 1
    diagnosis: Optional[str] = None
    notes: Optional[str] = None

class PrescriptionUpdate(BaseModel):
    prescription_text: Optional[str] = None
    prescription_files: Optional[List[str]] = None
    duration_days: Optional[int] = None
    priority: Optional[str] = None
    diagnosis: Optional[str] = None
    notes: Optional[str] = None
    order_status: Optional[str] = None

class OrderCreate(BaseModel):
    prescription_id: Optional[int] = None
    shopify_order_id: Optional[str] = None
    shopify_order_number: Optional[str] = None
    patient_city_id: Optional[int] = None
    total_amount: Optional[float] = None
    currency: Optional[str] = None

class OrderUpdate(BaseModel):
    order_status: Optional[str] = None
    financial_status: Optional[str] = None
    fulfillment_status: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None

class BulkSyncRequest(BaseModel):
    order_ids: Any = None

class ProductCreate(BaseModel):
    name: Optional[str] = None
    sku: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    status: Optional[str] = None

class ProductUpdate(BaseModel):
    name: Optional[str] = None
    sku: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    status: Optional[str] = None

class BannerCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    image_public_id: Optional[str] = None
    display_order: int = 0
    is_active: bool = True

class BannerUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    image_public_id: Optional[str] = None
    display_order: Optional[int] = None
    is_active: Optional[bool] = None


# Response schemas

class DistrictBrief(BaseModel):
    id: int
    name: str
    code: str

    class Config:
        from_attributes = True

class TeamBrief(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True

class UserBrief(BaseModel):
    id: int
    name: str
    email: str

    class Config:
        from_attributes = True

class DoctorBrief(BaseModel):
    id: int
    name: str
    email: str
    specialty: Optional[str] = None

    class Config:
        from_attributes = True

class PatientBrief(BaseModel):
    id: int
    mrn: str
    name: str
    phone: Optional[str] = None

    class Config:
        from_attributes = True

class DistributorBrief(BaseModel):
    id: int
    name: str
    email: str
    phone: str
    status: str

    class Config:
        from_attributes = True

class DistrictResponse(BaseModel):
    id: int
    name: str
    code: str
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class CityResponse(BaseModel):
    id: int
    name: str
    district_id: Optional[int] = None
    distributor_channel: str
    distributor_id: Optional[int] = None
    status: str
    district: Optional[DistrictBrief] = None
    distributor: Optional[DistributorBrief] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class DistributorResponse(BaseModel):
    id: int
    email: str
    name: str
    phone: str
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class TeamResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    district_id: int
    status: str
    district: Optional[DistrictBrief] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class UserResponse(BaseModel):
    id: int
    email: str
    name: str
    role: str
    district_id: Optional[int] = None
    team_id: Optional[int] = None
    status: str
    district: Optional[DistrictBrief] = None
    team: Optional[TeamBrief] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class DoctorResponse(BaseModel):
    id: int
    email: str
    name: str
    phone: str
    pmdc_number: str
    specialty: str
    district_id: int
    team_id: int
    kam_id: Optional[int] = None
    status: str
    district: Optional[DistrictBrief] = None
    team: Optional[TeamBrief] = None
    kam: Optional[UserBrief] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class PatientResponse(BaseModel):
    id: int
    mrn: str
    name: str
    phone: str
    age: Optional[int] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    created_by: int
    creator: Optional[DoctorBrief] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class PrescriptionResponse(BaseModel):
    id: int
    mrn: str
    patient_id: int
    doctor_id: int
    district_id: int
    prescription_text: str
    prescription_files: List[str] = []
    duration_days: int
    priority: str
    selected_product: Optional[dict] = None
    diagnosis: Optional[str] = None
    notes: Optional[str] = None
    shopify_order_id: Optional[str] = None
    order_status: str
    patient: Optional[PatientBrief] = None
    doctor: Optional[DoctorBrief] = None
    district: Optional[DistrictBrief] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class PatientInfo(BaseModel):
    mrn: str
    name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    city_id: Optional[int] = None
    city_name: Optional[str] = None

class DoctorInfo(BaseModel):
    doctor_id: int
    name: str
    district_id: Optional[int] = None

class OrderResponse(BaseModel):
    id: int
    prescription_id: int
    shopify_order_id: str
    shopify_order_number: Optional[str] = None
    patient_info: PatientInfo
    doctor_info: DoctorInfo
    order_status: str
    financial_status: str
    fulfillment_status: str
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    total_amount: float
    currency: str
    shopify_created_at: Optional[datetime] = None
    shopify_updated_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        """Nest the flattened patient/doctor snapshot columns"""
        return cls(
            id=order.id,
            prescription_id=order.prescription_id,
            shopify_order_id=order.shopify_order_id,
            shopify_order_number=order.shopify_order_number,
            patient_info=PatientInfo(
                mrn=order.patient_mrn,
                name=order.patient_name,
                phone=order.patient_phone,
                address=order.patient_address,
                city_id=order.patient_city_id,
                city_name=order.patient_city_name,
            ),
            doctor_info=DoctorInfo(
                doctor_id=order.doctor_id,
                name=order.doctor_name,
                district_id=order.doctor_district_id,
            ),
            order_status=order.order_status,
            financial_status=order.financial_status,
            fulfillment_status=order.fulfillment_status,
            tracking_number=order.tracking_number,
            tracking_url=order.tracking_url,
            total_amount=order.total_amount,
            currency=order.currency,
            shopify_created_at=order.shopify_created_at,
            shopify_updated_at=order.shopify_updated_at,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )

class ProductResponse(BaseModel):
    id: int
    name: str
    sku: str
    description: Optional[str] = None
    price: float
    shopify_product_id: Optional[str] = None
    shopify_variant_id: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class BannerResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    image_url: str
    image_public_id: Optional[str] = None
    display_order: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

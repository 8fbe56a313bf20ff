"""
Database Schemas for the EcoWaste pickup platform

Each Pydantic model corresponds to a MongoDB collection (lowercased class name).
Request bodies accepted by the API follow below the collection models.
"""
from pydantic import BaseModel, Field, EmailStr
from typing import Optional, List, Literal, Union
from datetime import datetime

UserType = Literal["home", "business"]
WasteType = Literal["general", "recyclable", "organic", "electronic", "hazardous"]
PickupStatus = Literal["pending", "assigned", "completed", "cancelled"]
PaymentStatus = Literal["pending", "paid", "failed"]
Priority = Literal["low", "medium", "high"]
ComplaintType = Literal[
    "missed_pickup", "late_pickup", "incomplete_collection", "driver_behavior", "billing_issue", "other"
]
ComplaintStatus = Literal["pending", "in_progress", "resolved", "closed"]
WorkerRole = Literal["driver", "collector", "supervisor"]
WorkerStatus = Literal["active", "on-leave", "inactive"]
VehicleType = Literal["truck", "van", "other"]
VehicleStatus = Literal["active", "maintenance", "retired"]


class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address")
    password_hash: str = Field(..., description="BCrypt hash")
    user_type: UserType = Field("home", description="Home or business account")
    status: str = "active"
    location: str = "Unknown"
    phone: Optional[str] = None
    address: Optional[str] = None
    profile_picture: str = ""
    join_date: Optional[datetime] = None
    last_active: Optional[datetime] = None
    # Eco wallet, only moved by the ledger or admin edits
    total_pickups: int = 0
    eco_points: int = 0
    discount_balance: float = 0
    co2_saved: float = 0


class Admin(BaseModel):
    name: Optional[str] = None
    email: EmailStr
    password_hash: str


class Pickup(BaseModel):
    user_id: str = Field(..., description="Owning account id")
    user_name: str
    user_phone: str
    location: str
    waste_type: WasteType
    date: str
    time: str
    status: PickupStatus = "pending"
    priority: Priority = "medium"
    service_type: UserType
    assigned_vehicle: Optional[str] = None
    driver_id: Optional[str] = None
    waste_count: float = 0
    waste_unit: str = "kg"
    # Derived once at creation
    weight: float = 0
    points_earned: int = 0
    co2_saved: float = 0
    cost: float = 0
    discount: float = 0
    discount_added: int = 0
    final_amount: float = 0
    payment_status: PaymentStatus = "pending"
    payment_id: Optional[str] = None
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Complaint(BaseModel):
    user_id: str
    type: ComplaintType
    description: str = Field(..., max_length=500)
    status: ComplaintStatus = "pending"
    priority: Priority = "medium"
    admin_response: str = ""
    resolved_at: Optional[datetime] = None


class Worker(BaseModel):
    name: str
    role: WorkerRole
    phone: str
    assigned_vehicle: str = Field("N/A", description="License plate or vehicle id")
    status: WorkerStatus = "active"
    join_date: Optional[datetime] = None
    total_trips: int = 0


class Vehicle(BaseModel):
    name: str
    type: VehicleType
    license_plate: str
    capacity: float = Field(..., ge=0, description="Capacity in kg")
    status: VehicleStatus = "active"


# ------------------ Request bodies ------------------

class PickupCreate(BaseModel):
    user_name: str = Field(..., min_length=1)
    user_phone: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    waste_type: WasteType
    date: str
    time: str
    priority: Priority = "medium"
    service_type: UserType
    waste_count: float = Field(..., ge=0)
    waste_unit: str = "kg"


class PickupAssign(BaseModel):
    driver_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    status: Optional[PickupStatus] = None


class PickupStatusUpdate(BaseModel):
    status: PickupStatus


class CreateOrderRequest(BaseModel):
    pickup_id: str
    final_amount: Optional[Union[float, str]] = None


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


class PaymentFailedRequest(BaseModel):
    razorpay_order_id: str
    reason: Optional[str] = None


class ComplaintCreate(BaseModel):
    type: ComplaintType
    description: str = Field(..., min_length=1, max_length=500)
    priority: Priority = "medium"


class ComplaintStatusUpdate(BaseModel):
    status: ComplaintStatus
    admin_response: Optional[str] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    profile_picture: Optional[str] = None
    user_type: Optional[UserType] = None


class AdminUserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    status: Optional[str] = None
    location: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class AdminCredentials(BaseModel):
    name: Optional[str] = None
    email: EmailStr
    password: str = Field(..., min_length=1)


class WorkerCreate(BaseModel):
    name: str = Field(..., min_length=1)
    role: WorkerRole
    phone: str = Field(..., min_length=1)
    assigned_vehicle: str = "N/A"
    status: WorkerStatus = "active"


class WorkerUpdate(BaseModel):
    name: Optional[str] = None
    role: Optional[WorkerRole] = None
    phone: Optional[str] = None
    assigned_vehicle: Optional[str] = None
    status: Optional[WorkerStatus] = None
    total_trips: Optional[int] = Field(None, ge=0)


class VehicleCreate(BaseModel):
    name: str = Field(..., min_length=1)
    type: VehicleType
    license_plate: str = Field(..., min_length=1)
    capacity: float = Field(..., ge=0)
    status: VehicleStatus = "active"


class VehicleUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[VehicleType] = None
    license_plate: Optional[str] = None
    capacity: Optional[float] = Field(None, ge=0)
    status: Optional[VehicleStatus] = None

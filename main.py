import logging
import os
from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import FastAPI, HTTPException, Depends, Form, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import EmailStr
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import accounts
import complaints
import fleet
import ledger
import payments
import pickups
import reports
from auth import TOKEN_COOKIE, Token, create_access_token, get_current_user, require_admin
from config import (
    PaymentSettings,
    PricingTable,
    Settings,
    configure_logging,
    get_payment_settings,
    get_pricing,
    get_settings,
    settings,
)
from database import db, ensure_indexes, get_db, serialize
from errors import ServiceError
from schemas import (
    AdminCredentials,
    AdminUserUpdate,
    ComplaintCreate,
    ComplaintStatusUpdate,
    CreateOrderRequest,
    PaymentFailedRequest,
    PickupAssign,
    PickupCreate,
    PickupStatusUpdate,
    ProfileUpdate,
    UserType,
    VehicleCreate,
    VehicleUpdate,
    VerifyPaymentRequest,
    WorkerCreate,
    WorkerUpdate,
)

configure_logging(settings.log_level)
logger = logging.getLogger("ecowaste")


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        ensure_indexes(db)
    except PyMongoError as e:
        logger.warning("Could not ensure indexes: %s", e)
    yield


app = FastAPI(title="EcoWaste Pickup API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ------------------ Error responses ------------------
@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [{"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]} for e in exc.errors()]
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})


def get_gateway(payment_settings: PaymentSettings = Depends(get_payment_settings)) -> payments.RazorpayGateway:
    return payments.RazorpayGateway(payment_settings)


def _issue_token(response: Response, subject: str, role: str, cfg: Settings) -> Dict[str, str]:
    token = create_access_token({"sub": subject, "role": role}, cfg)
    response.set_cookie(TOKEN_COOKIE, token, httponly=True, samesite="lax")
    return {"access_token": token, "token_type": "bearer"}


# ------------------ Public & Utility ------------------
@app.get("/")
def read_root():
    return {"message": "EcoWaste Pickup Backend Running"}


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    try:
        collections = db.list_collection_names()
        return {
            "backend": "✅ Running",
            "database": "✅ Connected",
            "collections": collections[:10]
        }
    except Exception as e:
        return {"backend": "✅ Running", "database": f"❌ {str(e)[:80]}"}


# ------------------ User Auth & Profile ------------------
@app.post("/api/user/register", response_model=Token, status_code=201)
def register(
    response: Response,
    name: str = Form(...),
    email: EmailStr = Form(...),
    password: str = Form(...),
    user_type: UserType = Form("home"),
    phone: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    db: Database = Depends(get_db),
    cfg: Settings = Depends(get_settings),
):
    uid = accounts.register_user(db, name, email, password, user_type, phone, address)
    return _issue_token(response, uid, "user", cfg)


@app.post("/api/user/login", response_model=Token)
def login(
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Database = Depends(get_db),
    cfg: Settings = Depends(get_settings),
):
    user = accounts.authenticate_user(db, form_data.username, form_data.password)
    if not user:
        raise HTTPException(status_code=400, detail="Incorrect email or password")
    return _issue_token(response, str(user["_id"]), "user", cfg)


@app.get("/api/user/profile")
def get_profile(user=Depends(get_current_user)):
    return serialize(user)


@app.put("/api/user/profile")
def put_profile(body: ProfileUpdate, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return accounts.update_profile(db, user["_id"], body)


@app.get("/api/user/wallet")
def get_wallet(user=Depends(get_current_user), db: Database = Depends(get_db)):
    return ledger.wallet(db, user["_id"])


# ------------------ Admin Auth ------------------
@app.post("/api/admin/auth/register")
def admin_register(body: AdminCredentials, db: Database = Depends(get_db)):
    admin_id = accounts.register_admin(db, body.email, body.password, body.name)
    return {"ok": True, "admin": {"id": admin_id, "email": body.email}}


@app.post("/api/admin/auth/login")
def admin_login(
    body: AdminCredentials,
    response: Response,
    db: Database = Depends(get_db),
    cfg: Settings = Depends(get_settings),
):
    admin = accounts.authenticate_admin(db, body.email, body.password)
    if not admin:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    token = _issue_token(response, str(admin["_id"]), "admin", cfg)
    return {"ok": True, "token": token["access_token"]}


@app.post("/api/admin/auth/logout")
def admin_logout(response: Response):
    response.delete_cookie(TOKEN_COOKIE)
    return {"ok": True}


# ------------------ Pickups ------------------
@app.post("/api/pickups", status_code=201)
def create_pickup(
    body: PickupCreate,
    user=Depends(get_current_user),
    db: Database = Depends(get_db),
    pricing: PricingTable = Depends(get_pricing),
):
    return pickups.create_pickup(db, user, body, pricing)


@app.get("/api/pickups/my-pickups")
def my_pickups(user=Depends(get_current_user), db: Database = Depends(get_db)):
    return pickups.list_user_pickups(db, user["_id"])


@app.get("/api/pickups/{pickup_id}")
def get_pickup(pickup_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    pickup = pickups.get_pickup(db, pickup_id)
    if pickup["user_id"] != str(user["_id"]):
        raise HTTPException(status_code=403, detail="Not authorized to view this pickup")
    return pickup


@app.get("/api/admin/pickups")
def admin_list_pickups(status: Optional[str] = None, admin=Depends(require_admin), db: Database = Depends(get_db)):
    return pickups.list_pickups(db, status)


@app.put("/api/admin/pickups/{pickup_id}/assign")
def admin_assign_pickup(pickup_id: str, body: PickupAssign, admin=Depends(require_admin),
                        db: Database = Depends(get_db)):
    return pickups.assign_pickup(db, pickup_id, body)


@app.put("/api/admin/pickups/{pickup_id}/status")
def admin_pickup_status(pickup_id: str, body: PickupStatusUpdate, admin=Depends(require_admin),
                        db: Database = Depends(get_db)):
    return pickups.update_pickup_status(db, pickup_id, body.status)


# ------------------ Payments ------------------
@app.post("/api/payments/create-order")
def create_order(
    body: CreateOrderRequest,
    user=Depends(get_current_user),
    db: Database = Depends(get_db),
    gateway: payments.RazorpayGateway = Depends(get_gateway),
    payment_settings: PaymentSettings = Depends(get_payment_settings),
):
    return payments.create_order(db, gateway, payment_settings, user["_id"], body.pickup_id, body.final_amount)


@app.post("/api/payments/verify-payment")
def verify_payment(
    body: VerifyPaymentRequest,
    user=Depends(get_current_user),
    db: Database = Depends(get_db),
    payment_settings: PaymentSettings = Depends(get_payment_settings),
):
    return payments.verify_payment(db, payment_settings, user["_id"], body)


@app.post("/api/payments/payment-failed")
def payment_failed(body: PaymentFailedRequest, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return payments.record_payment_failure(db, user["_id"], body.razorpay_order_id, body.reason)


# ------------------ Complaints ------------------
@app.post("/api/complaints", status_code=201)
def create_complaint(body: ComplaintCreate, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return complaints.create_complaint(db, user["_id"], body)


@app.get("/api/complaints/my-complaints")
def my_complaints(user=Depends(get_current_user), db: Database = Depends(get_db)):
    return complaints.list_user_complaints(db, user["_id"])


@app.get("/api/admin/complaints")
def admin_list_complaints(admin=Depends(require_admin), db: Database = Depends(get_db)):
    return complaints.list_complaints(db)


@app.put("/api/admin/complaints/{complaint_id}/status")
def admin_complaint_status(complaint_id: str, body: ComplaintStatusUpdate, admin=Depends(require_admin),
                           db: Database = Depends(get_db)):
    return complaints.update_complaint_status(db, complaint_id, body.status, body.admin_response)


# ------------------ Admin: Users ------------------
@app.get("/api/admin/users")
def admin_list_users(admin=Depends(require_admin), db: Database = Depends(get_db)):
    return accounts.list_users(db)


@app.put("/api/admin/users/{user_id}")
def admin_update_user(user_id: str, body: AdminUserUpdate, admin=Depends(require_admin),
                      db: Database = Depends(get_db)):
    return accounts.admin_update_user(db, user_id, body)


@app.delete("/api/admin/users/{user_id}")
def admin_delete_user(user_id: str, admin=Depends(require_admin), db: Database = Depends(get_db)):
    return accounts.delete_user(db, user_id)


# ------------------ Admin: Workers ------------------
@app.post("/api/admin/workers", status_code=201)
def admin_add_worker(body: WorkerCreate, admin=Depends(require_admin), db: Database = Depends(get_db)):
    return fleet.add_worker(db, body)


@app.get("/api/admin/workers")
def admin_list_workers(admin=Depends(require_admin), db: Database = Depends(get_db)):
    return fleet.list_workers(db)


@app.put("/api/admin/workers/{worker_id}")
def admin_update_worker(worker_id: str, body: WorkerUpdate, admin=Depends(require_admin),
                        db: Database = Depends(get_db)):
    return fleet.update_worker(db, worker_id, body)


@app.delete("/api/admin/workers/{worker_id}")
def admin_delete_worker(worker_id: str, admin=Depends(require_admin), db: Database = Depends(get_db)):
    return fleet.delete_worker(db, worker_id)


# ------------------ Admin: Vehicles ------------------
@app.post("/api/admin/vehicles", status_code=201)
def admin_add_vehicle(body: VehicleCreate, admin=Depends(require_admin), db: Database = Depends(get_db)):
    return fleet.add_vehicle(db, body)


@app.get("/api/admin/vehicles")
def admin_list_vehicles(admin=Depends(require_admin), db: Database = Depends(get_db)):
    return fleet.list_vehicles(db)


@app.put("/api/admin/vehicles/{vehicle_id}")
def admin_update_vehicle(vehicle_id: str, body: VehicleUpdate, admin=Depends(require_admin),
                         db: Database = Depends(get_db)):
    return fleet.update_vehicle(db, vehicle_id, body)


@app.delete("/api/admin/vehicles/{vehicle_id}")
def admin_delete_vehicle(vehicle_id: str, admin=Depends(require_admin), db: Database = Depends(get_db)):
    return fleet.delete_vehicle(db, vehicle_id)


# ------------------ Admin: Reports ------------------
@app.get("/api/admin/reports")
def admin_reports(admin=Depends(require_admin), db: Database = Depends(get_db)):
    return reports.build_report(db)


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)

"""
Pickup lifecycle: quoting, creation, assignment and status transitions.

Derived fields (weight, points, CO2, cost, discount) are computed once when a
pickup is created and are never recomputed afterwards.
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import PricingTable
from database import create_document, get_documents, oid, serialize, utcnow
from errors import ConflictError, NotFoundError
from ledger import LedgerCredit, credit_pickup
from schemas import Pickup, PickupAssign, PickupCreate

logger = logging.getLogger(__name__)

PICKUP_TRANSITIONS = {
    "pending": {"assigned", "cancelled"},
    "assigned": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}


@dataclass(frozen=True)
class PickupQuote:
    weight: float
    points_earned: int
    co2_saved: float
    cost: float
    final_amount: float
    discount_added: int
    payment_status: str


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def convert_weight(count: float, unit: str, pricing: PricingTable) -> float:
    # unknown units are taken to already be kilograms
    return count * pricing.unit_to_kg.get(unit, 1)


def compute_quote(request: PickupCreate, pricing: PricingTable) -> PickupQuote:
    weight = convert_weight(request.waste_count, request.waste_unit, pricing)
    points = round_half_up(weight * pricing.points_per_kg.get(request.waste_type, 0))
    co2 = weight * pricing.co2_per_kg.get(request.waste_type, 0)

    cost = 0.0
    discount_added = 0
    if request.service_type == "business":
        unit_price = pricing.unit_price.get(request.waste_type, pricing.default_unit_price)
        cost = unit_price * request.waste_count
        discount_added = round_half_up(cost * pricing.discount_rate)

    return PickupQuote(
        weight=weight,
        points_earned=points,
        co2_saved=co2,
        cost=cost,
        final_amount=cost,
        discount_added=discount_added,
        payment_status="pending" if request.service_type == "business" else "paid",
    )


def check_transition(current: str, new: str) -> None:
    if current == new:
        return
    if new not in PICKUP_TRANSITIONS.get(current, set()):
        raise ConflictError(f"Cannot move pickup from {current} to {new}")


def create_pickup(db: Database, account: Dict[str, Any], request: PickupCreate, pricing: PricingTable) -> Dict[str, Any]:
    quote = compute_quote(request, pricing)
    pickup = Pickup(
        user_id=str(account["_id"]),
        user_name=request.user_name,
        user_phone=request.user_phone,
        location=request.location,
        waste_type=request.waste_type,
        date=request.date,
        time=request.time,
        priority=request.priority,
        service_type=request.service_type,
        waste_count=request.waste_count,
        waste_unit=request.waste_unit,
        weight=quote.weight,
        points_earned=quote.points_earned,
        co2_saved=quote.co2_saved,
        cost=quote.cost,
        final_amount=quote.final_amount,
        discount_added=quote.discount_added,
        payment_status=quote.payment_status,
    )
    data = pickup.model_dump(exclude={"created_at", "updated_at"})
    data["user_id"] = account["_id"]
    pickup_id = create_document(db, "pickup", data)

    credit = LedgerCredit(points=quote.points_earned, discount=quote.discount_added, co2=quote.co2_saved)
    try:
        credit_pickup(db, account["_id"], credit)
    except (PyMongoError, NotFoundError):
        logger.exception("Ledger credit failed for pickup %s, removing it", pickup_id)
        db["pickup"].delete_one({"_id": oid(pickup_id)})
        raise

    logger.info("Pickup %s created for user %s (%s kg %s)", pickup_id, account["_id"], quote.weight, request.waste_type)
    return get_pickup(db, pickup_id)


def get_pickup(db: Database, pickup_id: str) -> Dict[str, Any]:
    doc = db["pickup"].find_one({"_id": oid(pickup_id)})
    if not doc:
        raise NotFoundError("Pickup not found")
    return serialize(doc)


def list_user_pickups(db: Database, user_id: Any) -> List[Dict[str, Any]]:
    docs = get_documents(db, "pickup", {"user_id": oid(user_id)}, sort=[("created_at", -1)])
    return [serialize(d) for d in docs]


def _populate(db: Database, doc: Dict[str, Any]) -> Dict[str, Any]:
    item = serialize(doc)
    if doc.get("user_id"):
        user = db["user"].find_one({"_id": doc["user_id"]}, {"name": 1, "email": 1})
        item["user"] = serialize(user)
    if doc.get("assigned_vehicle"):
        vehicle = db["vehicle"].find_one({"_id": doc["assigned_vehicle"]}, {"name": 1, "license_plate": 1})
        item["vehicle"] = serialize(vehicle)
    if doc.get("driver_id"):
        driver = db["worker"].find_one({"_id": doc["driver_id"]}, {"name": 1, "phone": 1})
        item["driver"] = serialize(driver)
    return item


def list_pickups(db: Database, status: Optional[str] = None) -> List[Dict[str, Any]]:
    filt = {"status": status} if status else {}
    docs = get_documents(db, "pickup", filt, sort=[("created_at", -1)])
    return [_populate(db, d) for d in docs]


def _apply_update(db: Database, pickup_id: str, update: Dict[str, Any], expected_status: str) -> Dict[str, Any]:
    # the write only lands if nobody moved the pickup since it was read
    update["updated_at"] = utcnow()
    doc = db["pickup"].find_one_and_update(
        {"_id": oid(pickup_id), "status": expected_status},
        {"$set": update},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        if not db["pickup"].find_one({"_id": oid(pickup_id)}, {"_id": 1}):
            raise NotFoundError("Pickup not found")
        raise ConflictError("Pickup was changed by another request, reload and retry")
    return _populate(db, doc)


def assign_pickup(db: Database, pickup_id: str, request: PickupAssign) -> Dict[str, Any]:
    current = db["pickup"].find_one({"_id": oid(pickup_id)})
    if not current:
        raise NotFoundError("Pickup not found")

    update: Dict[str, Any] = {}
    if request.driver_id:
        driver = oid(request.driver_id)
        if not db["worker"].find_one({"_id": driver}):
            raise NotFoundError("Worker not found")
        update["driver_id"] = driver
    if "vehicle_id" in request.model_fields_set:
        vehicle = None
        if request.vehicle_id:
            vehicle = oid(request.vehicle_id)
            if not db["vehicle"].find_one({"_id": vehicle}):
                raise NotFoundError("Vehicle not found")
        update["assigned_vehicle"] = vehicle
    if request.status:
        check_transition(current["status"], request.status)
        update["status"] = request.status

    pickup = _apply_update(db, pickup_id, update, current["status"])
    logger.info("Pickup %s assigned (driver=%s vehicle=%s status=%s)",
                pickup_id, request.driver_id, request.vehicle_id, pickup["status"])
    return pickup


def update_pickup_status(db: Database, pickup_id: str, status: str) -> Dict[str, Any]:
    current = db["pickup"].find_one({"_id": oid(pickup_id)})
    if not current:
        raise NotFoundError("Pickup not found")
    check_transition(current["status"], status)
    pickup = _apply_update(db, pickup_id, {"status": status}, current["status"])
    logger.info("Pickup %s status %s -> %s", pickup_id, current["status"], status)
    return pickup

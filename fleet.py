"""Worker and vehicle registry used when assigning pickups."""
import logging
from typing import Any, Dict, List

from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, get_documents, oid, serialize, utcnow
from errors import InvalidRequestError, NotFoundError
from schemas import Vehicle, VehicleCreate, VehicleUpdate, Worker, WorkerCreate, WorkerUpdate

logger = logging.getLogger(__name__)


def _update(db: Database, collection: str, item_id: str, changes: Dict[str, Any], label: str) -> Dict[str, Any]:
    changes["updated_at"] = utcnow()
    doc = db[collection].find_one_and_update(
        {"_id": oid(item_id)},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise NotFoundError(f"{label} not found")
    return serialize(doc)


def _delete(db: Database, collection: str, item_id: str, label: str) -> Dict[str, str]:
    result = db[collection].delete_one({"_id": oid(item_id)})
    if result.deleted_count == 0:
        raise NotFoundError(f"{label} not found")
    logger.info("%s %s removed", label, item_id)
    return {"message": f"{label} removed successfully"}


# ------------------ Workers ------------------

def add_worker(db: Database, request: WorkerCreate) -> Dict[str, Any]:
    if db["worker"].find_one({"phone": request.phone}):
        raise InvalidRequestError("Worker with this phone number already exists")
    worker = Worker(join_date=utcnow(), **request.model_dump())
    worker_id = create_document(db, "worker", worker)
    logger.info("Worker %s added (%s)", worker_id, request.role)
    return serialize(db["worker"].find_one({"_id": oid(worker_id)}))


def list_workers(db: Database) -> List[Dict[str, Any]]:
    return [serialize(d) for d in get_documents(db, "worker")]


def update_worker(db: Database, worker_id: str, request: WorkerUpdate) -> Dict[str, Any]:
    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    if "phone" in changes and db["worker"].find_one({"phone": changes["phone"], "_id": {"$ne": oid(worker_id)}}):
        raise InvalidRequestError("Worker with this phone number already exists")
    return _update(db, "worker", worker_id, changes, "Worker")


def delete_worker(db: Database, worker_id: str) -> Dict[str, str]:
    return _delete(db, "worker", worker_id, "Worker")


# ------------------ Vehicles ------------------

def add_vehicle(db: Database, request: VehicleCreate) -> Dict[str, Any]:
    if db["vehicle"].find_one({"license_plate": request.license_plate}):
        raise InvalidRequestError("Vehicle with this license plate already exists")
    vehicle_id = create_document(db, "vehicle", Vehicle(**request.model_dump()))
    logger.info("Vehicle %s added (%s)", vehicle_id, request.license_plate)
    return serialize(db["vehicle"].find_one({"_id": oid(vehicle_id)}))


def list_vehicles(db: Database) -> List[Dict[str, Any]]:
    return [serialize(d) for d in get_documents(db, "vehicle")]


def update_vehicle(db: Database, vehicle_id: str, request: VehicleUpdate) -> Dict[str, Any]:
    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    plate = changes.get("license_plate")
    if plate and db["vehicle"].find_one({"license_plate": plate, "_id": {"$ne": oid(vehicle_id)}}):
        raise InvalidRequestError("Vehicle with this license plate already exists")
    return _update(db, "vehicle", vehicle_id, changes, "Vehicle")


def delete_vehicle(db: Database, vehicle_id: str) -> Dict[str, str]:
    return _delete(db, "vehicle", vehicle_id, "Vehicle")

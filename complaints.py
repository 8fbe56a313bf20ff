import logging
from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, get_documents, oid, serialize, utcnow
from errors import ConflictError, NotFoundError
from schemas import Complaint, ComplaintCreate

logger = logging.getLogger(__name__)

COMPLAINT_TRANSITIONS = {
    "pending": {"in_progress", "resolved", "closed"},
    "in_progress": {"resolved", "closed"},
    "resolved": {"closed"},
    "closed": set(),
}


def _with_user(db: Database, doc: Dict[str, Any]) -> Dict[str, Any]:
    item = serialize(doc)
    user = db["user"].find_one({"_id": doc["user_id"]}, {"name": 1, "email": 1})
    item["user"] = serialize(user)
    return item


def create_complaint(db: Database, user_id: Any, request: ComplaintCreate) -> Dict[str, Any]:
    complaint = Complaint(user_id=str(user_id), **request.model_dump())
    data = complaint.model_dump()
    data["user_id"] = oid(user_id)
    complaint_id = create_document(db, "complaint", data)
    logger.info("Complaint %s (%s) filed by user %s", complaint_id, request.type, user_id)
    return _with_user(db, db["complaint"].find_one({"_id": oid(complaint_id)}))


def list_user_complaints(db: Database, user_id: Any) -> List[Dict[str, Any]]:
    docs = get_documents(db, "complaint", {"user_id": oid(user_id)}, sort=[("created_at", -1)])
    return [_with_user(db, d) for d in docs]


def list_complaints(db: Database) -> List[Dict[str, Any]]:
    docs = get_documents(db, "complaint", {}, sort=[("created_at", -1)])
    return [_with_user(db, d) for d in docs]


def update_complaint_status(db: Database, complaint_id: str, status: str,
                            admin_response: Optional[str] = None) -> Dict[str, Any]:
    current = db["complaint"].find_one({"_id": oid(complaint_id)})
    if not current:
        raise NotFoundError("Complaint not found")

    previous = current["status"]
    if status != previous and status not in COMPLAINT_TRANSITIONS.get(previous, set()):
        raise ConflictError(f"Cannot move complaint from {previous} to {status}")

    update: Dict[str, Any] = {"status": status, "updated_at": utcnow()}
    if admin_response:
        update["admin_response"] = admin_response
    if status == "resolved" and previous != "resolved":
        update["resolved_at"] = utcnow()

    doc = db["complaint"].find_one_and_update(
        {"_id": current["_id"], "status": previous},
        {"$set": update},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise ConflictError("Complaint was changed by another request, reload and retry")
    logger.info("Complaint %s status %s -> %s", complaint_id, previous, status)
    return _with_user(db, doc)

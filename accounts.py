"""Home/business accounts and admin logins."""
import logging
from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument
from pymongo.database import Database

from auth import get_password_hash, verify_password
from database import create_document, get_documents, oid, serialize, utcnow
from errors import InvalidRequestError, NotFoundError
from schemas import Admin, AdminUserUpdate, ProfileUpdate, User

logger = logging.getLogger(__name__)


def register_user(db: Database, name: str, email: str, password: str, user_type: str = "home",
                  phone: Optional[str] = None, address: Optional[str] = None) -> str:
    if db["user"].find_one({"email": email}):
        raise InvalidRequestError("Email already registered")
    now = utcnow()
    user = User(
        name=name,
        email=email,
        password_hash=get_password_hash(password),
        user_type=user_type,
        phone=phone,
        address=address,
        join_date=now,
        last_active=now,
    )
    user_id = create_document(db, "user", user)
    logger.info("Registered %s account %s", user_type, user_id)
    return user_id


def authenticate_user(db: Database, email: str, password: str) -> Optional[Dict[str, Any]]:
    user = db["user"].find_one({"email": email})
    if not user or not verify_password(password, user.get("password_hash", "")):
        return None
    db["user"].update_one({"_id": user["_id"]}, {"$set": {"last_active": utcnow()}})
    return user


def update_profile(db: Database, user_id: Any, request: ProfileUpdate) -> Dict[str, Any]:
    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    changes["updated_at"] = utcnow()
    doc = db["user"].find_one_and_update(
        {"_id": oid(user_id)},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise NotFoundError("User not found")
    return serialize(doc)


def register_admin(db: Database, email: str, password: str, name: Optional[str] = None) -> str:
    if db["admin"].find_one({"email": email}):
        raise InvalidRequestError("Admin exists")
    admin_id = create_document(db, "admin", Admin(name=name, email=email, password_hash=get_password_hash(password)))
    logger.info("Registered admin %s", admin_id)
    return admin_id


def authenticate_admin(db: Database, email: str, password: str) -> Optional[Dict[str, Any]]:
    admin = db["admin"].find_one({"email": email})
    if not admin or not verify_password(password, admin.get("password_hash", "")):
        return None
    return admin


# ------------------ Admin user management ------------------

def list_users(db: Database) -> List[Dict[str, Any]]:
    return [serialize(u) for u in get_documents(db, "user", {}, sort=[("created_at", -1)])]


def admin_update_user(db: Database, user_id: str, request: AdminUserUpdate) -> Dict[str, Any]:
    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    if "email" in changes and db["user"].find_one({"email": changes["email"], "_id": {"$ne": oid(user_id)}}):
        raise InvalidRequestError("Email already registered")
    now = utcnow()
    changes.update({"last_active": now, "updated_at": now})
    doc = db["user"].find_one_and_update(
        {"_id": oid(user_id)},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise NotFoundError("User not found")
    return serialize(doc)


def delete_user(db: Database, user_id: str) -> Dict[str, str]:
    result = db["user"].delete_one({"_id": oid(user_id)})
    if result.deleted_count == 0:
        raise NotFoundError("User not found")
    logger.info("User %s removed by admin", user_id)
    return {"message": "User removed successfully"}

"""
Eco wallet ledger.

Per-account running totals of pickups, eco points, discount balance and
CO2 saved. Pickup creation is the only writer outside of admin edits.
"""
import logging
from dataclasses import dataclass
from typing import Any

from pymongo.database import Database

from database import oid, utcnow
from errors import NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerCredit:
    points: int = 0
    discount: int = 0
    co2: float = 0.0


def credit_pickup(db: Database, user_id: Any, credit: LedgerCredit) -> None:
    result = db["user"].update_one(
        {"_id": oid(user_id)},
        {
            "$inc": {
                "total_pickups": 1,
                "eco_points": credit.points,
                "discount_balance": credit.discount,
                "co2_saved": credit.co2,
            },
            "$set": {"last_active": utcnow()},
        },
    )
    if result.matched_count == 0:
        raise NotFoundError("User not found")
    logger.info("Credited user %s: %s points, %s discount, %.2f kg CO2",
                user_id, credit.points, credit.discount, credit.co2)


def wallet(db: Database, user_id: Any) -> dict:
    user = db["user"].find_one({"_id": oid(user_id)})
    if not user:
        raise NotFoundError("User not found")
    return {
        "total_pickups": user.get("total_pickups", 0),
        "eco_points": user.get("eco_points", 0),
        "discount_balance": user.get("discount_balance", 0),
        "co2_saved": user.get("co2_saved", 0),
    }

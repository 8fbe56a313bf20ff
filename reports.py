"""
Admin reporting.

Read-only summary over users, fleet, pickups and complaints. Counts are read
one after another and are not a consistent snapshot; a write landing in the
middle can skew them slightly.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pymongo.database import Database

from database import utcnow

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
RECYCLED_WASTE_TYPES = ("recyclable", "organic", "electronic")
TREND_MONTHS = 6


def trailing_months(now: datetime, count: int = TREND_MONTHS) -> List[Tuple[int, int]]:
    """(year, month) pairs for the last `count` months, oldest first, ending with `now`'s month."""
    months = []
    for back in range(count - 1, -1, -1):
        index = now.year * 12 + (now.month - 1) - back
        months.append((index // 12, index % 12 + 1))
    return months


def month_label(year: int, month: int) -> str:
    return f"{MONTH_NAMES[month - 1]}-{str(year)[-2:]}"


def next_month_start(year: int, month: int) -> datetime:
    if month == 12:
        return datetime(year + 1, 1, 1)
    return datetime(year, month + 1, 1)


def percentage(part: float, whole: float) -> float:
    return round(part / whole * 100, 1) if whole else 0


def _trend_buckets(db: Database, now: datetime) -> List[Dict[str, Any]]:
    months = trailing_months(now)
    window_start = datetime(months[0][0], months[0][1], 1)

    buckets: Dict[Tuple[int, int], Dict[str, Any]] = {}
    cursor = db["pickup"].find(
        {"created_at": {"$gte": window_start}},
        {"created_at": 1, "status": 1, "user_id": 1, "weight": 1, "waste_type": 1},
    )
    for doc in cursor:
        created = doc["created_at"]
        bucket = buckets.setdefault((created.year, created.month), {
            "users": set(), "pickups": 0, "total_kg": 0.0, "recycled_kg": 0.0,
        })
        bucket["users"].add(str(doc.get("user_id")))
        if doc.get("status") == "completed":
            weight = doc.get("weight", 0) or 0
            bucket["pickups"] += 1
            bucket["total_kg"] += weight
            if doc.get("waste_type") in RECYCLED_WASTE_TYPES:
                bucket["recycled_kg"] += weight

    trends = []
    for year, month in months:
        bucket = buckets.get((year, month), {"users": set(), "pickups": 0, "total_kg": 0.0, "recycled_kg": 0.0})
        month_end = next_month_start(year, month)
        trends.append({
            "month": month_label(year, month),
            "users": len(bucket["users"]),
            "pickups": bucket["pickups"],
            "workers": db["worker"].count_documents({"created_at": {"$lt": month_end}}),
            "vehicles": db["vehicle"].count_documents({"created_at": {"$lt": month_end}}),
            "total_waste": round(bucket["total_kg"] / 1000, 3),
            "recycled_waste": round(bucket["recycled_kg"] / 1000, 3),
        })
    return trends


def build_report(db: Database, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    start_of_month = datetime(now.year, now.month, 1)
    start_of_year = datetime(now.year, 1, 1)

    total_users = db["user"].count_documents({})
    active_users = db["user"].count_documents({"status": "active"})
    total_workers = db["worker"].count_documents({})
    active_workers = db["worker"].count_documents({"status": "active"})
    on_leave_workers = db["worker"].count_documents({"status": "on-leave"})
    total_vehicles = db["vehicle"].count_documents({})
    active_vehicles = db["vehicle"].count_documents({"status": "active"})
    maintenance_vehicles = db["vehicle"].count_documents({"status": "maintenance"})
    total_pickups = db["pickup"].count_documents({})
    completed_pickups = db["pickup"].count_documents({"status": "completed"})
    pending_pickups = db["pickup"].count_documents({"status": "pending"})
    monthly_pickups = db["pickup"].count_documents({"status": "completed", "created_at": {"$gte": start_of_month}})
    yearly_pickups = db["pickup"].count_documents({"status": "completed", "created_at": {"$gte": start_of_year}})

    collected_kg = 0.0
    recycled_kg = 0.0
    for doc in db["pickup"].find({"status": "completed"}, {"weight": 1, "waste_type": 1}):
        weight = doc.get("weight", 0) or 0
        collected_kg += weight
        if doc.get("waste_type") in RECYCLED_WASTE_TYPES:
            recycled_kg += weight

    active_complaints = db["complaint"].count_documents({"status": {"$in": ["pending", "in_progress"]}})
    resolved_complaints = db["complaint"].count_documents({"status": "resolved"})
    closed_complaints = db["complaint"].count_documents({"status": "closed"})

    return {
        "summary": {
            "users": {"total": total_users, "active": active_users, "inactive": total_users - active_users},
            "workers": {"total": total_workers, "active": active_workers, "on_leave": on_leave_workers},
            "vehicles": {"total": total_vehicles, "active": active_vehicles,
                         "maintenance": maintenance_vehicles},
            "pickups": {"total": total_pickups, "completed": completed_pickups, "pending": pending_pickups,
                        "this_month": monthly_pickups, "this_year": yearly_pickups},
        },
        "metrics": {
            "waste_collected": completed_pickups,
            "waste_collected_kg": collected_kg,
            "recycling_rate": percentage(recycled_kg, collected_kg),
            "complaints": {
                "active": active_complaints,
                "resolved": resolved_complaints,
                "closed": closed_complaints,
                "total": active_complaints + resolved_complaints + closed_complaints,
            },
        },
        "efficiency": {
            "users": percentage(active_users, total_users),
            "workers": percentage(active_workers, total_workers),
            "vehicles": percentage(active_vehicles, total_vehicles),
            "pickups": percentage(completed_pickups, total_pickups),
        },
        "trends": {
            "monthly": _trend_buckets(db, now),
            "growth": {
                "users": percentage(monthly_pickups, total_users),
                "pickups": monthly_pickups,
                "waste": collected_kg,
            },
        },
        "last_updated": now,
    }

"""
Payment capture for business pickups through Razorpay.

An order is opened with the gateway for the amount due on a pickup, the
client completes checkout, and the returned signature is verified here
before the pickup is marked as paid.
"""
import hashlib
import hmac
import logging
import math
import time
from typing import Any, Dict, Optional, Union

from pymongo.database import Database

from config import PaymentSettings
from database import oid, utcnow
from errors import ConflictError, ForbiddenError, GatewayError, InvalidRequestError, NotFoundError
from schemas import VerifyPaymentRequest

logger = logging.getLogger(__name__)


class RazorpayGateway:
    def __init__(self, payment_settings: PaymentSettings):
        self.settings = payment_settings
        self._client = None

    @property
    def client(self):
        if self._client is None:
            if not self.settings.key_id or not self.settings.key_secret:
                raise GatewayError("Payment gateway is not configured")
            import razorpay
            self._client = razorpay.Client(auth=(self.settings.key_id, self.settings.key_secret))
        return self._client

    def create_order(self, amount: int, currency: str, receipt: str, notes: Dict[str, str]) -> Dict[str, Any]:
        try:
            return self.client.order.create(data={
                "amount": amount,
                "currency": currency,
                "receipt": receipt,
                "notes": notes,
            })
        except GatewayError:
            raise
        except Exception as e:
            logger.exception("Razorpay order creation failed")
            raise GatewayError(f"Failed to create order: {e}")


def resolve_charge_amount(requested: Optional[Union[float, str]], pickup: Dict[str, Any], fallback: float) -> float:
    """Explicit positive amount from the caller, else the stored bill, else the fallback."""
    if requested is not None:
        try:
            value = float(requested)
        except (TypeError, ValueError):
            value = 0
        if value > 0 and math.isfinite(value):
            return value
    return pickup.get("final_amount") or pickup.get("cost") or fallback


def _owned_pickup(pickup: Optional[Dict[str, Any]], user_id: Any) -> Dict[str, Any]:
    if not pickup:
        raise NotFoundError("Pickup not found")
    if str(pickup.get("user_id")) != str(user_id):
        raise ForbiddenError("Not authorized to pay for this pickup")
    return pickup


def create_order(
    db: Database,
    gateway: RazorpayGateway,
    payment_settings: PaymentSettings,
    user_id: Any,
    pickup_id: str,
    requested_amount: Optional[Union[float, str]] = None,
) -> Dict[str, Any]:
    pickup = _owned_pickup(db["pickup"].find_one({"_id": oid(pickup_id)}), user_id)
    if pickup.get("payment_status") == "paid":
        raise InvalidRequestError("Pickup already paid")

    amount = resolve_charge_amount(requested_amount, pickup, payment_settings.fallback_amount)
    order = gateway.create_order(
        amount=int(round(amount * 100)),  # paise
        currency=payment_settings.currency,
        receipt=f"pickup_{pickup_id}_{int(time.time() * 1000)}",
        notes={"pickup_id": str(pickup["_id"]), "user_id": str(user_id)},
    )

    db["pickup"].update_one(
        {"_id": pickup["_id"]},
        {"$set": {"razorpay_order_id": order["id"], "updated_at": utcnow()}},
    )
    logger.info("Payment order %s created for pickup %s (%s %s)", order["id"], pickup_id, amount, order.get("currency"))
    return {
        "success": True,
        "order_id": order["id"],
        "amount": order.get("amount"),
        "currency": order.get("currency", payment_settings.currency),
        "key": payment_settings.key_id,
        "final_amount": amount,
    }


def compute_signature(order_id: str, payment_id: str, secret: str) -> str:
    message = f"{order_id}|{payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    expected = compute_signature(order_id, payment_id, secret)
    return hmac.compare_digest(expected.encode(), signature.encode())


def verify_payment(db: Database, payment_settings: PaymentSettings, user_id: Any, body: VerifyPaymentRequest) -> Dict[str, Any]:
    if not payment_settings.key_secret:
        raise GatewayError("Payment gateway is not configured")
    if not verify_signature(body.razorpay_order_id, body.razorpay_payment_id,
                            body.razorpay_signature, payment_settings.key_secret):
        logger.warning("Rejected payment signature for order %s", body.razorpay_order_id)
        raise InvalidRequestError("Invalid payment signature")

    pickup = db["pickup"].find_one({"razorpay_order_id": body.razorpay_order_id})
    if not pickup:
        raise NotFoundError("Pickup not found for this order")
    _owned_pickup(pickup, user_id)

    if pickup.get("payment_status") == "paid":
        if pickup.get("razorpay_payment_id") == body.razorpay_payment_id:
            return {"success": True, "message": "Payment already verified"}
        raise ConflictError("Pickup already paid with a different payment")

    result = db["pickup"].update_one(
        {"_id": pickup["_id"], "payment_status": {"$ne": "paid"}},
        {"$set": {
            "payment_status": "paid",
            "razorpay_payment_id": body.razorpay_payment_id,
            "payment_id": body.razorpay_payment_id,
            "updated_at": utcnow(),
        }},
    )
    if result.modified_count == 0:
        latest = db["pickup"].find_one({"_id": pickup["_id"]}) or {}
        if latest.get("payment_status") == "paid" and latest.get("razorpay_payment_id") == body.razorpay_payment_id:
            return {"success": True, "message": "Payment already verified"}
        raise ConflictError("Pickup already paid with a different payment")
    logger.info("Payment %s verified for pickup %s", body.razorpay_payment_id, pickup["_id"])
    return {"success": True, "message": "Payment verified successfully"}


def record_payment_failure(db: Database, user_id: Any, order_id: str, reason: Optional[str] = None) -> Dict[str, Any]:
    pickup = db["pickup"].find_one({"razorpay_order_id": order_id})
    if not pickup:
        raise NotFoundError("Pickup not found for this order")
    _owned_pickup(pickup, user_id)
    if pickup.get("payment_status") == "paid":
        raise ConflictError("Pickup already paid")

    result = db["pickup"].update_one(
        {"_id": pickup["_id"], "payment_status": {"$ne": "paid"}},
        {"$set": {"payment_status": "failed", "payment_failure_reason": reason, "updated_at": utcnow()}},
    )
    if result.modified_count == 0:
        raise ConflictError("Pickup already paid")
    logger.info("Payment for order %s marked failed: %s", order_id, reason)
    return {"success": True, "message": "Payment marked as failed"}

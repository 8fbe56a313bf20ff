import pytest
from bson import ObjectId

import payments
from conftest import TEST_PAYMENT
from errors import ConflictError
from schemas import VerifyPaymentRequest


@pytest.fixture
def business_pickup(client, user_headers, pickup_body):
    res = client.post("/api/pickups", json=pickup_body(service_type="business", waste_type="electronic",
                                                        waste_count=3, waste_unit="kg"), headers=user_headers)
    return res.json()


def _flip_last_bit(signature):
    return signature[:-1] + format(int(signature[-1], 16) ^ 1, "x")


def _open_order(client, pickup, headers, **extra):
    body = {"pickup_id": pickup["_id"], **extra}
    return client.post("/api/payments/create-order", json=body, headers=headers)


def test_resolve_charge_amount_priority():
    pickup = {"final_amount": 300, "cost": 250}
    assert payments.resolve_charge_amount("450.5", pickup, 100) == 450.5
    assert payments.resolve_charge_amount(None, pickup, 100) == 300
    assert payments.resolve_charge_amount("abc", pickup, 100) == 300
    assert payments.resolve_charge_amount(0, pickup, 100) == 300
    assert payments.resolve_charge_amount(None, {"final_amount": 0, "cost": 250}, 100) == 250
    assert payments.resolve_charge_amount(None, {}, 100) == 100


def test_signature_check():
    signature = payments.compute_signature("order_1", "pay_1", "secret")
    assert payments.verify_signature("order_1", "pay_1", signature, "secret")
    assert not payments.verify_signature("order_1", "pay_2", signature, "secret")
    assert not payments.verify_signature("order_1", "pay_1", signature, "other-secret")


def test_create_order_uses_stored_amount(client, mongo_db, gateway, user_headers, business_pickup):
    res = _open_order(client, business_pickup, user_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["final_amount"] == 300
    assert body["amount"] == 30000
    assert body["key"] == TEST_PAYMENT.key_id
    assert gateway.orders[0]["notes"]["pickup_id"] == business_pickup["_id"]

    stored = mongo_db["pickup"].find_one({"_id": ObjectId(business_pickup["_id"])})
    assert stored["razorpay_order_id"] == body["order_id"]


def test_create_order_explicit_amount(client, user_headers, business_pickup):
    res = _open_order(client, business_pickup, user_headers, final_amount=270)
    assert res.json()["final_amount"] == 270
    assert res.json()["amount"] == 27000


def test_create_order_rejects_other_owner(client, make_user, headers_for, business_pickup):
    other = make_user(email="other@ecowaste.io", user_type="business")
    res = _open_order(client, business_pickup, headers_for(other))
    assert res.status_code == 403


def test_create_order_rejects_paid_pickup(client, user_headers, pickup_body):
    home = client.post("/api/pickups", json=pickup_body(), headers=user_headers).json()
    res = _open_order(client, home, user_headers)
    assert res.status_code == 400
    assert res.json()["error"] == "Pickup already paid"


def test_create_order_unknown_pickup(client, user_headers):
    res = client.post("/api/payments/create-order", json={"pickup_id": str(ObjectId())}, headers=user_headers)
    assert res.status_code == 404


def test_tampered_signature_leaves_pickup_unpaid(client, mongo_db, user_headers, business_pickup):
    order_id = _open_order(client, business_pickup, user_headers).json()["order_id"]
    signature = payments.compute_signature(order_id, "pay_1", TEST_PAYMENT.key_secret)
    res = client.post("/api/payments/verify-payment", json={
        "razorpay_order_id": order_id,
        "razorpay_payment_id": "pay_1",
        "razorpay_signature": _flip_last_bit(signature),
    }, headers=user_headers)
    assert res.status_code == 400
    stored = mongo_db["pickup"].find_one({"_id": ObjectId(business_pickup["_id"])})
    assert stored["payment_status"] == "pending"


def test_verify_payment_marks_paid_once(client, mongo_db, user_headers, business_pickup):
    order_id = _open_order(client, business_pickup, user_headers).json()["order_id"]
    body = {
        "razorpay_order_id": order_id,
        "razorpay_payment_id": "pay_1",
        "razorpay_signature": payments.compute_signature(order_id, "pay_1", TEST_PAYMENT.key_secret),
    }
    res = client.post("/api/payments/verify-payment", json=body, headers=user_headers)
    assert res.status_code == 200
    assert res.json()["message"] == "Payment verified successfully"

    stored = mongo_db["pickup"].find_one({"_id": ObjectId(business_pickup["_id"])})
    assert stored["payment_status"] == "paid"
    assert stored["razorpay_payment_id"] == "pay_1"
    assert stored["payment_id"] == "pay_1"
    paid_at = stored["updated_at"]

    again = client.post("/api/payments/verify-payment", json=body, headers=user_headers)
    assert again.status_code == 200
    assert again.json()["message"] == "Payment already verified"
    assert mongo_db["pickup"].find_one({"_id": stored["_id"]})["updated_at"] == paid_at

    other = {
        "razorpay_order_id": order_id,
        "razorpay_payment_id": "pay_2",
        "razorpay_signature": payments.compute_signature(order_id, "pay_2", TEST_PAYMENT.key_secret),
    }
    assert client.post("/api/payments/verify-payment", json=other, headers=user_headers).status_code == 409


def test_verify_unknown_order(client, user_headers):
    res = client.post("/api/payments/verify-payment", json={
        "razorpay_order_id": "order_missing",
        "razorpay_payment_id": "pay_1",
        "razorpay_signature": payments.compute_signature("order_missing", "pay_1", TEST_PAYMENT.key_secret),
    }, headers=user_headers)
    assert res.status_code == 404


def test_payment_failure_then_retry(client, mongo_db, user_headers, business_pickup):
    order_id = _open_order(client, business_pickup, user_headers).json()["order_id"]
    res = client.post("/api/payments/payment-failed", json={"razorpay_order_id": order_id, "reason": "card declined"},
                      headers=user_headers)
    assert res.status_code == 200
    stored = mongo_db["pickup"].find_one({"_id": ObjectId(business_pickup["_id"])})
    assert stored["payment_status"] == "failed"

    retry = _open_order(client, business_pickup, user_headers)
    assert retry.status_code == 200
    assert retry.json()["order_id"] != order_id


def test_unconfigured_gateway_reports_error():
    gateway = payments.RazorpayGateway(TEST_PAYMENT.model_copy(update={"key_id": "", "key_secret": ""}))
    with pytest.raises(payments.GatewayError):
        gateway.create_order(100, "INR", "receipt", {})


def test_racing_verifications_keep_first_payment(client, mongo_db, user_id, user_headers, business_pickup,
                                                 stale_reads):
    order_id = _open_order(client, business_pickup, user_headers).json()["order_id"]
    snapshot = mongo_db["pickup"].find_one({"_id": ObjectId(business_pickup["_id"])})
    racing = stale_reads(mongo_db, "pickup", snapshot)

    def _verify(payment_id):
        body = VerifyPaymentRequest(
            razorpay_order_id=order_id,
            razorpay_payment_id=payment_id,
            razorpay_signature=payments.compute_signature(order_id, payment_id, TEST_PAYMENT.key_secret),
        )
        return payments.verify_payment(racing, TEST_PAYMENT, user_id, body)

    assert _verify("pay_1")["message"] == "Payment verified successfully"
    with pytest.raises(ConflictError):
        _verify("pay_2")
    stored = mongo_db["pickup"].find_one({"_id": ObjectId(business_pickup["_id"])})
    assert stored["razorpay_payment_id"] == "pay_1"
    assert stored["payment_id"] == "pay_1"

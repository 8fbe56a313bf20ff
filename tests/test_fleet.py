from bson import ObjectId


def test_worker_crud(client, admin_headers):
    res = client.post("/api/admin/workers", json={"name": "Kiran", "role": "collector", "phone": "555"},
                      headers=admin_headers)
    assert res.status_code == 201
    worker = res.json()
    assert worker["status"] == "active"
    assert worker["assigned_vehicle"] == "N/A"

    duplicate = client.post("/api/admin/workers", json={"name": "K2", "role": "driver", "phone": "555"},
                            headers=admin_headers)
    assert duplicate.status_code == 400

    updated = client.put(f"/api/admin/workers/{worker['_id']}", json={"status": "on-leave"}, headers=admin_headers)
    assert updated.json()["status"] == "on-leave"
    assert updated.json()["name"] == "Kiran"

    assert len(client.get("/api/admin/workers", headers=admin_headers).json()) == 1
    assert client.delete(f"/api/admin/workers/{worker['_id']}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/admin/workers/{worker['_id']}", headers=admin_headers).status_code == 404


def test_vehicle_crud(client, admin_headers):
    body = {"name": "Compactor", "type": "truck", "license_plate": "MH-12-9", "capacity": 8000}
    vehicle = client.post("/api/admin/vehicles", json=body, headers=admin_headers).json()
    assert client.post("/api/admin/vehicles", json=body, headers=admin_headers).status_code == 400

    res = client.put(f"/api/admin/vehicles/{vehicle['_id']}", json={"status": "maintenance"}, headers=admin_headers)
    assert res.json()["status"] == "maintenance"
    assert client.put(f"/api/admin/vehicles/{ObjectId()}", json={"capacity": 10}, headers=admin_headers).status_code == 404
    assert client.put(f"/api/admin/vehicles/{vehicle['_id']}", json={"type": "bike"},
                      headers=admin_headers).status_code == 400

    assert client.delete(f"/api/admin/vehicles/{vehicle['_id']}", headers=admin_headers).status_code == 200
    assert client.get("/api/admin/vehicles", headers=admin_headers).json() == []


def test_fleet_is_admin_only(client, user_headers):
    assert client.get("/api/admin/workers", headers=user_headers).status_code == 403
    assert client.get("/api/admin/vehicles").status_code == 401

from bson import ObjectId
from flask_jwt_extended import decode_token

from .conftest import API


def register(client, **fields):
    payload = {"name": "Lime Fan", "email": "fan@shop.test", "password": "secret123"}
    payload.update(fields)
    return client.post(f"{API}/users/register", json=payload)


def test_register_creates_standard_user(client, db):
    response = register(client, email="Fan@Shop.Test", city="Sofia")

    assert response.status_code == 201
    created = response.get_json()["body"]["data"]
    assert created["email"] == "fan@shop.test"
    assert created["isAdmin"] is False
    assert created["city"] == "Sofia"
    assert "passwordHash" not in created

    stored = db.users.find_one({"email": "fan@shop.test"})
    assert stored["passwordHash"] != "secret123"


def test_register_default_admin_email(client):
    created = register(client, email="owner@shop.test").get_json()["body"]["data"]
    assert created["isAdmin"] is True


def test_register_validates_input(client):
    response = register(client, email="not-an-email", password="123")

    assert response.status_code == 422
    assert response.get_json() == {
        "header": {"error": 1, "message": "Invalid value for: email, password"}
    }


def test_register_rejects_duplicate_email(client):
    register(client)
    response = register(client)

    assert response.status_code == 400
    assert response.get_json()["header"]["message"] == "User Already exist with this email"


def test_login_returns_token_for_user(app, client):
    user_id = register(client).get_json()["body"]["data"]["id"]

    response = client.post(
        f"{API}/users/login", json={"email": "fan@shop.test", "password": "secret123"}
    )

    assert response.status_code == 200
    data = response.get_json()["body"]["data"]
    assert data["user"] == "fan@shop.test"
    assert data["user_id"] == user_id
    with app.app_context():
        assert decode_token(data["token"])["id"] == user_id

    profile = client.get(
        f"{API}/users/{user_id}", headers={"Authorization": f"Bearer {data['token']}"}
    )
    assert profile.status_code == 200
    assert profile.get_json()["body"]["data"]["email"] == "fan@shop.test"


def test_login_failures(client):
    register(client)

    empty = client.post(f"{API}/users/login", json={})
    unknown = client.post(
        f"{API}/users/login", json={"email": "ghost@shop.test", "password": "secret123"}
    )
    wrong = client.post(
        f"{API}/users/login", json={"email": "fan@shop.test", "password": "wrong-one"}
    )

    assert empty.status_code == 400
    assert empty.get_json()["header"]["message"] == "Body fields cannot be empty."
    assert unknown.status_code == 404
    assert wrong.status_code == 400
    assert wrong.get_json() == {
        "header": {"error": 1, "message": "Please enter correct credentials"}
    }


def test_get_user_requires_token(client, shopper):
    response = client.get(f"{API}/users/{shopper['_id']}")
    assert response.status_code == 401
    assert response.get_json()["header"]["message"] == "Not authorized, no token"


def test_get_missing_user(client, shopper_headers):
    assert client.get(f"{API}/users/{ObjectId()}", headers=shopper_headers).status_code == 404
    assert client.get(f"{API}/users/nope", headers=shopper_headers).status_code == 400


def test_user_count(client, shopper, admin_headers):
    response = client.get(f"{API}/users/get/count", headers=admin_headers)
    assert response.get_json()["body"]["data"] == {"userCount": 2}


def test_delete_user(client, db, shopper, admin_headers):
    response = client.delete(f"{API}/users/{shopper['_id']}", headers=admin_headers)

    assert response.status_code == 200
    assert response.get_json()["body"]["data"] == {"success": True}
    assert db.users.find_one({"_id": shopper["_id"]}) is None

    missing = client.delete(f"{API}/users/{shopper['_id']}", headers=admin_headers)
    assert missing.status_code == 404


def test_delete_user_requires_admin(client, make_user, shopper_headers):
    other = make_user(email="other@shop.test")
    response = client.delete(f"{API}/users/{other['_id']}", headers=shopper_headers)
    assert response.status_code == 401


def test_update_own_profile(client, shopper, shopper_headers):
    response = client.put(
        f"{API}/users/profile/{shopper['_id']}",
        json={"name": "Renamed", "city": "Varna", "password": "new-secret"},
        headers=shopper_headers,
    )

    assert response.status_code == 200
    updated = response.get_json()["body"]["data"]
    assert updated["name"] == "Renamed"
    assert updated["city"] == "Varna"
    assert "passwordHash" not in updated

    login = client.post(
        f"{API}/users/login", json={"email": shopper["email"], "password": "new-secret"}
    )
    assert login.status_code == 200


def test_cannot_update_someone_elses_profile(client, make_user, shopper_headers):
    other = make_user(email="other@shop.test")

    response = client.put(
        f"{API}/users/profile/{other['_id']}", json={"name": "Hijacked"}, headers=shopper_headers
    )

    assert response.status_code == 401
    assert response.get_json()["header"]["message"] == "Not authorized as an admin"


def test_admin_updates_any_profile(client, shopper, admin_headers):
    response = client.put(
        f"{API}/users/profile/{shopper['_id']}", json={"phone": "+359"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.get_json()["body"]["data"]["phone"] == "+359"


def test_profile_email_must_stay_unique(client, make_user, shopper, shopper_headers):
    make_user(email="taken@shop.test")

    response = client.put(
        f"{API}/users/profile/{shopper['_id']}",
        json={"email": "taken@shop.test"},
        headers=shopper_headers,
    )
    assert response.status_code == 400


def test_login_rejects_non_object_body(client):
    response = client.post(f"{API}/users/login", json=["x"])

    assert response.status_code == 400
    assert response.get_json() == {
        "header": {"error": 1, "message": "Request body must be a JSON object."}
    }

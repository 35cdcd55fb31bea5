from datetime import datetime

import mongomock
import pytest

from commerce_cart.app import create_app
from commerce_cart.config import Settings
from commerce_cart.routes.users import hash_password
from commerce_cart.tokens import issue_token

API = "/api/v1"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        jwt_secret="test-secret",
        upload_folder=str(tmp_path / "uploads"),
        trusted_proxy_hops=0,
        default_admin_email="owner@shop.test",
        log_level="WARNING",
    )


@pytest.fixture
def db():
    return mongomock.MongoClient()["commerce-cart-test"]


@pytest.fixture
def app(settings, db):
    app = create_app(settings, database=db)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(db):
    def _make_user(email="shopper@shop.test", password="secret123", is_admin=False, **fields):
        document = {
            "name": fields.pop("name", "Shopper"),
            "email": email,
            "passwordHash": hash_password(password),
            "isAdmin": is_admin,
            "createdAt": datetime.utcnow(),
        }
        document.update(fields)
        document["_id"] = db.users.insert_one(document).inserted_id
        return document

    return _make_user


@pytest.fixture
def token_for(app):
    def _token_for(user_document):
        with app.app_context():
            return issue_token(user_document["_id"])

    return _token_for


@pytest.fixture
def admin_headers(make_user, token_for):
    admin = make_user(email="admin@shop.test", is_admin=True, name="Admin")
    return {"Authorization": f"Bearer {token_for(admin)}"}


@pytest.fixture
def shopper(make_user):
    return make_user()


@pytest.fixture
def shopper_headers(shopper, token_for):
    return {"Authorization": f"Bearer {token_for(shopper)}"}


@pytest.fixture
def category(db):
    document = {"name": "Citrus", "color": "#a9ff7c", "icon": "lime"}
    document["_id"] = db.categories.insert_one(document).inserted_id
    return document


@pytest.fixture
def make_product(db, category):
    def _make_product(name="Lime Tart", price=18.0, **fields):
        document = {
            "name": name,
            "description": "Tart with candied lime zest.",
            "price": price,
            "category": category["_id"],
            "countInStock": 10,
            "isFeatured": False,
            "images": [],
        }
        document.update(fields)
        document["_id"] = db.products.insert_one(document).inserted_id
        return document

    return _make_product

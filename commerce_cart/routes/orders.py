from datetime import datetime
from typing import Dict, List, Optional, Tuple

from bson import ObjectId
from flask import Flask
from flask_jwt_extended import jwt_required
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

from ..auth import require_admin_user
from ..config import Settings
from ..documents import (
    parse_object_id,
    parse_object_id_list,
    safe_float,
    safe_positive_int,
    serialize_document,
)
from ..envelope import envelope_response, read_json_object, status_response

REQUIRED_ADDRESS_FIELDS = ("shippingAddress1", "city", "country", "phone")
OPTIONAL_ADDRESS_FIELDS = ("shippingAddress2", "zip")


def normalize_order_lines(raw_items) -> Tuple[List[Dict], Optional[str]]:
    if not isinstance(raw_items, list) or not raw_items:
        return [], "An order needs at least one order item."

    lines: List[Dict] = []
    for entry in raw_items:
        if not isinstance(entry, dict):
            return [], "Order items must be objects with a product and a quantity."
        product_id = parse_object_id(entry.get("product"))
        if product_id is None:
            return [], f"Invalid product in order items: {entry.get('product')}"
        quantity = safe_positive_int(entry.get("quantity"), 0)
        if quantity < 1:
            return [], "Order item quantities must be at least 1."
        lines.append({"product": product_id, "quantity": quantity})
    return lines, None


def register_order_routes(app: Flask, db: Database, settings: Settings) -> None:
    base = f"{settings.api_prefix}/orders"

    def fetch_user_names(user_ids) -> Dict[ObjectId, Dict]:
        object_ids = parse_object_id_list(user_ids)
        if not object_ids:
            return {}
        return {
            document["_id"]: document
            for document in db.users.find({"_id": {"$in": object_ids}}, {"name": 1})
        }

    def populate_order_items(item_ids) -> List[Dict]:
        object_ids = parse_object_id_list(item_ids)
        items = {
            document["_id"]: document
            for document in db.order_items.find({"_id": {"$in": object_ids}})
        }
        products = {
            document["_id"]: document
            for document in db.products.find(
                {"_id": {"$in": [item.get("product") for item in items.values()]}}
            )
        }
        categories = {
            document["_id"]: document
            for document in db.categories.find(
                {"_id": {"$in": [product.get("category") for product in products.values()]}}
            )
        }

        populated: List[Dict] = []
        for item_id in object_ids:
            item = items.get(item_id)
            if not item:
                continue
            serialized_item = serialize_document(item)
            product = products.get(item.get("product"))
            if product:
                serialized_product = serialize_document(product)
                category = categories.get(product.get("category"))
                if category:
                    serialized_product["category"] = serialize_document(category)
                serialized_item["product"] = serialized_product
            populated.append(serialized_item)
        return populated

    def serialize_orders(order_documents, include_items: bool = False) -> List[Dict]:
        users = fetch_user_names(document.get("user") for document in order_documents)
        serialized_orders = []
        for document in order_documents:
            serialized = serialize_document(document)
            user = users.get(document.get("user"))
            if user:
                serialized["user"] = serialize_document(user)
            if include_items:
                serialized["orderItems"] = populate_order_items(
                    document.get("orderItems")
                )
            serialized_orders.append(serialized)
        return serialized_orders

    def discard_order_items(item_ids: List[ObjectId]) -> None:
        if item_ids:
            db.order_items.delete_many({"_id": {"$in": item_ids}})

    @app.route(base, methods=["GET"])
    def list_orders():
        order_documents = list(db.orders.find().sort("createdAt", DESCENDING))
        return envelope_response(
            serialize_orders(order_documents), "Orders Successfully Retrieved!"
        )

    @app.route(f"{base}/<order_id>", methods=["GET"])
    def get_order(order_id: str):
        order_object_id = parse_object_id(order_id)
        if order_object_id is None:
            return envelope_response(None, f"Order with id {order_id} doesn't exist", 400)

        order_document = db.orders.find_one({"_id": order_object_id})
        if not order_document:
            return envelope_response(None, f"Order with {order_id} not Found", 404)

        return envelope_response(
            serialize_orders([order_document], include_items=True)[0],
            "Order Retrieved Successfully!",
        )

    @app.route(base, methods=["POST"])
    def create_order():
        payload = read_json_object()

        lines, lines_error = normalize_order_lines(payload.get("orderItems"))
        if lines_error:
            return envelope_response(None, lines_error, 422)

        missing = [
            field
            for field in REQUIRED_ADDRESS_FIELDS
            if not str(payload.get(field) or "").strip()
        ]
        if missing:
            return envelope_response(
                None, f"Missing required order fields: {', '.join(missing)}", 422
            )

        user_object_id = None
        if payload.get("user"):
            user_object_id = parse_object_id(payload.get("user"))
            if user_object_id is None:
                return envelope_response(None, "Invalid user for this order.", 422)

        product_ids = list({line["product"] for line in lines})
        prices = {
            document["_id"]: safe_float(document.get("price"), 0.0)
            for document in db.products.find({"_id": {"$in": product_ids}}, {"price": 1})
        }
        unknown = [str(product_id) for product_id in product_ids if product_id not in prices]
        if unknown:
            return envelope_response(
                None, f"Products not found: {', '.join(unknown)}", 422
            )

        order_item_ids: List[ObjectId] = []
        try:
            for line in lines:
                insert_result = db.order_items.insert_one(dict(line))
                order_item_ids.append(insert_result.inserted_id)

            total_price = round(
                sum(prices[line["product"]] * line["quantity"] for line in lines), 2
            )

            order_document = {
                "orderItems": order_item_ids,
                "status": str(payload.get("status") or "Pending").strip() or "Pending",
                "totalPrice": total_price,
                "user": user_object_id,
                "createdAt": datetime.utcnow(),
            }
            for field in REQUIRED_ADDRESS_FIELDS:
                order_document[field] = str(payload.get(field)).strip()
            for field in OPTIONAL_ADDRESS_FIELDS:
                order_document[field] = str(payload.get(field) or "").strip()

            order_insert = db.orders.insert_one(order_document)
        except Exception:
            app.logger.error(
                "Order creation failed; discarding %d order items", len(order_item_ids)
            )
            discard_order_items(order_item_ids)
            raise

        created = db.orders.find_one({"_id": order_insert.inserted_id})
        app.logger.info(
            "Created order %s with total %.2f", order_insert.inserted_id, total_price
        )
        return envelope_response(
            serialize_orders([created])[0], "Order Successfully Created!", 201
        )

    @app.route(f"{base}/<order_id>", methods=["PUT"])
    @jwt_required()
    def update_order_status(order_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        order_object_id = parse_object_id(order_id)
        if order_object_id is None:
            return envelope_response(None, f"Order with id {order_id} doesn't exist", 400)

        payload = read_json_object()
        status = str(payload.get("status") or "").strip()
        if not status:
            return envelope_response(None, "Order Status Cannot be Updated.", 400)

        updated = db.orders.find_one_and_update(
            {"_id": order_object_id},
            {"$set": {"status": status}},
            return_document=ReturnDocument.AFTER,
        )
        if not updated:
            return envelope_response(None, "Order Status Cannot be Updated.", 404)
        return envelope_response(
            serialize_orders([updated])[0], "Order Status Updated Successfully"
        )

    @app.route(f"{base}/<order_id>", methods=["DELETE"])
    @jwt_required()
    def delete_order(order_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        order_object_id = parse_object_id(order_id)
        if order_object_id is None:
            return status_response(False, "Invalid order identifier.", 400)

        deleted = db.orders.find_one_and_delete({"_id": order_object_id})
        if not deleted:
            return status_response(False, "Order Not Found", 404)

        discard_order_items(parse_object_id_list(deleted.get("orderItems")))
        app.logger.info("Deleted order %s", order_object_id)
        return status_response(True, "Order successfully Deleted")

    @app.route(f"{base}/get/totalsales", methods=["GET"])
    @jwt_required()
    def total_sales():
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        totals = list(
            db.orders.aggregate(
                [{"$group": {"_id": None, "totalSales": {"$sum": "$totalPrice"}}}]
            )
        )
        sales = round(safe_float(totals[0].get("totalSales"), 0.0), 2) if totals else 0.0
        return envelope_response(
            {"totalSales": sales}, "Total Sales Generated Successfully!"
        )

    @app.route(f"{base}/get/totalorders", methods=["GET"])
    @jwt_required()
    def total_orders():
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        return envelope_response(
            {"totalOrders": db.orders.count_documents({})},
            "Total Number of Orders fetched.",
        )

    @app.route(f"{base}/get/userorders/<user_id>", methods=["GET"])
    @jwt_required()
    def list_user_orders(user_id: str):
        user_object_id = parse_object_id(user_id)
        if user_object_id is None:
            return envelope_response(None, f"User with id {user_id} doesn't exist", 400)

        order_documents = list(
            db.orders.find({"user": user_object_id}).sort("createdAt", DESCENDING)
        )
        return envelope_response(
            serialize_orders(order_documents, include_items=True),
            "User OrderList Successfully Retrieved!",
        )

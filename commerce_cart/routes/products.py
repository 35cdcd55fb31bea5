from datetime import datetime
from typing import Dict, Iterable, Optional

from bson import ObjectId
from flask import Flask, request
from flask_jwt_extended import jwt_required
from pymongo import ReturnDocument
from pymongo.database import Database

from ..auth import require_admin_user
from ..config import Settings
from ..documents import (
    parse_bool,
    parse_object_id,
    parse_object_id_list,
    safe_float,
    safe_positive_int,
    serialize_document,
)
from ..envelope import envelope_response, read_json_object
from ..uploads import (
    build_upload_url,
    remove_product_images,
    save_product_image,
    save_product_images,
)

MAX_GALLERY_IMAGES = 10

TEXT_FIELDS = ("name", "description", "richDescription", "brand", "image")
FLOAT_FIELDS = ("price", "rating")
INT_FIELDS = ("countInStock", "numReviews")


def normalize_product_payload(payload: Dict) -> Dict:
    """Coerce the form or JSON fields that were sent; absent fields stay absent."""
    normalized: Dict = {}
    for field in TEXT_FIELDS:
        if payload.get(field) is not None:
            normalized[field] = str(payload.get(field)).strip()
    for field in FLOAT_FIELDS:
        if payload.get(field) not in (None, ""):
            normalized[field] = max(0.0, safe_float(payload.get(field), 0.0))
    for field in INT_FIELDS:
        if payload.get(field) not in (None, ""):
            normalized[field] = safe_positive_int(payload.get(field), 0)
    if payload.get("isFeatured") is not None:
        normalized["isFeatured"] = parse_bool(payload.get("isFeatured"))
    return normalized


def read_request_payload() -> Dict:
    payload = request.form.to_dict() if request.form else {}
    if not payload:
        payload = read_json_object()
    return payload


def register_product_routes(app: Flask, db: Database, settings: Settings) -> None:
    base = f"{settings.api_prefix}/products"

    def fetch_categories(category_ids: Iterable) -> Dict[ObjectId, Dict]:
        object_ids = parse_object_id_list(category_ids)
        if not object_ids:
            return {}
        return {
            document["_id"]: document
            for document in db.categories.find({"_id": {"$in": object_ids}})
        }

    def serialize_product(product_document, category_map=None):
        serialized = serialize_document(product_document)
        if serialized is None:
            return None
        category_id = product_document.get("category")
        if category_map is not None and category_id in category_map:
            serialized["category"] = serialize_document(category_map[category_id])
        return serialized

    def serialize_products(product_documents):
        category_map = fetch_categories(
            document.get("category") for document in product_documents
        )
        return [
            serialize_product(document, category_map) for document in product_documents
        ]

    def resolve_category(raw_value) -> Optional[ObjectId]:
        category_object_id = parse_object_id(raw_value)
        if category_object_id is None:
            return None
        if not db.categories.find_one({"_id": category_object_id}, {"_id": 1}):
            return None
        return category_object_id

    def invalid_product_id(product_id: str):
        return envelope_response(
            None, f"Product with id {product_id} doesn't exist", 400
        )

    @app.route(base, methods=["GET"])
    def list_products():
        query: Dict = {}
        raw_categories = request.args.get("categories", "")
        if raw_categories:
            query["category"] = {
                "$in": parse_object_id_list(raw_categories.split(","))
            }
        product_documents = list(db.products.find(query))
        return envelope_response(
            serialize_products(product_documents), "Products retrieved successfully!"
        )

    @app.route(f"{base}/<product_id>", methods=["GET"])
    def get_product(product_id: str):
        product_object_id = parse_object_id(product_id)
        if product_object_id is None:
            return invalid_product_id(product_id)

        product_document = db.products.find_one({"_id": product_object_id})
        if not product_document:
            return envelope_response(None, "Product Not Found", 404)

        category_map = fetch_categories([product_document.get("category")])
        return envelope_response(
            serialize_product(product_document, category_map),
            "Product retrieved successfully!",
        )

    @app.route(base, methods=["POST"])
    @jwt_required()
    def create_product():
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        payload = read_request_payload()
        category_object_id = resolve_category(payload.get("category"))
        if category_object_id is None:
            return envelope_response(None, "Invalid Category", 400)

        product_document = normalize_product_payload(payload)
        if not product_document.get("name"):
            return envelope_response(None, "The product cannot be Created!", 400)

        image_filename, image_error = save_product_image(request.files.get("image"))
        if image_error:
            return envelope_response(None, image_error, 400)

        product_document.update(
            {
                "image": build_upload_url(image_filename),
                "images": [],
                "category": category_object_id,
                "dateCreated": datetime.utcnow(),
            }
        )
        product_document.setdefault("description", "")
        product_document.setdefault("richDescription", "")
        product_document.setdefault("brand", "")
        product_document.setdefault("price", 0.0)
        product_document.setdefault("countInStock", 0)
        product_document.setdefault("rating", 0.0)
        product_document.setdefault("numReviews", 0)
        product_document.setdefault("isFeatured", False)

        try:
            insert_result = db.products.insert_one(product_document)
        except Exception:
            remove_product_images([image_filename])
            raise

        created = db.products.find_one({"_id": insert_result.inserted_id})
        app.logger.info("Created product %s", insert_result.inserted_id)
        return envelope_response(
            serialize_product(created, fetch_categories([category_object_id])),
            "Product was created successfully!",
            201,
        )

    @app.route(f"{base}/gallery-images/<product_id>", methods=["PUT"])
    @jwt_required()
    def upload_gallery_images(product_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        product_object_id = parse_object_id(product_id)
        if product_object_id is None:
            return invalid_product_id(product_id)

        image_files = request.files.getlist("images")
        if len(image_files) > MAX_GALLERY_IMAGES:
            return envelope_response(
                None, f"Upload at most {MAX_GALLERY_IMAGES} gallery images.", 400
            )
        if not db.products.find_one({"_id": product_object_id}, {"_id": 1}):
            return envelope_response(None, "Gallery Images not Uploaded!", 404)

        saved_filenames, image_error = save_product_images(image_files)
        if image_error:
            return envelope_response(None, image_error, 400)

        updated = db.products.find_one_and_update(
            {"_id": product_object_id},
            {"$set": {"images": [build_upload_url(name) for name in saved_filenames]}},
            return_document=ReturnDocument.AFTER,
        )
        if not updated:
            remove_product_images(saved_filenames)
            return envelope_response(None, "Gallery Images not Uploaded!", 404)

        return envelope_response(
            serialize_product(updated, fetch_categories([updated.get("category")])),
            "Gallery Images were uploaded successfully!",
        )

    @app.route(f"{base}/<product_id>", methods=["PUT"])
    @jwt_required()
    def update_product(product_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        product_object_id = parse_object_id(product_id)
        if product_object_id is None:
            return invalid_product_id(product_id)

        payload = read_request_payload()
        changes = normalize_product_payload(payload)
        if "category" in payload:
            category_object_id = resolve_category(payload.get("category"))
            if category_object_id is None:
                return envelope_response(None, "Invalid Category", 400)
            changes["category"] = category_object_id
        if "name" in changes and not changes["name"]:
            return envelope_response(None, "Product was not updated!", 400)

        if changes:
            updated = db.products.find_one_and_update(
                {"_id": product_object_id},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
        else:
            updated = db.products.find_one({"_id": product_object_id})

        if not updated:
            return envelope_response(None, "Product was not updated!", 404)
        return envelope_response(
            serialize_product(updated, fetch_categories([updated.get("category")])),
            "Product was updated successfully!",
        )

    @app.route(f"{base}/<product_id>", methods=["DELETE"])
    @jwt_required()
    def delete_product(product_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        product_object_id = parse_object_id(product_id)
        if product_object_id is None:
            return invalid_product_id(product_id)

        deleted = db.products.find_one_and_delete({"_id": product_object_id})
        if not deleted:
            return envelope_response(None, "Product Cannot be Deleted!", 404)

        app.logger.info("Deleted product %s", product_object_id)
        return envelope_response({"success": True}, "Product Deleted Successfully")

    @app.route(f"{base}/get/count", methods=["GET"])
    @jwt_required()
    def count_products():
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        product_count = db.products.count_documents({})
        return envelope_response(
            {"productCount": product_count}, "Product Count retrieved successfully!"
        )

    @app.route(f"{base}/get/featured", methods=["GET"])
    @app.route(f"{base}/get/featured/<count>", methods=["GET"])
    def list_featured_products(count: str = "0"):
        limit = safe_positive_int(count, 0)
        cursor = db.products.find({"isFeatured": True})
        if limit:
            cursor = cursor.limit(limit)
        featured_products = serialize_products(list(cursor))
        return envelope_response(
            {"featuredProducts": featured_products, "count": len(featured_products)},
            "Retrieves featured products successfully!",
        )

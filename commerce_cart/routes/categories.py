from typing import Dict

from flask import Flask
from flask_jwt_extended import jwt_required
from pymongo import ReturnDocument
from pymongo.database import Database

from ..auth import require_admin_user
from ..config import Settings
from ..documents import parse_object_id, serialize_document, serialize_documents
from ..envelope import envelope_response, read_json_object, status_response

CATEGORY_FIELDS = ("name", "color", "icon")


def normalize_category_payload(payload: Dict) -> Dict[str, str]:
    normalized: Dict[str, str] = {}
    for field in CATEGORY_FIELDS:
        if field in payload and payload.get(field) is not None:
            normalized[field] = " ".join(str(payload.get(field)).split())
    return normalized


def register_category_routes(app: Flask, db: Database, settings: Settings) -> None:
    base = f"{settings.api_prefix}/categories"

    @app.route(base, methods=["GET"])
    def list_categories():
        categories = serialize_documents(db.categories.find())
        if not categories:
            return envelope_response(categories, "No Categories Created!")
        return envelope_response(categories, "Categories retrieved successfully!")

    @app.route(f"{base}/<category_id>", methods=["GET"])
    def get_category(category_id: str):
        category_object_id = parse_object_id(category_id)
        category = (
            db.categories.find_one({"_id": category_object_id})
            if category_object_id
            else None
        )
        if not category:
            return envelope_response(
                None, f"Category with the given id: {category_id} was not found.", 404
            )
        return envelope_response(
            serialize_document(category), "Category retrieved successfully"
        )

    @app.route(base, methods=["POST"])
    @jwt_required()
    def create_category():
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        category_document = normalize_category_payload(read_json_object())
        if not category_document.get("name"):
            return envelope_response(None, "Category cannot be created!", 400)

        insert_result = db.categories.insert_one(category_document)
        created = db.categories.find_one({"_id": insert_result.inserted_id})
        app.logger.info("Created category %s", insert_result.inserted_id)
        return envelope_response(
            serialize_document(created), "A new category was created successfully", 201
        )

    @app.route(f"{base}/<category_id>", methods=["PUT"])
    @jwt_required()
    def update_category(category_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        category_object_id = parse_object_id(category_id)
        if category_object_id is None:
            return envelope_response(
                None, f"Category with id {category_id} doesn't exist.", 400
            )

        changes = normalize_category_payload(read_json_object())
        if "name" in changes and not changes["name"]:
            return envelope_response(None, "Category was not updated!", 400)

        if changes:
            updated = db.categories.find_one_and_update(
                {"_id": category_object_id},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
        else:
            updated = db.categories.find_one({"_id": category_object_id})

        if not updated:
            return envelope_response(None, "Category was not updated!", 404)
        return envelope_response(
            serialize_document(updated), "Category updated successfully"
        )

    @app.route(f"{base}/<category_id>", methods=["DELETE"])
    @jwt_required()
    def delete_category(category_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        category_object_id = parse_object_id(category_id)
        if category_object_id is None:
            return status_response(False, "Invalid category identifier.", 400)

        deleted = db.categories.find_one_and_delete({"_id": category_object_id})
        if not deleted:
            return status_response(False, "Category Not Found", 404)

        app.logger.info("Deleted category %s", category_object_id)
        return status_response(True, "Category successfully Deleted")

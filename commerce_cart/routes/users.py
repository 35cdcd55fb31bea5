from datetime import datetime
from typing import Dict

import bcrypt
from flask import Flask
from flask_jwt_extended import get_current_user, jwt_required
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from ..auth import IDENTITY_PROJECTION, is_self_or_admin, require_admin_user
from ..config import Settings
from ..documents import (
    is_valid_email,
    normalize_email,
    parse_object_id,
    serialize_document,
    serialize_documents,
)
from ..envelope import envelope_response, read_json_object
from ..errors import NOT_ADMIN_MESSAGE, AuthorizationError, ConfigurationError
from ..tokens import issue_token

MIN_PASSWORD_LENGTH = 6
CONTACT_FIELDS = ("street", "apartment", "city", "zip", "country", "phone")
PROFILE_FIELDS = ("name",) + CONTACT_FIELDS


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, password_hash) -> bool:
    if not password_hash:
        return False
    if isinstance(password_hash, str):
        password_hash = password_hash.encode("utf-8")
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash)
    except ValueError:
        return False


def register_user_routes(app: Flask, db: Database, settings: Settings) -> None:
    base = f"{settings.api_prefix}/users"

    try:
        db.users.create_index("email", unique=True)
    except PyMongoError as exc:
        raise ConfigurationError(
            f"Unable to ensure unique index for user emails: {exc}"
        ) from exc

    def invalid_user_id(user_id: str):
        return envelope_response(None, f"User with id {user_id} doesn't exist.", 400)

    @app.route(base, methods=["GET"])
    @jwt_required()
    def list_users():
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        users = serialize_documents(db.users.find({}, IDENTITY_PROJECTION))
        return envelope_response(users, "User List retrieved successfully")

    @app.route(f"{base}/<user_id>", methods=["GET"])
    @jwt_required()
    def get_user(user_id: str):
        user_object_id = parse_object_id(user_id)
        if user_object_id is None:
            return envelope_response(None, "User doesn't exist", 400)

        user_document = db.users.find_one({"_id": user_object_id}, IDENTITY_PROJECTION)
        if not user_document:
            return envelope_response(None, "User doesn't exist", 404)
        return envelope_response(
            serialize_document(user_document), "User retrieved successfully."
        )

    @app.route(f"{base}/register", methods=["POST"])
    def register():
        payload = read_json_object()
        email = normalize_email(payload.get("email"))
        password = str(payload.get("password") or "")

        invalid_fields = []
        if not is_valid_email(email):
            invalid_fields.append("email")
        if len(password) < MIN_PASSWORD_LENGTH:
            invalid_fields.append("password")
        if invalid_fields:
            return envelope_response(
                None, f"Invalid value for: {', '.join(invalid_fields)}", 422
            )

        if db.users.find_one({"email": email}, {"_id": 1}):
            return envelope_response(None, "User Already exist with this email", 400)

        user_document: Dict = {
            "name": str(payload.get("name") or "").strip(),
            "email": email,
            "passwordHash": hash_password(password),
            "isAdmin": bool(
                settings.default_admin_email and email == settings.default_admin_email
            ),
            "createdAt": datetime.utcnow(),
        }
        for field in CONTACT_FIELDS:
            user_document[field] = str(payload.get(field) or "").strip()

        insert_result = db.users.insert_one(user_document)
        created = db.users.find_one({"_id": insert_result.inserted_id}, IDENTITY_PROJECTION)
        app.logger.info("Registered user %s", insert_result.inserted_id)
        return envelope_response(
            serialize_document(created), "User Created Successfully", 201
        )

    @app.route(f"{base}/login", methods=["POST"])
    def login():
        payload = read_json_object()
        if not payload:
            return envelope_response(None, "Body fields cannot be empty.", 400)

        email = normalize_email(payload.get("email"))
        password = str(payload.get("password") or "")
        if not is_valid_email(email):
            return envelope_response(None, "Invalid value for: email", 422)

        user = db.users.find_one({"email": email})
        if not user:
            return envelope_response(
                None,
                "User doesn't exist. Provide correct credentials or register "
                "yourself if you are not already registered.",
                404,
            )

        if not check_password(password, user.get("passwordHash")):
            return envelope_response(None, "Please enter correct credentials", 400)

        db.users.update_one(
            {"_id": user["_id"]}, {"$set": {"lastLoginAt": datetime.utcnow()}}
        )
        return envelope_response(
            {
                "user": user["email"],
                "user_id": str(user["_id"]),
                "token": issue_token(user["_id"]),
            },
            "User Logged In successfully!",
        )

    @app.route(f"{base}/get/count", methods=["GET"])
    @jwt_required()
    def count_users():
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        return envelope_response(
            {"userCount": db.users.count_documents({})},
            "Count of users fetched successfully",
        )

    @app.route(f"{base}/<user_id>", methods=["DELETE"])
    @jwt_required()
    def delete_user(user_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        user_object_id = parse_object_id(user_id)
        if user_object_id is None:
            return invalid_user_id(user_id)

        deleted = db.users.find_one_and_delete({"_id": user_object_id})
        if not deleted:
            return envelope_response(None, "User cannot be deleted!", 404)

        app.logger.info("Deleted user %s", user_object_id)
        return envelope_response({"success": True}, "User deleted successfully!")

    @app.route(f"{base}/profile/<user_id>", methods=["PUT"])
    @jwt_required()
    def update_profile(user_id: str):
        user_object_id = parse_object_id(user_id)
        if user_object_id is None:
            return invalid_user_id(user_id)

        if not is_self_or_admin(get_current_user(), user_object_id):
            return AuthorizationError(NOT_ADMIN_MESSAGE).to_response()

        payload = read_json_object()
        changes: Dict = {}
        for field in PROFILE_FIELDS:
            value = str(payload.get(field) or "").strip()
            if value:
                changes[field] = value

        if payload.get("email"):
            email = normalize_email(payload.get("email"))
            if not is_valid_email(email):
                return envelope_response(None, "Invalid value for: email", 422)
            existing = db.users.find_one({"email": email}, {"_id": 1})
            if existing and existing["_id"] != user_object_id:
                return envelope_response(
                    None, "User Already exist with this email", 400
                )
            changes["email"] = email

        if payload.get("password"):
            password = str(payload.get("password"))
            if len(password) < MIN_PASSWORD_LENGTH:
                return envelope_response(None, "Invalid value for: password", 422)
            changes["passwordHash"] = hash_password(password)

        if changes:
            updated = db.users.find_one_and_update(
                {"_id": user_object_id},
                {"$set": changes},
                projection=IDENTITY_PROJECTION,
                return_document=ReturnDocument.AFTER,
            )
        else:
            updated = db.users.find_one({"_id": user_object_id}, IDENTITY_PROJECTION)

        if not updated:
            return envelope_response(
                None, "Error occurred while updating user information.", 404
            )
        return envelope_response(
            serialize_document(updated), "User Updated successfully!"
        )

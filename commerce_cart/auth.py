"""Request gates.

Authentication is wired through Flask-JWT-Extended: routes opt in with
``@jwt_required()``, the user loader resolves the token's ``id`` claim to a
user document, and the rejection callbacks below turn every failure into a
401 envelope before the route handler runs.

Authorization is a plain check on the attached identity that hands back an
``(identity, rejection)`` pair instead of raising.
"""

from typing import Dict, Optional, Tuple

from flask import Flask, request
from flask_jwt_extended import JWTManager, get_current_user
from pymongo.database import Database

from .documents import parse_object_id
from .errors import (
    NO_TOKEN_MESSAGE,
    NOT_ADMIN_MESSAGE,
    TOKEN_FAILED_MESSAGE,
    AuthenticationError,
    AuthorizationError,
    Rejection,
)

IDENTITY_PROJECTION = {"passwordHash": 0}


def find_identity(db: Database, identity_id) -> Optional[Dict]:
    object_id = parse_object_id(identity_id)
    if object_id is None:
        return None
    return db.users.find_one({"_id": object_id}, IDENTITY_PROJECTION)


def init_auth(app: Flask, db: Database) -> JWTManager:
    jwt = JWTManager(app)

    def reject(rejection: Rejection, reason: str):
        app.logger.info(
            "Rejected %s %s: %s", request.method, request.path, reason
        )
        return rejection.to_response()

    @jwt.user_lookup_loader
    def load_identity(_jwt_header, jwt_data):
        return find_identity(db, jwt_data.get(app.config["JWT_IDENTITY_CLAIM"]))

    @jwt.unauthorized_loader
    def reject_missing_token(reason: str):
        return reject(AuthenticationError(NO_TOKEN_MESSAGE), reason)

    @jwt.invalid_token_loader
    def reject_invalid_token(reason: str):
        return reject(AuthenticationError(TOKEN_FAILED_MESSAGE), reason)

    @jwt.expired_token_loader
    def reject_expired_token(_jwt_header, _jwt_data):
        return reject(AuthenticationError(TOKEN_FAILED_MESSAGE), "token expired")

    @jwt.user_lookup_error_loader
    def reject_unknown_identity(_jwt_header, jwt_data):
        return reject(
            AuthenticationError(TOKEN_FAILED_MESSAGE),
            f"no user for id {jwt_data.get(app.config['JWT_IDENTITY_CLAIM'])}",
        )

    return jwt


def authorize_admin(identity: Optional[Dict]) -> Tuple[Optional[Dict], Optional[Rejection]]:
    if identity and identity.get("isAdmin") is True:
        return identity, None
    return None, AuthorizationError(NOT_ADMIN_MESSAGE)


def require_admin_user():
    """Check the identity attached by ``@jwt_required()``.

    Returns ``(user, None)`` when allowed, otherwise ``(None, response)``.
    """
    identity, rejection = authorize_admin(get_current_user())
    if rejection:
        return None, rejection.to_response()
    return identity, None


def is_self_or_admin(identity: Optional[Dict], user_id) -> bool:
    if not identity:
        return False
    if identity.get("isAdmin") is True:
        return True
    return identity.get("_id") == parse_object_id(user_id)

from flask import current_app
from flask_jwt_extended import create_access_token

from .errors import ConfigurationError


def issue_token(identity_id) -> str:
    """Sign a time-limited access token carrying ``identity_id`` as ``id``.

    The lifetime comes from ``JWT_ACCESS_TOKEN_EXPIRES``. Must be called
    inside an application context.
    """
    identity = str(identity_id or "").strip()
    if not identity:
        raise ValueError("An identity id is required to issue a token.")

    if not current_app.config.get("JWT_SECRET_KEY"):
        raise ConfigurationError("JWT_SECRET must be set to sign access tokens.")

    return create_access_token(identity=identity)

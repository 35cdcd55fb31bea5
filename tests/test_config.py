from datetime import timedelta

import pytest

from commerce_cart.app import create_app
from commerce_cart.config import DEFAULT_DATABASE_NAME, Settings
from commerce_cart.errors import ConfigurationError


def test_from_env_reads_values():
    settings = Settings.from_env(
        {
            "JWT_SECRET": " s3cret ",
            "CONNECTION_STRING": "mongodb://db:27017",
            "API_URL": "api/v2/",
            "JWT_EXPIRES_DAYS": "7",
            "CORS_ALLOWED_ORIGINS": "https://shop.test, ,http://localhost:3000",
            "DEFAULT_ADMIN_EMAIL": " Owner@Shop.Test ",
            "NODE_ENV": "production",
            "PORT": "8080",
        }
    )

    assert settings.jwt_secret == "s3cret"
    assert settings.connection_string == "mongodb://db:27017"
    assert settings.api_prefix == "/api/v2"
    assert settings.token_lifetime == timedelta(days=7)
    assert settings.cors_origins == ("https://shop.test", "http://localhost:3000")
    assert settings.default_admin_email == "owner@shop.test"
    assert settings.is_production
    assert settings.port == 8080
    assert settings.database_name == DEFAULT_DATABASE_NAME


def test_from_env_falls_back_on_malformed_numbers():
    settings = Settings.from_env(
        {"JWT_EXPIRES_DAYS": "soon", "PORT": "eighty", "MAX_UPLOAD_SIZE_MB": "-4"}
    )
    assert settings.token_lifetime == timedelta(days=30)
    assert settings.port == 5000
    assert settings.max_upload_mb == 1
    assert settings.api_prefix == "/api/v1"


def test_validate_requires_secret():
    with pytest.raises(ConfigurationError):
        Settings(connection_string="mongodb://db").validate()


def test_validate_requires_connection_string_unless_injected():
    settings = Settings(jwt_secret="s3cret")
    with pytest.raises(ConfigurationError):
        settings.validate()
    settings.validate(require_database=False)


def test_create_app_refuses_to_start_without_secret(db):
    with pytest.raises(ConfigurationError):
        create_app(Settings(), database=db)


def test_flask_config_maps_token_settings():
    config = Settings(jwt_secret="s3cret", token_lifetime=timedelta(days=2)).to_flask_config()
    assert config["JWT_SECRET_KEY"] == "s3cret"
    assert config["JWT_ACCESS_TOKEN_EXPIRES"] == timedelta(days=2)
    assert config["JWT_IDENTITY_CLAIM"] == "id"
    assert config["JWT_HEADER_TYPE"] == "Bearer"

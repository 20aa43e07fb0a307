from __future__ import annotations

import pytest

from notes_backend.config import Settings


def test_settings_development_defaults_are_valid():
    s = Settings.model_validate({"environment": "development"})
    assert s.attachments_max_image_size_bytes == 10 * 1024 * 1024
    assert s.attachments_max_document_size_bytes == 50 * 1024 * 1024
    assert s.attachments_max_user_storage_bytes == 500 * 1024 * 1024
    assert s.s3_configured() is False


def test_settings_reject_negative_limits():
    with pytest.raises(Exception) as excinfo:
        Settings.model_validate({"attachments_max_user_storage_bytes": -1})
    assert "ATTACHMENTS_MAX_USER_STORAGE_BYTES" in str(excinfo.value)


def test_settings_production_rejects_partial_s3_config():
    with pytest.raises(Exception) as excinfo:
        Settings.model_validate({"environment": "production", "s3_bucket": "b"})
    msg = str(excinfo.value)
    assert "S3_ENDPOINT_URL" in msg
    assert "S3_ACCESS_KEY_ID" in msg
    assert "S3_SECRET_ACCESS_KEY" in msg


def test_settings_production_requires_an_allow_list():
    with pytest.raises(Exception) as excinfo:
        Settings.model_validate(
            {
                "environment": "production",
                "attachments_allowed_image_types": "",
                "attachments_allowed_document_types": " , ",
            }
        )
    assert "allow-list" in str(excinfo.value)


def test_settings_production_with_full_s3_config():
    s = Settings.model_validate(
        {
            "environment": "production",
            "s3_bucket": "b",
            "s3_endpoint_url": "https://s3.example.com",
            "s3_access_key_id": "ak",
            "s3_secret_access_key": "sk",
        }
    )
    assert s.s3_configured() is True

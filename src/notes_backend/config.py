from __future__ import annotations

from typing import ClassVar, final

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [x.strip() for x in value.split(",") if x.strip()]


def _normalize_ext(value: str) -> str:
    return value.strip().lstrip(".").lower()


@final
class Settings(BaseSettings):
    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )
    app_name: str = "Notes Backend"
    api_prefix: str = "/api/v1"

    # Environment (ENVIRONMENT): development | production
    environment: str = "development"

    database_url: str = "sqlite:///./dev.db"
    # SQLite only: seconds a writer waits for the database lock before failing.
    sqlite_busy_timeout_seconds: float = 30.0

    log_level: str = "INFO"

    # Attachments
    attachments_local_dir: str = ".data/attachments"
    attachments_max_image_size_bytes: int = 10 * 1024 * 1024
    attachments_max_document_size_bytes: int = 50 * 1024 * 1024
    attachments_max_user_storage_bytes: int = 500 * 1024 * 1024
    # Comma-separated extensions, matched case-insensitively without the dot.
    attachments_allowed_image_types: str = "jpg,jpeg,png,gif,webp"
    attachments_allowed_document_types: str = "pdf,doc,docx,xls,xlsx"

    # S3-compatible object storage
    s3_endpoint_url: str = ""
    s3_region: str = ""
    s3_bucket: str = ""
    s3_access_key_id: str = ""
    s3_secret_access_key: str = ""
    s3_force_path_style: bool = False

    @model_validator(mode="after")
    def _validate_settings(self) -> "Settings":  # pyright: ignore[reportUnusedFunction]
        errors: list[str] = []

        for name in (
            "attachments_max_image_size_bytes",
            "attachments_max_document_size_bytes",
            "attachments_max_user_storage_bytes",
        ):
            if int(getattr(self, name)) < 0:
                errors.append(f"{name.upper()} must not be negative")

        if self.environment.strip().lower() == "production":
            # If any S3 setting is provided, require the full set to avoid silently falling back to local storage.
            s3_fields = {
                "S3_BUCKET": self.s3_bucket.strip(),
                "S3_ENDPOINT_URL": self.s3_endpoint_url.strip(),
                "S3_ACCESS_KEY_ID": self.s3_access_key_id.strip(),
                "S3_SECRET_ACCESS_KEY": self.s3_secret_access_key.strip(),
            }
            if any(v for v in s3_fields.values()) and any(not v for v in s3_fields.values()):
                missing = ",".join([k for k, v in s3_fields.items() if not v])
                errors.append(f"S3 config incomplete in production; missing: {missing}")

            if not self.allowed_image_types() and not self.allowed_document_types():
                errors.append("at least one attachment type allow-list must be non-empty")

        if errors:
            raise ValueError("Invalid settings: " + "; ".join(errors))
        return self

    def allowed_image_types(self) -> list[str]:
        return [_normalize_ext(x) for x in _split_csv(self.attachments_allowed_image_types)]

    def allowed_document_types(self) -> list[str]:
        return [_normalize_ext(x) for x in _split_csv(self.attachments_allowed_document_types)]

    def s3_configured(self) -> bool:
        return bool(
            self.s3_bucket.strip()
            and self.s3_endpoint_url.strip()
            and self.s3_access_key_id.strip()
            and self.s3_secret_access_key.strip()
        )


settings = Settings()

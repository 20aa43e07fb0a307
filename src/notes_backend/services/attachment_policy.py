from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath

from notes_backend.config import Settings
from notes_backend.errors import TooLargeError, UnsupportedTypeError
from notes_backend.models import TYPE_CATEGORY_DOCUMENT, TYPE_CATEGORY_IMAGE


def extract_ext(filename: str | None) -> str:
    # Only the final suffix counts: "a.tar.pdf" -> "pdf".
    suffix = PurePath((filename or "").strip()).suffix
    return suffix.lstrip(".").lower()


def _format_mb(value: int) -> str:
    mb = value / (1024 * 1024)
    return f"{mb:g} MB" if mb >= 1 else f"{value} bytes"


@dataclass(frozen=True)
class AttachmentPolicy:
    image_types: tuple[str, ...]
    document_types: tuple[str, ...]
    max_image_bytes: int
    max_document_bytes: int
    max_user_storage_bytes: int

    @classmethod
    def from_settings(cls, s: Settings) -> "AttachmentPolicy":
        return cls(
            image_types=tuple(s.allowed_image_types()),
            document_types=tuple(s.allowed_document_types()),
            max_image_bytes=int(s.attachments_max_image_size_bytes),
            max_document_bytes=int(s.attachments_max_document_size_bytes),
            max_user_storage_bytes=int(s.attachments_max_user_storage_bytes),
        )

    def classify(self, filename: str | None) -> tuple[str, str]:
        """Return (type_category, ext). Image allow-list wins when both match."""
        ext = extract_ext(filename)
        if ext and ext in self.image_types:
            return TYPE_CATEGORY_IMAGE, ext
        if ext and ext in self.document_types:
            return TYPE_CATEGORY_DOCUMENT, ext
        raise UnsupportedTypeError(
            f"unsupported file type: {ext or '(none)'}",
            details={"allowed": [*self.image_types, *self.document_types]},
        )

    def max_bytes_for(self, type_category: str) -> int:
        if type_category == TYPE_CATEGORY_IMAGE:
            return self.max_image_bytes
        return self.max_document_bytes

    def check_size(self, type_category: str, size_bytes: int) -> None:
        limit = self.max_bytes_for(type_category)
        if size_bytes > limit:
            raise TooLargeError(
                f"{type_category} must not exceed {_format_mb(limit)}",
                details={"max_bytes": limit},
            )

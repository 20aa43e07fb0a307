from __future__ import annotations

import pytest

from notes_backend.config import Settings
from notes_backend.errors import TooLargeError, UnsupportedTypeError
from notes_backend.services.attachment_policy import AttachmentPolicy, extract_ext


def _policy(**overrides: object) -> AttachmentPolicy:
    params: dict[str, object] = {
        "image_types": ("png", "jpg"),
        "document_types": ("pdf",),
        "max_image_bytes": 100,
        "max_document_bytes": 200,
        "max_user_storage_bytes": 1000,
    }
    params.update(overrides)
    return AttachmentPolicy(**params)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("filename", "ext"),
    [
        ("a.PNG", "png"),
        ("archive.tar.pdf", "pdf"),
        ("  spaced.Jpg  ", "jpg"),
        ("noext", ""),
        ("", ""),
        (None, ""),
    ],
)
def test_extract_ext(filename: str | None, ext: str):
    assert extract_ext(filename) == ext


def test_classify_by_allow_list():
    p = _policy()
    assert p.classify("cat.PNG") == ("image", "png")
    assert p.classify("report.pdf") == ("document", "pdf")

    with pytest.raises(UnsupportedTypeError) as exc:
        p.classify("virus.exe")
    assert exc.value.details == {"allowed": ["png", "jpg", "pdf"]}


def test_classify_prefers_image_when_both_lists_match():
    p = _policy(document_types=("pdf", "png"))
    assert p.classify("x.png") == ("image", "png")


def test_check_size_is_per_type():
    p = _policy()
    p.check_size("image", 100)
    p.check_size("document", 200)
    with pytest.raises(TooLargeError):
        p.check_size("image", 101)
    with pytest.raises(TooLargeError) as exc:
        p.check_size("document", 201)
    assert exc.value.details == {"max_bytes": 200}


def test_policy_from_settings_normalizes_extensions():
    s = Settings.model_validate(
        {
            "attachments_allowed_image_types": " .PNG, gif ,",
            "attachments_allowed_document_types": "Pdf",
            "attachments_max_image_size_bytes": 5,
            "attachments_max_document_size_bytes": 6,
            "attachments_max_user_storage_bytes": 7,
        }
    )
    p = AttachmentPolicy.from_settings(s)
    assert p.image_types == ("png", "gif")
    assert p.document_types == ("pdf",)
    assert (p.max_image_bytes, p.max_document_bytes, p.max_user_storage_bytes) == (5, 6, 7)

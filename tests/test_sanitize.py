import pytest
from pydantic import ValidationError

from shared.models import GalleryUploadMeta, RegistrationForm, describe_validation_error
from shared.sanitize import sanitize_string, validate_email


def test_script_blocks_are_removed():
    assert sanitize_string("<script>alert(1)</script>Bob", 100) == "Bob"
    assert sanitize_string("<SCRIPT type='x'>\nsteal()\n</script >Ana", 100) == "Ana"


def test_tags_are_stripped_and_text_trimmed():
    assert sanitize_string("  <b>Mirabel</b> <img src=x onerror=y> ", 100) == "Mirabel"


def test_truncates_to_max_length():
    assert sanitize_string("a" * 30, 25) == "a" * 25


@pytest.mark.parametrize("value", [None, 42, ["x"], {"a": 1}])
def test_non_string_becomes_empty(value):
    assert sanitize_string(value, 10) == ""


@pytest.mark.parametrize("value,expected", [
    ("bruno@example.com", True),
    ("not-an-email", False),
    ("a b@example.com", False),
    ("a@example", False),
    ("", False),
    (None, False),
])
def test_validate_email(value, expected):
    assert validate_email(value) is expected


def test_registration_form_sanitizes_before_validating():
    form = RegistrationForm.model_validate({
        "name": "<script>alert(1)</script>Bob",
        "email": "bob@example.com",
        "phone": "555-0100 ext 12345678901234",
        "relationshipType": "Cousin",
        "connectedThrough": "<i>Pepa</i>",
        "generation": "3",
        "familyBranch": "Pepa & Felix",
    })
    assert form.name == "Bob"
    assert form.connected_through == "Pepa"
    assert len(form.phone) == 20
    assert form.generation == 3
    assert form.attendees == 1


def test_registration_form_rejects_blank_after_sanitizing():
    with pytest.raises(ValidationError) as exc_info:
        RegistrationForm.model_validate({
            "name": "<b></b>",
            "email": "x@example.com",
            "phone": "1",
            "relationshipType": "Other",
            "connectedThrough": "Alma",
            "generation": "1",
            "familyBranch": "A",
        })
    assert "name: is required" in describe_validation_error(exc_info.value)


def test_gallery_meta_caps_caption_and_defaults_uploader():
    meta = GalleryUploadMeta(caption="x" * 40, uploaded_by="  ")
    assert meta.caption == "x" * 25
    assert meta.uploaded_by == "Anonymous"

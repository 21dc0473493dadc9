from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from kardo.core.errors import InfrastructureError, ProfileNotFoundError
from kardo.domain.vcard import build_vcard, clean
from kardo.services.vcard_service import VCardService


def test_full_profile_lines_in_order():
    body = build_vcard(
        {
            "display_name": "Jane Doe",
            "title": "CTO",
            "phone": "5551234",
            "country_code": "+1",
            "email": "jane@example.com",
            "website": "https://jane.example.com",
        },
        fallback_name="jane-doe",
    )
    assert body == (
        "BEGIN:VCARD\r\n"
        "VERSION:3.0\r\n"
        "FN:Jane Doe\r\n"
        "TITLE:CTO\r\n"
        "TEL;TYPE=CELL:+15551234\r\n"
        "EMAIL;TYPE=INTERNET:jane@example.com\r\n"
        "URL:https://jane.example.com\r\n"
        "END:VCARD\r\n"
    )


def test_newlines_in_values_collapse_to_spaces():
    body = build_vcard({"display_name": "Jane\nDoe", "title": "Head of\r\nStuff "}, "jane-doe")
    assert "FN:Jane Doe\r\n" in body
    assert "TITLE:Head of Stuff\r\n" in body
    assert clean("a\r\rb") == "a  b"


def test_empty_name_falls_back_to_handle():
    body = build_vcard({"display_name": "  "}, "jane-doe")
    assert body == "BEGIN:VCARD\r\nVERSION:3.0\r\nFN:jane-doe\r\nEND:VCARD\r\n"


@pytest.mark.parametrize("url", ["javascript:alert(1)", "ftp://example.com", "https://", "example.com"])
def test_non_http_urls_are_omitted(url):
    assert "URL:" not in build_vcard({"display_name": "X", "website": url}, "x")


def test_phone_without_country_code():
    assert "TEL;TYPE=CELL:5551234\r\n" in build_vcard({"phone": "5551234"}, "x")


def test_service_renders_case_insensitively(repo, make_user):
    make_user(handle="jane-doe", display_name="Jane Doe")
    rendered = VCardService(repo).render("Jane-DOE")
    assert rendered.filename == "jane-doe.vcf"
    assert "FN:Jane Doe\r\n" in rendered.body


def test_service_missing_profile(repo):
    with pytest.raises(ProfileNotFoundError):
        VCardService(repo).render("nobody")


class BrokenProfiles:
    def get_profile_by_handle(self, handle):
        raise OperationalError("SELECT", {}, Exception("database is locked"))


def test_service_store_failure_is_infrastructure_error():
    with pytest.raises(InfrastructureError) as excinfo:
        VCardService(BrokenProfiles()).render("jane-doe")
    assert excinfo.value.message.startswith("Profile lookup error")


def test_service_empty_handle_is_not_found():
    with pytest.raises(ProfileNotFoundError):
        VCardService(BrokenProfiles()).render("   ")

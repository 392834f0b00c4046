"""Tests for validators.py: profile URL checks and date normalisation."""

import pytest

from linklog_sync.validators import (
    format_validation_error,
    normalize_date_iso,
    validate_profile_url,
)


class TestValidateProfileUrl:
    def test_valid_https(self):
        assert validate_profile_url("https://www.linkedin.com/in/ada/") == (
            True,
            "",
        )

    def test_valid_http(self):
        is_valid, _ = validate_profile_url("http://example.com/p/1")
        assert is_valid

    @pytest.mark.parametrize("value", ["", "   "])
    def test_empty(self, value):
        assert validate_profile_url(value) == (
            False,
            "Profile URL cannot be empty",
        )

    def test_missing_scheme(self):
        is_valid, reason = validate_profile_url("www.linkedin.com/in/ada")
        assert not is_valid
        assert reason == "Profile URL must start with http:// or https://"

    def test_other_scheme(self):
        is_valid, reason = validate_profile_url("mailto:ada@example.com")
        assert not is_valid
        assert "http://" in reason

    def test_missing_hostname(self):
        assert validate_profile_url("https:///in/ada") == (
            False,
            "Profile URL must include a hostname",
        )


class TestNormalizeDateIso:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2024-03-15", "2024-03-15"),
            ("2024-03-15T09:30:00", "2024-03-15"),
            ("2024-03-15T09:30:00Z", "2024-03-15"),
            ("2024-03-15T23:30:00+02:00", "2024-03-15"),
            ("  2024-03-15  ", "2024-03-15"),
        ],
    )
    def test_parsable(self, value, expected):
        assert normalize_date_iso(value) == expected

    @pytest.mark.parametrize("value", ["", None, "   ", "next week", "15/03/2024"])
    def test_unparsable_becomes_empty(self, value):
        assert normalize_date_iso(value) == ""


def test_format_validation_error():
    assert format_validation_error("Profile URL", "is bad") == "Profile URL is bad"

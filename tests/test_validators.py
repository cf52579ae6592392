"""Validator and error-envelope unit tests."""
from decimal import Decimal

import pytest

from starter_api.errors import (
    AppError,
    BusinessLogicError,
    ConflictError,
    ErrorCode,
    NotFoundError,
    ValidationError,
    code_for_status,
    database_error,
    error_code_of,
    external_service_error,
    status_code_of,
)
from starter_api.validators import (
    MAX_INT,
    slugify,
    validate_email,
    validate_optional_text,
    validate_password,
    validate_price,
    validate_sku,
    validate_slug,
    validate_stock,
    validate_text,
    validate_url,
    validate_username,
)


# ---------------------------------------------------------------------------
# slugify
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("text,expected", [
    ("Hello, World! (2024 Edition)", "hello-world-2024-edition"),
    ("  Multiple   Spaces  ", "multiple-spaces"),
    ("snake_case_title", "snake-case-title"),
    ("--dashes--everywhere--", "dashes-everywhere"),
    ("!!!", ""),
])
def test_slugify(text, expected):
    assert slugify(text) == expected


# ---------------------------------------------------------------------------
# Field validators
# ---------------------------------------------------------------------------

def test_validate_email_normalises():
    assert validate_email("  Alice@Example.COM ") == "alice@example.com"


@pytest.mark.parametrize("email", ["", None, "no-at-sign", "a@b", "a@b.c", "a b@example.com"])
def test_validate_email_rejects(email):
    with pytest.raises(ValidationError) as excinfo:
        validate_email(email)
    assert excinfo.value.fields == {"field": "email"}


@pytest.mark.parametrize("password", ["secret123", "a1b2c3", "Passw0rd!"])
def test_validate_password_accepts(password):
    assert validate_password(password) == password


@pytest.mark.parametrize("password,message", [
    ("", "password is required"),
    ("ab1", "at least 6"),
    ("abcdefgh", "letter and one digit"),
    ("12345678", "letter and one digit"),
    ("a1" * 37, "at most 72 bytes"),
])
def test_validate_password_rejects(password, message):
    with pytest.raises(ValidationError, match=message):
        validate_password(password)


def test_validate_username():
    assert validate_username("  alice.l ") == "alice.l"
    with pytest.raises(ValidationError):
        validate_username("al")
    with pytest.raises(ValidationError):
        validate_username("alice smith")


def test_validate_text():
    assert validate_text("  hi  ", "title") == "hi"
    with pytest.raises(ValidationError, match="title is required"):
        validate_text("   ", "title")
    with pytest.raises(ValidationError, match="at most 5"):
        validate_text("toolong", "title", 1, 5)


def test_validate_optional_text():
    assert validate_optional_text(None, "excerpt", 10) is None
    assert validate_optional_text("   ", "excerpt", 10) is None
    assert validate_optional_text(" x ", "excerpt", 10) == "x"


def test_validate_slug():
    assert validate_slug("Good-Slug") == "good-slug"
    with pytest.raises(ValidationError):
        validate_slug("bad--slug")
    with pytest.raises(ValidationError):
        validate_slug("no spaces")


def test_validate_url():
    assert validate_url("https://example.com/a.png", "featured_image") == "https://example.com/a.png"
    with pytest.raises(ValidationError) as excinfo:
        validate_url("javascript:alert(1)", "featured_image")
    assert excinfo.value.field == "featured_image"


def test_validate_sku():
    assert validate_sku(" ab-12 ") == "AB-12"
    for bad in ("", "AB", "AB_12", "A" * 65):
        with pytest.raises(ValidationError):
            validate_sku(bad)


@pytest.mark.parametrize("value,expected", [
    ("19.9", Decimal("19.90")),
    (0, Decimal("0.00")),
    (Decimal("5"), Decimal("5.00")),
])
def test_validate_price_accepts(value, expected):
    assert validate_price(value) == expected


@pytest.mark.parametrize("value,message", [
    (None, "price is required"),
    ("-0.01", "must not be negative"),
    ("1.999", "two decimal places"),
    ("abc", "must be a number"),
    ("NaN", "must be a number"),
])
def test_validate_price_rejects(value, message):
    with pytest.raises(ValidationError, match=message):
        validate_price(value)


def test_validate_stock():
    assert validate_stock(0) == 0
    assert validate_stock(MAX_INT) == MAX_INT
    for bad in (-1, None, True, 1.5, MAX_INT + 1):
        with pytest.raises(ValidationError):
            validate_stock(bad)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

def test_error_status_codes():
    assert NotFoundError("x").status_code == 404
    assert ConflictError("x").status_code == 409
    assert ValidationError("x").status_code == 400
    assert BusinessLogicError("x").status_code == 400
    assert AppError("x").status_code == 500


def test_error_to_dict_omits_empty_members():
    assert NotFoundError("user not found").to_dict() == {
        "code": "NOT_FOUND",
        "message": "user not found",
    }
    error = ConflictError("taken").with_details("email").with_field("field", "email")
    assert error.to_dict() == {
        "code": "CONFLICT",
        "message": "taken",
        "details": "email",
        "fields": {"field": "email"},
    }


def test_error_cause_is_chained():
    cause = RuntimeError("connection reset")
    error = database_error(cause)
    assert error.__cause__ is cause
    assert str(error) == "DATABASE_ERROR: Database operation failed (caused by: connection reset)"
    assert external_service_error("smtp", cause).status_code == 502


def test_error_helpers_for_foreign_exceptions():
    assert error_code_of(KeyError("x")) == ErrorCode.INTERNAL_SERVER
    assert status_code_of(KeyError("x")) == 500
    assert error_code_of(NotFoundError("x")) == ErrorCode.NOT_FOUND
    assert code_for_status(405) == ErrorCode.BAD_REQUEST
    assert code_for_status(418) == ErrorCode.BAD_REQUEST
    assert code_for_status(599) == ErrorCode.INTERNAL_SERVER


def test_with_status_code_overrides_default():
    error = AppError("teapot", ErrorCode.BAD_REQUEST).with_status_code(418)
    assert error.status_code == 418
    assert error.is_type(ErrorCode.BAD_REQUEST)

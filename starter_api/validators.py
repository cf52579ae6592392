"""Business-rule validators shared by the services.

Every validator either returns the normalised value or raises
``ValidationError`` naming the offending field.
"""
import re
from decimal import Decimal, InvalidOperation
from typing import Any

from starter_api.errors import ValidationError

EMAIL_REGEX = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
URL_REGEX = re.compile(r"^https?://[\w.-]+(?:\.[\w.-]+)*(?::\d+)?[\w.,@?^=%&:/~+#-]*$")
USERNAME_REGEX = re.compile(r"^[A-Za-z0-9_.-]+$")
SLUG_REGEX = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
SKU_REGEX = re.compile(r"^[A-Z0-9-]{3,64}$")

PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 72  # bcrypt ignores bytes past 72

# Largest value a PostgreSQL INTEGER column holds.
MAX_INT = 2 ** 31 - 1

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"[\s_]+")
_SLUG_DASH_RE = re.compile(r"-+")


def slugify(text: str) -> str:
    """Return a URL-safe, lowercase slug derived from *text*."""
    text = _SLUG_STRIP_RE.sub("", text.lower().strip())
    text = _SLUG_SPACE_RE.sub("-", text)
    return _SLUG_DASH_RE.sub("-", text).strip("-")


def validate_email(email: Any) -> str:
    """Validate and normalise (strip, lowercase) an email address."""
    if not email or not isinstance(email, str):
        raise ValidationError("email is required", field="email")

    clean = email.strip().lower()
    if len(clean) > 255 or not EMAIL_REGEX.match(clean):
        raise ValidationError("email format is invalid", field="email")
    return clean


def validate_password(password: Any) -> str:
    if not password or not isinstance(password, str):
        raise ValidationError("password is required", field="password")
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(
            f"password must be at least {PASSWORD_MIN_LENGTH} characters", field="password"
        )
    if len(password.encode("utf-8")) > PASSWORD_MAX_LENGTH:
        raise ValidationError(
            f"password must be at most {PASSWORD_MAX_LENGTH} bytes", field="password"
        )
    if not any(c.isalpha() for c in password) or not any(c.isdigit() for c in password):
        raise ValidationError(
            "password must contain at least one letter and one digit", field="password"
        )
    return password


def validate_username(username: Any) -> str:
    clean = validate_text(username, "username", 3, 50)
    if not USERNAME_REGEX.match(clean):
        raise ValidationError(
            "username may only contain letters, digits, '_', '.' and '-'", field="username"
        )
    return clean


def validate_text(value: Any, field: str, min_len: int = 1, max_len: int = 255) -> str:
    """Validate a string field for length constraints; returns it stripped."""
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", field=field)

    stripped = value.strip()
    if len(stripped) < min_len:
        raise ValidationError(f"{field} must be at least {min_len} characters", field=field)
    if len(stripped) > max_len:
        raise ValidationError(f"{field} must be at most {max_len} characters", field=field)
    return stripped


def validate_optional_text(value: Any, field: str, max_len: int) -> str | None:
    """Like ``validate_text`` but ``None`` and blank strings become ``None``."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return validate_text(value, field, 1, max_len)


def validate_slug(slug: Any, field: str = "slug") -> str:
    clean = validate_text(slug, field, 1, 250).lower()
    if not SLUG_REGEX.match(clean):
        raise ValidationError(
            f"{field} may only contain lowercase letters, digits and single dashes", field=field
        )
    return clean


def validate_url(url: Any, field: str = "url") -> str:
    clean = validate_text(url, field, 1, 500)
    if not URL_REGEX.match(clean):
        raise ValidationError(f"{field} must be an http(s) URL", field=field)
    return clean


def validate_sku(sku: Any) -> str:
    """Validate a stock keeping unit; it is normalised to uppercase."""
    if not sku or not isinstance(sku, str):
        raise ValidationError("sku is required", field="sku")
    clean = sku.strip().upper()
    if not SKU_REGEX.match(clean):
        raise ValidationError(
            "sku must be 3-64 characters of A-Z, 0-9 and '-'", field="sku"
        )
    return clean


def validate_price(value: Any) -> Decimal:
    if value is None:
        raise ValidationError("price is required", field="price")
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError("price must be a number", field="price")

    if not price.is_finite():
        raise ValidationError("price must be a number", field="price")
    if price < 0:
        raise ValidationError("price must not be negative", field="price")
    if price.as_tuple().exponent < -2:
        raise ValidationError("price may have at most two decimal places", field="price")
    if price >= Decimal("10000000000"):
        raise ValidationError("price is too large", field="price")
    return price.quantize(Decimal("0.01"))


def validate_stock(value: Any) -> int:
    if value is None or isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("stock must be an integer", field="stock")
    if value < 0:
        raise ValidationError("stock must not be negative", field="stock")
    if value > MAX_INT:
        raise ValidationError(f"stock must be at most {MAX_INT}", field="stock")
    return value

"""Phone number normalization to the canonical 10-digit subscriber form."""

from __future__ import annotations

import re

from app.core.errors import InvalidNumberError

CANONICAL_LENGTH = 10

# Leading digits accepted for mobile numbers in the target region (India).
MOBILE_PREFIXES = frozenset("6789")

# (country code, total digit count) pairs stripped in priority order.
COUNTRY_CODES: tuple[tuple[str, int], ...] = (
    ("91", 12),  # India
    ("1", 11),  # US / Canada
    ("44", 12),  # UK
)

_NON_DIGITS = re.compile(r"\D")
_CANONICAL = re.compile(r"^[6-9]\d{9}$")


def _strip_country_code(digits: str) -> str:
    for prefix, total_length in COUNTRY_CODES:
        if len(digits) == total_length and digits.startswith(prefix):
            return digits[len(prefix):]
    # Unknown country code: best effort, keep the subscriber part.
    return digits[-CANONICAL_LENGTH:]


def normalize_mobile(raw: str | None) -> str:
    """Normalize free-form phone number text into a canonical 10-digit number.

    Every non-digit character is dropped. Numbers longer than 10 digits have a
    known country code stripped, or are right-truncated to their last 10
    digits. The result must start with 6, 7, 8 or 9.

    The function is pure and idempotent: normalizing a canonical number
    returns it unchanged.

    Args:
        raw: Phone number as typed by the user (e.g. "+91 83180 90007").

    Returns:
        str: Canonical number, e.g. "8318090007".

    Raises:
        InvalidNumberError: If the input is empty, has the wrong length or an
            invalid leading digit.

    Examples:
        >>> normalize_mobile("+91-83180-90007")
        '8318090007'
    """
    digits = _NON_DIGITS.sub("", raw or "")

    if not digits:
        raise InvalidNumberError(
            code="invalid_number_empty",
            message="Invalid mobile number: no digits found in phone number",
            details={"reason": "empty"},
        )

    if len(digits) > CANONICAL_LENGTH:
        digits = _strip_country_code(digits)

    if len(digits) != CANONICAL_LENGTH:
        raise InvalidNumberError(
            code="invalid_number_length",
            message=(
                f"Invalid mobile number: invalid phone number length: {len(digits)} "
                f"digits (expected {CANONICAL_LENGTH})"
            ),
            details={"reason": "wrong_length", "digits": len(digits)},
        )

    if not _CANONICAL.match(digits):
        raise InvalidNumberError(
            code="invalid_number_prefix",
            message="Invalid mobile number: invalid mobile number format",
            details={
                "reason": "invalid_prefix",
                "hint": "Mobile numbers start with " + ", ".join(sorted(MOBILE_PREFIXES)),
            },
        )

    return digits

"""Postal code normalization."""

import re

from shared.errors import InvalidPostalCode

POSTAL_CODE_LENGTH = 8

_DIGITS = re.compile(r"[0-9]+")


def extract_digits(raw: str) -> str:
    """Concatenate every ASCII digit found in ``raw``."""
    return "".join(_DIGITS.findall(raw))


def normalize_postal_code(raw: str) -> str:
    """
    Normalize a client supplied postal code.

    Every non-digit character is dropped; the result must be exactly eight
    digits long. ``"12345-678x"`` becomes ``"12345678"``.

    Args:
        raw: Postal code as sent by the client

    Returns:
        The eight-digit postal code

    Raises:
        InvalidPostalCode: If the input does not hold exactly eight digits
    """
    digits = extract_digits(raw)
    if len(digits) != POSTAL_CODE_LENGTH:
        raise InvalidPostalCode()
    return digits

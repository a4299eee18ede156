"""Real-user classification and masking for phone-number user ids.

Product records carry a `user_id` that should be a mobile number. Seed data,
QA accounts and scripted traffic use obviously synthetic numbers; analytics
only count ids that pass every rule below.

Rules (all must pass):
1. 7-15 digits after stripping non-digits
2. No blacklisted synthetic pattern (same-digit runs, sequential prefixes,
   full-length 0/1/9)
3. 10-digit numbers must start with 6, 7, 8 or 9 (Indian mobile prefix)
4. At least 3 distinct digits
5. Not a strictly ascending or descending digit run

Masking is one-way and only meant for display to admins.
"""

import re
from typing import Protocol

MASK_CHAR = "*"
MASK_PLACEHOLDER = MASK_CHAR * 10

MIN_DIGITS = 7
MAX_DIGITS = 15
MIN_DISTINCT_DIGITS = 3

_NON_DIGIT = re.compile(r"\D")
_FULL_LENGTH_SYNTHETIC = re.compile(r"0+|1+|9+")

SYNTHETIC_RUNS = ("0000000", "1111111", "5555555", "7777777", "8888888", "9999999")
SYNTHETIC_PREFIXES = ("1234567", "9876543")
MOBILE_PREFIXES = frozenset("6789")


class UserIdClassifier(Protocol):
    """Decides whether a user id belongs to a real person."""

    def is_real(self, candidate: str | None) -> bool: ...

    def mask(self, candidate: str | None) -> str: ...


def digits_only(value: str | None) -> str:
    """Strip everything but ASCII digits."""
    if not isinstance(value, str):
        return ""
    return _NON_DIGIT.sub("", value)


def _is_step_run(digits: str, step: int) -> bool:
    # Wraps modulo 10, so "7890" continues an ascending run.
    return all(
        (int(b) - int(a)) % 10 == step % 10
        for a, b in zip(digits, digits[1:])
    )


class PhoneNumberClassifier:
    """Strict phone-number heuristics for the Indian mobile market."""

    def is_real(self, candidate: str | None) -> bool:
        """Check whether candidate looks like a real user's phone number.

        Args:
            candidate: Raw user id.

        Returns:
            True only if every rule passes.
        """
        digits = digits_only(candidate)

        if len(digits) < MIN_DIGITS or len(digits) > MAX_DIGITS:
            return False

        if any(run in digits for run in SYNTHETIC_RUNS):
            return False
        if digits.startswith(SYNTHETIC_PREFIXES):
            return False
        if _FULL_LENGTH_SYNTHETIC.fullmatch(digits):
            return False

        if len(digits) == 10 and digits[0] not in MOBILE_PREFIXES:
            return False

        if len(set(digits)) < MIN_DISTINCT_DIGITS:
            return False

        if _is_step_run(digits, 1) or _is_step_run(digits, -1):
            return False

        return True

    def mask(self, candidate: str | None) -> str:
        """Mask a phone number for display.

        Examples:
            "9123456780"  -> "91****6780"
            "09123456780" -> "91****6780"
            "912345678"   -> "91*****78"

        Args:
            candidate: Raw user id.

        Returns:
            Masked digits, or a ten-character placeholder for unusable input.
        """
        digits = digits_only(candidate)

        if len(digits) == 11 and digits.startswith("0"):
            digits = digits[1:]

        if len(digits) >= 10:
            return f"{digits[:2]}{MASK_CHAR * (len(digits) - 6)}{digits[-4:]}"
        if len(digits) >= 5:
            return f"{digits[:2]}{MASK_CHAR * (len(digits) - 4)}{digits[-2:]}"
        return MASK_PLACEHOLDER


default_classifier = PhoneNumberClassifier()


def is_real_user(candidate: str | None) -> bool:
    """Module-level shortcut for the default classifier."""
    return default_classifier.is_real(candidate)


def mask_user_id(candidate: str | None) -> str:
    """Module-level shortcut for the default classifier."""
    return default_classifier.mask(candidate)

import pytest

from app.services.analytics import filter_real_records
from app.services.upstream_client import normalize_product_record
from app.services.user_id import (
    MASK_PLACEHOLDER,
    PhoneNumberClassifier,
    digits_only,
    is_real_user,
    mask_user_id,
)


@pytest.fixture
def classifier() -> PhoneNumberClassifier:
    return PhoneNumberClassifier()


@pytest.mark.parametrize(
    "candidate",
    ["9123456780", "+91 91234 56780", "8123456709", "7012345689"],
)
def test_real_numbers(classifier: PhoneNumberClassifier, candidate: str):
    assert classifier.is_real(candidate) is True


@pytest.mark.parametrize(
    "candidate",
    [
        "9876543210",  # sequential prefix
        "1234567890",  # sequential prefix
        "123",  # too short
        "1234567890123456",  # too long
        "5123456780",  # 10 digits without a mobile prefix
        "9111111123",  # same-digit run
        "9000000012",  # same-digit run
        "9898989898",  # fewer than 3 distinct digits
        "7890123456",  # ascending run (wraps past 9)
        "6543210987",  # descending run (wraps past 0)
        "",
        None,
    ],
)
def test_synthetic_or_invalid_numbers(classifier: PhoneNumberClassifier, candidate):
    assert classifier.is_real(candidate) is False


def test_digits_only():
    assert digits_only("+91-912 345 6780") == "919123456780"
    assert digits_only(None) == ""


def test_mask_ten_digits():
    assert mask_user_id("9123456780") == "91****6780"


def test_mask_drops_leading_zero_of_eleven_digits():
    assert mask_user_id("09123456780") == "91****6780"


def test_mask_with_country_code():
    assert mask_user_id("919123456780") == "91******6780"


def test_mask_short_numbers():
    assert mask_user_id("912345678") == "91*****78"
    assert mask_user_id("91234") == "91*34"


def test_mask_unusable_input():
    assert mask_user_id("1234") == MASK_PLACEHOLDER
    assert mask_user_id(None) == MASK_PLACEHOLDER
    assert mask_user_id("not a number") == MASK_PLACEHOLDER


def test_module_shortcuts():
    assert is_real_user("9123456780")
    assert not is_real_user("9876543210")


def test_filter_keeps_only_real_users():
    records = [
        normalize_product_record({"_id": "a", "user_id": "9876543210"}),
        normalize_product_record({"_id": "b", "user_id": "9123456780"}),
        normalize_product_record({"_id": "c", "user_id": "1234567890"}),
    ]
    real = filter_real_records(records)
    assert [r.id for r in real] == ["b"]


def test_filter_three_record_scenario():
    records = [
        normalize_product_record({"_id": "real", "user_id": "9123456780"}),
        normalize_product_record({"_id": "ones", "user_id": "1111111111"}),
        normalize_product_record({"_id": "short", "user_id": "555"}),
    ]
    real = filter_real_records(records)
    assert [r.id for r in real] == ["real"]
    assert mask_user_id(real[0].user_id) == "91****6780"


@pytest.mark.parametrize("candidate", ["9123456780", "9876543210", "555", None])
def test_classifier_is_idempotent(classifier: PhoneNumberClassifier, candidate):
    assert classifier.is_real(candidate) == classifier.is_real(candidate)
    assert classifier.mask(candidate) == classifier.mask(candidate)

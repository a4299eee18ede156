import pytest

from app.services import source_parser
from app.services.source_parser import (
    InputType,
    ParsedSourceInfo,
    ProductCategory,
    SearchStatus,
    extract_best_platform,
    is_search_error,
    parse_source_info,
)

FULL_SOURCE = (
    "amazon_name-->Sony WH-1000XM4, flipkart_name-->Sony Headphones, "
    "image_url, Hardline, Best: Flipkart - Savings: ₹2,500, SUCCESS"
)


def test_parse_full_source():
    info = parse_source_info(FULL_SOURCE)
    assert info.amazon_name == "Sony WH-1000XM4"
    assert info.flipkart_name == "Sony Headphones"
    assert info.input_type is InputType.IMAGE
    assert info.category is ProductCategory.HARDLINE
    assert info.is_hardline is True
    assert info.is_softline is False
    assert info.best_platform == "flipkart"
    assert info.savings_amount == 2500
    assert info.status is SearchStatus.SUCCESS


def test_parse_none_and_empty_give_defaults():
    assert parse_source_info(None) == ParsedSourceInfo()
    assert parse_source_info("") == ParsedSourceInfo()
    assert parse_source_info(12345) == ParsedSourceInfo()


def test_parse_garbage_gives_defaults():
    info = parse_source_info("lorem ipsum, dolor sit amet")
    assert info == ParsedSourceInfo()


def test_missing_fields_do_not_affect_others():
    info = parse_source_info("Text, Softline, Amazon Cheaper, FAILED")
    assert info.amazon_name == ""
    assert info.input_type is InputType.TEXT
    assert info.category is ProductCategory.SOFTLINE
    assert info.is_softline is True
    assert info.is_amazon_cheaper is True
    assert info.is_flipkart_cheaper is False
    assert info.best_platform == ""
    assert info.savings_amount == 0
    assert info.status is SearchStatus.FAILED
    assert is_search_error(info)


def test_input_type_first_marker_wins():
    info = parse_source_info("amazon_url, image_url")
    assert info.input_type is InputType.IMAGE

    info = parse_source_info("flipkart_url")
    assert info.input_type is InputType.FLIPKART_URL


def test_hardline_wins_over_softline():
    info = parse_source_info("Softline, Hardline")
    assert info.category is ProductCategory.HARDLINE
    assert info.is_softline is False


def test_both_cheaper_flags_can_be_set():
    info = parse_source_info("Flipkart Cheaper, Amazon Cheaper")
    assert info.is_flipkart_cheaper is True
    assert info.is_amazon_cheaper is True


def test_status_precedence():
    assert parse_source_info("ERROR then SUCCESS").status is SearchStatus.SUCCESS
    assert parse_source_info("ERROR, FAILED").status is SearchStatus.ERROR
    assert not is_search_error(parse_source_info("SUCCESS"))


def test_concise_name_stops_at_capital_letter():
    info = parse_source_info("concise_name--> iphone 15 Pro, image_url")
    assert info.concise_name == "iphone 15"

    info = parse_source_info("concise_name-->Galaxy buds, Text")
    assert info.concise_name == "Galaxy buds"


def test_best_platform_without_savings_amount():
    assert extract_best_platform("Best: Amazon - Savings: N/A") == ("", 0)
    assert extract_best_platform("Best: Amazon - Savings: ₹ 1,20,000") == ("amazon", 120000)


def test_unset_enums_serialize_as_unset():
    info = parse_source_info("nothing here")
    assert info.input_type.value == "unset"
    assert info.category.value == "unset"
    assert info.status.value == "unset"


def test_failing_pass_only_defaults_its_own_field(monkeypatch: pytest.MonkeyPatch):
    def broken(raw: str):
        raise ValueError("unexpected layout")

    monkeypatch.setattr(source_parser, "extract_category", broken)

    info = parse_source_info("Hardline, image_url, SUCCESS")
    assert info.category is ProductCategory.UNSET
    assert info.is_hardline is False
    assert info.input_type is InputType.IMAGE
    assert info.status is SearchStatus.SUCCESS


def test_failing_best_platform_pass_keeps_names(monkeypatch: pytest.MonkeyPatch):
    def broken(raw: str):
        raise IndexError("no group")

    monkeypatch.setattr(source_parser, "extract_best_platform", broken)

    info = parse_source_info(FULL_SOURCE)
    assert info.best_platform == ""
    assert info.savings_amount == 0
    assert info.amazon_name == "Sony WH-1000XM4"
    assert info.category is ProductCategory.HARDLINE


@pytest.mark.parametrize("raw", [FULL_SOURCE, "Text, Softline, FAILED", "", None, "garbage"])
def test_parse_is_idempotent(raw):
    assert parse_source_info(raw) == parse_source_info(raw)

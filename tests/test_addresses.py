import pytest

from territory.addresses import (
    compose_address,
    extract_house_number,
    house_number_from_components,
    normalize_address,
    normalize_street,
    parse_house_number,
)


@pytest.mark.parametrize("address, expected", [
    ("123 Main St", 123),
    ("123A Main St", 123),
    ("12-14 Wilson Avenue", 12),
    ("Unit B, 45 Keele Street", 45),
    ("Wilson Avenue", None),
    ("0 Main St", None),
    ("10000 Main St", None),
    ("", None),
    (None, None),
])
def test_extract_house_number(address, expected):
    assert extract_house_number(address) == expected


def test_parse_house_number_tag():
    assert parse_house_number("28") == 28
    assert parse_house_number("28B") == 28
    assert parse_house_number(42) == 42
    assert parse_house_number("abc") is None
    assert parse_house_number(None) is None


def test_house_number_from_components():
    components = [
        {"long_name": "16", "types": ["street_number"]},
        {"long_name": "Wilson Avenue", "types": ["route"]},
    ]
    assert house_number_from_components(components) == 16
    assert house_number_from_components([]) is None


def test_normalize_address():
    assert normalize_address("  12 Wilson Ave.,  Toronto ") == "12 wilson ave toronto"


def test_normalize_street_expands_suffixes():
    assert normalize_street("Sheppard Ave W") == normalize_street("Sheppard Avenue West")


def test_compose_address():
    assert compose_address("12", "Wilson Avenue", "Toronto", "M3H") == "12 Wilson Avenue, Toronto M3H"
    assert compose_address("12", "Wilson Avenue") == "12 Wilson Avenue"

import pytest

from bikeshop.api.forms import local_path, optional_id


@pytest.mark.parametrize("value,expected", [
    ("/tickets/3", "/tickets/3"),
    ("/", "/"),
    ("  /workshop ", "/workshop"),
    ("//evil.com", "/workshop"),
    ("/\\evil.com", "/workshop"),
    ("https://evil.com", "/workshop"),
    ("tickets/3", "/workshop"),
    ("", "/workshop"),
    (None, "/workshop"),
])
def test_local_path(value, expected):
    assert local_path(value, "/workshop") == expected


@pytest.mark.parametrize("value,expected", [
    ("4", 4), (" 12 ", 12), ("0", None), ("-1", None), ("abc", None), ("", None), (None, None),
])
def test_optional_id(value, expected):
    assert optional_id(value) == expected

import pytest

from teelinks.utils.form_fields import optional_text, parse_form_bool


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, None),
        ("true", True),
        ("True", False),
        ("TRUE", False),
        ("1", False),
        ("false", False),
        ("", False),
        (" true", False),
    ],
)
def test_parse_form_bool(raw, expected):
    assert parse_form_bool(raw) is expected


@pytest.mark.parametrize(
    "raw, expected",
    [(None, None), ("", None), ("0", "0"), (" ", " "), ("text", "text")],
)
def test_optional_text(raw, expected):
    assert optional_text(raw) == expected

"""Coercion of multipart form text into domain values.

Form transports only carry strings, so booleans and "cleared" fields are
decoded here before anything reaches the product service.

``parse_form_bool`` truth table:

    ========== =======
    input      result
    ========== =======
    None       None (field absent)
    "true"     True
    anything   False (including "True", "1", "")
    ========== =======
"""

from __future__ import annotations


def parse_form_bool(value: str | None) -> bool | None:
    if value is None:
        return None
    return value == "true"


def optional_text(value: str | None) -> str | None:
    """Map an empty string to ``None``; keep every other value as given."""
    return value or None
